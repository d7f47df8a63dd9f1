# apps/board/realtime.py

"""
Real-time fan-out

Events go through the channel layer to the group `board_<id>`; every
connection viewing the board is in that group, and only those. Per-user
notifications use `user_<id>`.

Publishing is best-effort: a failure is logged and never reaches the
mutation that triggered it. Mutations schedule their events with
`publish_on_commit` so a rolled-back change emits nothing.
"""

import logging
import threading

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

# Channel layer message types, handled by BoardConsumer.board_event/user_event
BOARD_EVENT = 'board.event'
USER_EVENT = 'user.event'


def board_group(board_id):
    return f'board_{board_id}'


def user_group(user_id):
    return f'user_{user_id}'


class ConnectionRegistry:
    """
    Which connection views which board, and who is behind it

    One instance per process, shared by every consumer. A connection views at
    most one board at a time. Reads return snapshots, safe to iterate while
    connections come and go.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._users = {}
        self._board_of = {}
        self._subscribers = {}

    def register(self, channel_name, user):
        with self._lock:
            self._users[channel_name] = {
                'id': user['id'],
                'username': user['username'],
                'name': user.get('name') or user['username'],
            }

    def enter(self, channel_name, board_id):
        """Subscribes to a board, leaving the previous one; returns the board left"""
        with self._lock:
            previous = self._leave(channel_name)
            self._board_of[channel_name] = board_id
            self._subscribers.setdefault(board_id, set()).add(channel_name)
            return previous

    def leave(self, channel_name):
        with self._lock:
            return self._leave(channel_name)

    def unregister(self, channel_name):
        """Forgets the connection; returns the board it was viewing"""
        with self._lock:
            board_id = self._leave(channel_name)
            self._users.pop(channel_name, None)
            return board_id

    def board_of(self, channel_name):
        with self._lock:
            return self._board_of.get(channel_name)

    def subscribers(self, board_id):
        with self._lock:
            return frozenset(self._subscribers.get(board_id, ()))

    def viewers(self, board_id):
        """Distinct users viewing the board, by username"""
        with self._lock:
            users = {}
            for channel_name in self._subscribers.get(board_id, ()):
                user = self._users.get(channel_name)
                if user:
                    users[user['id']] = dict(user)
        return sorted(users.values(), key=lambda u: (u['username'], u['id']))

    def is_user_online(self, board_id, user_id):
        return any(u['id'] == user_id for u in self.viewers(board_id))

    def _leave(self, channel_name):
        board_id = self._board_of.pop(channel_name, None)
        if board_id is not None:
            channels = self._subscribers.get(board_id)
            if channels is not None:
                channels.discard(channel_name)
                if not channels:
                    del self._subscribers[board_id]
        return board_id


_registry = ConnectionRegistry()


def get_registry():
    return _registry


def set_registry(registry):
    """Swaps the process-wide registry, returns the previous one"""
    global _registry
    previous, _registry = _registry, registry
    return previous


def _send(group, message):
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("📡 No channel layer configured, dropping %s", message.get('event'))
        return False

    try:
        async_to_sync(channel_layer.group_send)(group, message)
    except Exception:
        logger.exception("❌ Failed to publish %s to %s", message.get('event'), group)
        return False

    logger.debug("📡 %s -> %s", message.get('event'), group)
    return True


def publish(board_id, event_type, payload):
    """Delivers an event to every connection viewing the board"""
    return _send(board_group(board_id), {
        'type': BOARD_EVENT,
        'event': event_type,
        'board_id': board_id,
        'payload': payload,
    })


def notify_user(user_id, event_type, payload):
    """Delivers an event to every connection of one user"""
    return _send(user_group(user_id), {
        'type': USER_EVENT,
        'event': event_type,
        'payload': payload,
    })


def publish_on_commit(board_id, event_type, payload):
    transaction.on_commit(lambda: publish(board_id, event_type, payload))


def notify_user_on_commit(user_id, event_type, payload):
    transaction.on_commit(lambda: notify_user(user_id, event_type, payload))
