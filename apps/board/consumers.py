# apps/board/consumers.py

import json
import logging
import math

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.utils import timezone

from apps.core.exceptions import BadRequest, BoardError, Forbidden, Internal, NotFound
from apps.core.models import Board
from apps.core.permissions import BoardPermissions
from apps.core.utils import serialize_user

from .realtime import BOARD_EVENT, board_group, get_registry, user_group
from .serializers import serialize_board

logger = logging.getLogger(__name__)

# Close code for connections without a valid user
CLOSE_UNAUTHENTICATED = 4401


class BoardConsumer(AsyncWebsocketConsumer):
    """
    WebSocket endpoint for live boards

    One connection per client. It always listens to its user's group and to
    at most one board group at a time, chosen with `board:join`.

    Client intents:
    - board:join {board_id}  -> subscribe (leaves the previous board)
    - board:leave            -> unsubscribe
    - board:sync             -> full board snapshot
    - cursor:move {x, y}     -> `cursor:update` to the other viewers
    - ping                   -> pong
    """

    def __init__(self, *args, registry=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.registry = registry or get_registry()
        self.board_id = None

    async def connect(self):
        self.user = self.scope.get('user')

        if self.user is None or not self.user.is_authenticated:
            logger.warning("❌ WebSocket rejected - unauthenticated")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        self.user_group_name = user_group(self.user.pk)
        await self.channel_layer.group_add(self.user_group_name, self.channel_name)
        self.registry.register(self.channel_name, serialize_user(self.user))

        await self.accept()
        # Clients ping at this interval to keep proxies from dropping the socket
        await self.send_frame('connected', {
            'user': serialize_user(self.user),
            'heartbeat_interval': settings.BOARD_WS_HEARTBEAT_INTERVAL,
        })

        logger.info("✅ WebSocket connected - %s", self.user.username)

    async def disconnect(self, close_code):
        if not hasattr(self, 'user_group_name'):
            return

        await self.leave_board()
        self.registry.unregister(self.channel_name)
        await self.channel_layer.group_discard(self.user_group_name, self.channel_name)

        logger.info("🔌 WebSocket disconnected - %s (%s)", self.user.username, close_code)

    async def receive(self, text_data=None, bytes_data=None):
        """Dispatches client intents; errors come back as `error` frames"""
        request_id = None
        try:
            try:
                data = json.loads(text_data or '')
            except json.JSONDecodeError:
                raise BadRequest('Malformed JSON')
            if not isinstance(data, dict):
                raise BadRequest('Message must be an object')

            request_id = data.get('request_id')
            message_type = data.get('type')

            if message_type == 'ping':
                await self.send_frame('pong', {'timestamp': timezone.now().isoformat()}, request_id)

            elif message_type == 'board:join':
                board_id = self.parse_board_id(data.get('board_id'))
                snapshot = await self.join_board(board_id)
                await self.send_frame('board:joined', snapshot, request_id)

            elif message_type == 'board:leave':
                await self.leave_board()
                await self.send_frame('board:left', {}, request_id)

            elif message_type == 'board:sync':
                if self.board_id is None:
                    raise BadRequest('Join a board first')
                snapshot = await self.get_board_state(self.board_id)
                await self.send_frame('board:sync', snapshot, request_id)

            elif message_type == 'cursor:move':
                await self.relay_cursor(data)

            else:
                raise BadRequest(f'Unknown message type: {message_type}')

        except BoardError as e:
            await self.send_error(e, request_id)
        except Exception:
            logger.exception("❌ WebSocket receive error from %s", self.user.username)
            await self.send_error(Internal(), request_id)

    # === Subscription ===

    async def join_board(self, board_id):
        if not await self.check_board_access(board_id):
            raise Forbidden('You are not a member of this board')

        if self.board_id is not None and self.board_id != board_id:
            await self.leave_board()

        self.board_id = board_id
        self.registry.enter(self.channel_name, board_id)
        await self.channel_layer.group_add(board_group(board_id), self.channel_name)
        await self.broadcast_presence(board_id)

        logger.info("👀 %s viewing board %s", self.user.username, board_id)
        return await self.get_board_state(board_id)

    async def leave_board(self):
        board_id = self.board_id
        if board_id is None:
            return

        self.board_id = None
        self.registry.leave(self.channel_name)
        await self.channel_layer.group_discard(board_group(board_id), self.channel_name)
        await self.broadcast_presence(board_id)

    async def relay_cursor(self, data):
        if self.board_id is None:
            raise BadRequest('Join a board first')
        x, y = self.parse_coordinate(data, 'x'), self.parse_coordinate(data, 'y')

        await self.channel_layer.group_send(board_group(self.board_id), {
            'type': BOARD_EVENT,
            'event': 'cursor:update',
            'board_id': self.board_id,
            'payload': {'user': serialize_user(self.user), 'x': x, 'y': y},
            'exclude': self.channel_name,
        })

    async def broadcast_presence(self, board_id):
        await self.channel_layer.group_send(board_group(board_id), {
            'type': BOARD_EVENT,
            'event': 'presence:update',
            'board_id': board_id,
            'payload': {'board_id': board_id, 'users': self.registry.viewers(board_id)},
        })

    # === Channel layer handlers ===

    async def board_event(self, event):
        """Relays a board event; stale deliveries for a board we left are dropped"""
        if event.get('board_id') != self.board_id:
            return
        if event.get('exclude') == self.channel_name:
            return
        await self.send_frame(event['event'], event['payload'])

    async def user_event(self, event):
        payload = event['payload']
        if event['event'] == 'board:removed' and payload.get('board_id') == self.board_id:
            await self.leave_board()
        await self.send_frame(event['event'], payload)

    # === Helpers ===

    async def send_frame(self, message_type, payload, request_id=None):
        frame = {'type': message_type, 'payload': payload}
        if request_id is not None:
            frame['request_id'] = request_id
        await self.send(text_data=json.dumps(frame))

    async def send_error(self, error, request_id=None):
        frame = {'type': 'error', 'success': False, 'error': error.to_dict()}
        if request_id is not None:
            frame['request_id'] = request_id
        await self.send(text_data=json.dumps(frame))

    @staticmethod
    def parse_board_id(value):
        if isinstance(value, bool):
            raise BadRequest('board_id must be an integer')
        try:
            return int(value)
        except (TypeError, ValueError):
            raise BadRequest('board_id must be an integer')

    @staticmethod
    def parse_coordinate(data, name):
        value = data.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise BadRequest(f'{name} must be a number')
        return value

    @database_sync_to_async
    def check_board_access(self, board_id):
        if not Board.objects.filter(pk=board_id).exists():
            raise NotFound('Board not found')
        return BoardPermissions.is_board_member(self.user, board_id)

    @database_sync_to_async
    def get_board_state(self, board_id):
        board = Board.objects.select_related('owner').filter(pk=board_id).first()
        if board is None:
            raise NotFound('Board not found')
        return serialize_board(board, online_users=self.registry.viewers(board_id))
