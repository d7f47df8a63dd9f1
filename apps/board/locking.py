# apps/board/locking.py

"""
Serialization point for position writes

Two layers, both bounded by one BOARD_LOCK_TIMEOUT deadline:

1. an in-process lock per key, so threads of one worker queue up without
   touching the database;
2. inside the transaction, row locks (SELECT ... FOR UPDATE) on the parent
   rows, which serialize workers in different processes. On PostgreSQL the
   wait is bounded with a transaction-local lock_timeout set to the time
   left before the deadline.

Keys are ('board', id) for a board's list sequence and ('list', id) for a
list's task sequence. They are always taken in sorted order. Failing to get
any of them in time raises Busy, which the client may retry. So does a lock
timeout hit later in the transaction.

Process locks only live while someone holds or waits on them, so the map
does not grow with every list ever touched.
"""

import logging
import threading
import time
from contextlib import contextmanager

from django.conf import settings
from django.db import OperationalError, connection, transaction

from apps.core.exceptions import Busy
from apps.core.models import Board, TaskList

logger = logging.getLogger(__name__)

# PostgreSQL lock_not_available, deadlock_detected
LOCK_SQLSTATES = {'55P03', '40P01'}

_registry_lock = threading.Lock()
# key -> [lock, holders and waiters]
_locks = {}


def board_key(board_id):
    return ('board', int(board_id))


def list_key(list_id):
    return ('list', int(list_id))


def _unref(key, entry):
    # Caller holds _registry_lock
    entry[1] -= 1
    if not entry[1]:
        del _locks[key]


def _acquire(key, timeout):
    """Takes the process lock of `key`; False when `timeout` runs out"""
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            entry = _locks[key] = [threading.Lock(), 0]
        entry[1] += 1

    if entry[0].acquire(timeout=max(0.0, timeout)):
        return True

    with _registry_lock:
        _unref(key, entry)
    return False


def _release(key):
    with _registry_lock:
        entry = _locks[key]
        entry[0].release()
        _unref(key, entry)


@contextmanager
def _process_locks(keys, timeout):
    deadline = time.monotonic() + timeout
    held = []
    try:
        for key in keys:
            if not _acquire(key, deadline - time.monotonic()):
                logger.warning("⏳ Timed out waiting for %s:%s", *key)
                raise Busy()
            held.append(key)
        yield deadline
    finally:
        for key in reversed(held):
            _release(key)


def is_lock_timeout(error):
    """True for database errors caused by waiting on a lock"""
    cause = error.__cause__
    code = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if code in LOCK_SQLSTATES:
        return True
    # SQLite
    return 'database is locked' in str(error)


def _lock_rows(keys, remaining):
    if connection.vendor == 'postgresql':
        # 0 would disable the timeout
        with connection.cursor() as cursor:
            cursor.execute(
                "SELECT set_config('lock_timeout', %s, true)",
                [f"{max(1, int(remaining * 1000))}ms"],
            )

    board_ids = [key_id for kind, key_id in keys if kind == 'board']
    list_ids = [key_id for kind, key_id in keys if kind == 'list']

    # Boards before lists, each by primary key
    if board_ids:
        list(Board.objects.select_for_update().filter(pk__in=board_ids).order_by('pk').values_list('pk', flat=True))
    if list_ids:
        list(TaskList.objects.select_for_update().filter(pk__in=list_ids).order_by('pk').values_list('pk', flat=True))


@contextmanager
def serialize(*keys, timeout=None):
    """
    Holds the serialization point of every key for the duration of one
    transaction

        with serialize(list_key(source_id), list_key(target_id)):
            ...  # read, validate, shift

    The transaction commits (or rolls back) before the locks are released.
    """
    timeout = settings.BOARD_LOCK_TIMEOUT if timeout is None else timeout
    ordered = sorted(set(keys))

    with _process_locks(ordered, timeout) as deadline:
        try:
            with transaction.atomic():
                _lock_rows(ordered, deadline - time.monotonic())
                yield
        except OperationalError as e:
            if not is_lock_timeout(e):
                raise
            logger.warning("⏳ Row lock not acquired for %s: %s", ordered, e)
            raise Busy() from e
