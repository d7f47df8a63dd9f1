# apps/board/reconciliation.py

"""
Client reconciliation - optimistic board cache

Keeps the last server-confirmed board plus a queue of pending local moves.
What the user sees is the confirmed board with the pending moves replayed on
top. Both paths go through the same reducer, `splice_task`, which mirrors the
server's ordering engine: take the task out of its list (later tasks move
up), insert it at the target index (later tasks move down).

Lifecycle of a local move:
- begin_move      applies it optimistically, returns a request id
- confirm         folds the server's canonical task into the confirmed board
- reject          drops it, the view falls back to the confirmed board

Events from the server are applied to the confirmed board with apply_event.
Stale or duplicate task events (version not newer than ours) are ignored.
The cache is marked `stale` when it can tell an event was missed: a list or
task it doesn't know, or a task version that skips ahead. Fetch the full
board again and call reset(). After `board:delete` the cache is `deleted`.
"""

import copy
import logging
import uuid
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

Columns = Dict[int, List[dict]]


def _renumber(tasks: List[dict]) -> None:
    for index, task in enumerate(tasks):
        task['position'] = index


def splice_task(columns: Columns, task: dict, target_list_id: int, target_index: int) -> Columns:
    """
    Returns new columns with `task` removed from wherever it is and inserted
    at `target_index` (clamped) of `target_list_id`; positions renumbered
    """
    result = {}
    for list_id, tasks in columns.items():
        kept = [dict(t) for t in tasks if t['id'] != task['id']]
        if len(kept) != len(tasks):
            _renumber(kept)
        result[list_id] = kept

    target = result[target_list_id]
    index = max(0, min(target_index, len(target)))
    target.insert(index, dict(task, list_id=target_list_id, position=index))
    _renumber(target)
    return result


def remove_task(columns: Columns, task_id: int) -> Columns:
    result = {}
    for list_id, tasks in columns.items():
        kept = [dict(t) for t in tasks if t['id'] != task_id]
        if len(kept) != len(tasks):
            _renumber(kept)
        result[list_id] = kept
    return result


def find_task(columns: Columns, task_id: int) -> Optional[dict]:
    for tasks in columns.values():
        for task in tasks:
            if task['id'] == task_id:
                return task
    return None


class BoardCache:
    """Confirmed board, pending intents and the visible result"""

    def __init__(self, board: dict):
        self.reset(board)

    def reset(self, board: dict) -> None:
        """Replaces everything with a full board snapshot"""
        self.board = {k: v for k, v in board.items() if k != 'lists'}
        self.lists = {}
        self.columns = {}
        for task_list in sorted(board.get('lists', []), key=lambda tl: tl['position']):
            meta = {k: v for k, v in task_list.items() if k != 'tasks'}
            self.lists[meta['id']] = meta
            tasks = sorted(task_list.get('tasks', []), key=lambda t: t['position'])
            self.columns[meta['id']] = [dict(t) for t in tasks]
        self.pending = {}
        self.stale = False
        self.deleted = False

    # === Local intents ===

    def begin_move(self, task_id: int, target_list_id: int, target_index: int) -> str:
        if find_task(self.visible(), task_id) is None:
            raise KeyError(f'Unknown task {task_id}')
        if target_list_id not in self.columns:
            raise KeyError(f'Unknown list {target_list_id}')

        request_id = uuid.uuid4().hex
        self.pending[request_id] = {
            'task_id': task_id,
            'target_list_id': target_list_id,
            'target_index': target_index,
        }
        return request_id

    def source_of(self, request_id: str) -> Optional[int]:
        """List the task is in, as the server should see it before the move"""
        intent = self.pending.get(request_id)
        if intent is None:
            return None
        task = find_task(self.columns, intent['task_id'])
        return task['list_id'] if task else None

    def confirm(self, request_id: str, task: dict) -> None:
        """Own move succeeded: `task` is the canonical task from the response"""
        self.pending.pop(request_id, None)
        self._apply_task_position(task)

    def reject(self, request_id: str) -> None:
        """Own move failed: the optimistic change disappears"""
        self.pending.pop(request_id, None)

    # === Views ===

    def visible(self) -> Columns:
        columns = copy.deepcopy(self.columns)
        for intent in self.pending.values():
            task = find_task(columns, intent['task_id'])
            if task is None or intent['target_list_id'] not in columns:
                continue
            columns = splice_task(columns, task, intent['target_list_id'], intent['target_index'])
        return columns

    def order(self, list_id: int, visible: bool = True) -> List[int]:
        columns = self.visible() if visible else self.columns
        return [t['id'] for t in columns[list_id]]

    def list_order(self) -> List[int]:
        return [meta['id'] for meta in sorted(self.lists.values(), key=lambda m: m['position'])]

    # === Server events ===

    def apply_event(self, event_type: str, payload: dict) -> bool:
        """Folds a server event into the confirmed board; False when ignored"""
        handler = self._handlers().get(event_type)
        if handler is None:
            return False
        return handler(payload)

    def _handlers(self):
        return {
            'task:move': self._on_task_move,
            'task:create': self._apply_task_position,
            'task:update': self._on_task_update,
            'task:delete': self._on_task_delete,
            'list:create': self._on_list_create,
            'list:update': self._on_list_update,
            'list:delete': self._on_list_delete,
            'list:reorder': self._on_list_reorder,
            'board:update': self._on_board_update,
            'board:delete': self._on_board_delete,
            'member:join': self._on_member_join,
            'member:leave': self._on_member_leave,
            'presence:update': self._on_presence,
        }

    def _is_newer(self, task: dict) -> bool:
        current = find_task(self.columns, task['id'])
        return current is None or task['version'] > current['version']

    def _apply_task_position(self, task: dict) -> bool:
        if task['list_id'] not in self.columns:
            self._mark_stale(f"unknown list {task['list_id']}")
            return False
        if not self._is_newer(task):
            return False
        self.columns = splice_task(self.columns, task, task['list_id'], task['position'])
        return True

    def _check_version_gap(self, current: dict, task: dict) -> None:
        # Every task mutation bumps the version by one and emits an event
        if task['version'] > current['version'] + 1:
            self._mark_stale(f"missed updates of task {task['id']}")

    def _on_task_move(self, payload: dict) -> bool:
        task = payload['task']
        current = find_task(self.columns, task['id'])
        if current is None:
            self._mark_stale(f"unknown task {task['id']}")
            return False
        self._check_version_gap(current, task)
        return self._apply_task_position(task)

    def _on_task_update(self, task: dict) -> bool:
        if task.get('is_archived'):
            if find_task(self.columns, task['id']) is None:
                return False
            self.columns = remove_task(self.columns, task['id'])
            return True

        current = find_task(self.columns, task['id'])
        if current is None:
            # Restored from the archive
            return self._apply_task_position(task)
        if task['version'] <= current['version']:
            return False
        self._check_version_gap(current, task)
        if (task['list_id'], task['position']) != (current['list_id'], current['position']):
            return self._apply_task_position(task)
        current.update(task)
        return True

    def _on_task_delete(self, payload: dict) -> bool:
        if find_task(self.columns, payload['id']) is None:
            return False
        self.columns = remove_task(self.columns, payload['id'])
        self.pending = {
            rid: intent for rid, intent in self.pending.items() if intent['task_id'] != payload['id']
        }
        return True

    def _on_list_create(self, payload: dict) -> bool:
        if payload['id'] in self.lists:
            return False
        self.lists[payload['id']] = {k: v for k, v in payload.items() if k != 'tasks'}
        self.columns[payload['id']] = [dict(t) for t in payload.get('tasks', [])]
        return True

    def _on_list_update(self, payload: dict) -> bool:
        if payload['id'] not in self.lists:
            self._mark_stale(f"unknown list {payload['id']}")
            return False
        self.lists[payload['id']].update(payload)
        return True

    def _on_list_delete(self, payload: dict) -> bool:
        if self.lists.pop(payload['id'], None) is None:
            return False
        self.columns.pop(payload['id'], None)
        for meta in self.lists.values():
            if meta['position'] > payload['position']:
                meta['position'] -= 1
        self.pending = {
            rid: intent for rid, intent in self.pending.items() if intent['target_list_id'] != payload['id']
        }
        return True

    def _on_list_reorder(self, payload: dict) -> bool:
        known = set(self.lists)
        incoming = {meta['id'] for meta in payload['lists']}
        if incoming != known:
            self._mark_stale('list set differs from the server')
            return False
        for meta in payload['lists']:
            self.lists[meta['id']].update(meta)
        return True

    def _on_board_update(self, payload: dict) -> bool:
        self.board.update(payload)
        return True

    def _on_board_delete(self, payload: dict) -> bool:
        if self.deleted:
            return False
        self.deleted = True
        self.pending = {}
        logger.info("Board %s was deleted", payload['id'])
        return True

    def _on_member_join(self, payload: dict) -> bool:
        members = self.board.setdefault('members', [])
        user_id = payload['member']['user']['id']
        if any(m['user']['id'] == user_id for m in members):
            return False
        members.append(payload['member'])
        return True

    def _on_member_leave(self, payload: dict) -> bool:
        members = self.board.get('members', [])
        kept = [m for m in members if m['user']['id'] != payload['user_id']]
        if len(kept) == len(members):
            return False
        self.board['members'] = kept
        return True

    def _on_presence(self, payload: dict) -> bool:
        self.board['online_users'] = payload['users']
        return True

    def _mark_stale(self, reason: str) -> None:
        if not self.stale:
            logger.info("Board cache stale: %s", reason)
        self.stale = True
