# apps/board/coordinator.py

"""
Move coordinator

Validates a move intent against server state, runs the ordering engine under
the serialization point of every sequence involved and returns the canonical
result. Checks short-circuit in this order:

1. requester authenticated           -> Unauthenticated
2. task exists and is not archived   -> NotFound
3. requester is a board member       -> Forbidden
4. target list on the same board,
   source list matches the task's    -> InvalidTarget
5. 0 <= target_index <= target count -> InvalidPosition

Checks 2, 4 and 5 run again on the locked state before any write, so a
concurrent mover never acts on a stale view of the sequence.
"""

import logging

from django.db.models import Case, Value, When

from apps.core.exceptions import Forbidden, InvalidPosition, InvalidTarget, NotFound
from apps.core.models import Task, TaskList
from apps.core.permissions import BoardPermissions, require_authenticated, require_board_member

from . import ordering
from .activity import record_activity
from .locking import board_key, list_key, serialize
from .realtime import publish_on_commit
from .serializers import canonical_task, serialize_list

logger = logging.getLogger(__name__)


def _load_active_task(task_id):
    task = Task.objects.select_related('task_list').filter(pk=task_id).first()
    if task is None or task.is_archived:
        raise NotFound('Task not found')
    return task


def _check_target(task, target_list_id, source_list_id):
    board_id = task.task_list.board_id
    target = TaskList.objects.filter(pk=target_list_id).first()
    if target is None or target.board_id != board_id:
        raise InvalidTarget('Target list does not belong to this board')
    if source_list_id is not None and int(source_list_id) != task.task_list_id:
        raise InvalidTarget('Task is no longer in the source list')
    return target


def _check_index(task, target, target_index):
    count = ordering.Sequence.tasks(target.pk).count(
        exclude_pk=task.pk if task.task_list_id == target.pk else None
    )
    if target_index < 0 or target_index > count:
        raise InvalidPosition(f'Position must be between 0 and {count}')


def move_task(user, task_id, target_list_id, target_index, source_list_id=None):
    """
    Moves a task to `target_index` of `target_list_id` and returns the
    canonical task

    `source_list_id` is the list the client believes the task is in; when
    given it must match the server's view. Moving a task onto its own
    position changes nothing and emits nothing.
    """
    require_authenticated(user)
    task = _load_active_task(task_id)
    board_id = task.task_list.board_id

    if not BoardPermissions.is_board_member(user, board_id):
        raise Forbidden('You are not a member of this board')

    target = _check_target(task, target_list_id, source_list_id)
    _check_index(task, target, target_index)

    with serialize(list_key(task.task_list_id), list_key(target.pk)):
        # Same checks against the locked state
        locked = _load_active_task(task_id)
        if locked.task_list_id != task.task_list_id:
            raise InvalidTarget('Task is no longer in the source list')
        target = _check_target(locked, target_list_id, source_list_id)
        _check_index(locked, target, target_index)

        source_list_id = locked.task_list_id
        from_position = locked.position

        if source_list_id == target.pk and from_position == target_index:
            return canonical_task(locked.pk)

        locked.version += 1
        ordering.apply_move(
            locked,
            ordering.Sequence.tasks(source_list_id),
            ordering.Sequence.tasks(target.pk),
            from_position,
            target_index,
            update_fields=('version', 'updated_at'),
        )

        data = canonical_task(locked.pk)
        publish_on_commit(board_id, 'task:move', {
            'task': data,
            'source_list_id': source_list_id,
            'target_list_id': target.pk,
            'from_position': from_position,
            'position': data['position'],
        })

    if source_list_id == target.pk:
        description = f'moved task "{data["title"]}" to position {data["position"]}'
    else:
        description = f'moved task "{data["title"]}" to "{target.name}"'
    record_activity(
        user, description, board=board_id, task=locked.pk, action='moved',
        metadata={'from_list_id': source_list_id, 'to_list_id': target.pk,
                  'from_position': from_position, 'position': data['position']},
    )

    logger.info("🔀 %s moved task %s: list %s[%s] -> list %s[%s]",
                user.username, locked.pk, source_list_id, from_position, target.pk, data['position'])
    return data


def _ordered_lists(board_id):
    return [serialize_list(tl) for tl in TaskList.objects.filter(board_id=board_id).order_by('position', 'pk')]


def reorder_lists(user, board_id, ordered_list_ids):
    """
    Assigns positions 0..N-1 following `ordered_list_ids`, which must be
    exactly the board's lists, each once
    """
    require_board_member(user, board_id)

    def check(current_ids):
        if len(ordered_list_ids) != len(set(ordered_list_ids)):
            raise InvalidTarget('Duplicate list ids')
        if set(ordered_list_ids) != set(current_ids):
            raise InvalidTarget("List ids must be exactly the board's lists")

    check(TaskList.objects.filter(board_id=board_id).values_list('pk', flat=True))

    with serialize(board_key(board_id)):
        check(TaskList.objects.filter(board_id=board_id).values_list('pk', flat=True))

        if ordered_list_ids:
            TaskList.objects.filter(board_id=board_id).update(position=Case(
                *[When(pk=pk, then=Value(index)) for index, pk in enumerate(ordered_list_ids)]
            ))

        lists = _ordered_lists(board_id)
        publish_on_commit(board_id, 'list:reorder', {'board_id': board_id, 'lists': lists})

    record_activity(user, 'reordered lists', board=board_id, action='reordered',
                    entity_type='board', entity_id=board_id)
    return lists


def move_list(user, list_id, target_index):
    """Moves one list to `target_index` within its board, returns the new order"""
    require_authenticated(user)
    task_list = TaskList.objects.filter(pk=list_id).first()
    if task_list is None:
        raise NotFound('List not found')
    board_id = task_list.board_id
    require_board_member(user, board_id)

    def check_index():
        count = ordering.Sequence.lists(board_id).count(exclude_pk=list_id)
        if target_index < 0 or target_index > count:
            raise InvalidPosition(f'Position must be between 0 and {count}')

    check_index()

    with serialize(board_key(board_id)):
        locked = TaskList.objects.filter(pk=list_id).first()
        if locked is None:
            raise NotFound('List not found')
        check_index()

        from_position = locked.position
        if from_position != target_index:
            sequence = ordering.Sequence.lists(board_id)
            ordering.apply_move(locked, sequence, sequence, from_position, target_index,
                                update_fields=('updated_at',))

        lists = _ordered_lists(board_id)
        if from_position != target_index:
            publish_on_commit(board_id, 'list:reorder', {'board_id': board_id, 'lists': lists})

    if from_position != target_index:
        record_activity(user, f'moved list "{locked.name}" to position {target_index}', board=board_id,
                        action='moved', entity_type='list', entity_id=locked.pk)
    return lists
