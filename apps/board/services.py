# apps/board/services.py

"""
Board operations

Every mutation validates and authorizes first, writes inside one transaction
(position changes under the serialization point), schedules its real-time
event for after the commit and records an activity entry. Functions return
the canonical dicts from `apps.board.serializers`.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, Q

from apps.core.exceptions import BadRequest, Conflict, Forbidden, InvalidTarget, NotFound
from apps.core.models import Activity, Board, BoardMember, Comment, Task, TaskAssignee, TaskList
from apps.core.permissions import BoardPermissions, require_authenticated, require_board_member, require_board_owner
from apps.core.utils import paginate

from . import forms, ordering
from .activity import record_activity
from .locking import board_key, list_key, serialize
from .realtime import get_registry, notify_user_on_commit, publish_on_commit
from .serializers import (
    board_with_counts,
    canonical_task,
    serialize_activity,
    serialize_board,
    serialize_board_summary,
    serialize_comment,
    serialize_list,
    serialize_member,
    serialize_task,
    task_queryset,
)

logger = logging.getLogger(__name__)

User = get_user_model()


# === Boards ===

def list_boards(user, params):
    """Boards the user belongs to, newest activity first"""
    require_authenticated(user)
    filters = forms.validated(forms.BoardFilterForm(data=params))

    qs = Board.objects.filter(
        pk__in=BoardMember.objects.filter(user=user).values('board_id'),
        is_archived=filters['archived'],
    )
    if filters['search']:
        qs = qs.filter(Q(name__icontains=filters['search']) | Q(description__icontains=filters['search']))

    boards, pagination = paginate(board_with_counts(qs).order_by('-updated_at', '-pk'), params)
    return [serialize_board_summary(b) for b in boards], pagination


def get_board(user, board_id):
    board = require_board_member(user, board_id)
    return serialize_board(board, online_users=get_registry().viewers(board.pk))


def create_board(user, data):
    require_authenticated(user)
    form = forms.BoardForm(data=data)
    forms.validated(form)

    with transaction.atomic():
        board = form.save(commit=False)
        board.owner = user
        # post_save adds the owner as member and creates the default lists
        board.save()

    record_activity(user, f'created board "{board.name}"', board=board, action='created')
    logger.info("📋 %s created board %s", user.username, board.pk)
    return serialize_board(board)


def update_board(user, board_id, data):
    board = require_board_member(user, board_id)
    was_archived = board.is_archived
    form = forms.bind_partial(forms.BoardUpdateForm, board, data)
    cleaned = forms.validated(form)

    # Validation already copied the cleaned values onto `board`
    archiving = cleaned['is_archived'] != was_archived
    if archiving and not BoardPermissions.is_board_owner(user, board):
        raise Forbidden('Only the board owner can archive the board')

    with transaction.atomic():
        board = form.save()
        summary = serialize_board_summary(board)
        publish_on_commit(board.pk, 'board:update', summary)

    if archiving:
        description = f'{"archived" if board.is_archived else "restored"} board "{board.name}"'
    else:
        description = f'updated board "{board.name}"'
    record_activity(user, description, board=board, action='archived' if archiving else 'updated')
    return summary


def delete_board(user, board_id):
    board = require_board_owner(user, board_id, 'Only the board owner can delete the board')
    board_pk, name = board.pk, board.name

    with transaction.atomic():
        board.delete()
        publish_on_commit(board_pk, 'board:delete', {'id': board_pk})

    # The board is gone, so the entry is not attached to it
    record_activity(user, f'deleted board "{name}"', action='deleted', entity_type='board', entity_id=board_pk)
    logger.info("🗑️ %s deleted board %s", user.username, board_pk)


# === Members ===

def add_member(user, board_id, data):
    board = require_board_owner(user, board_id, 'Only the board owner can add members')
    cleaned = forms.validated(forms.MemberForm(data=data))

    lookup = Q(username=cleaned['username']) if cleaned['username'] else Q(email__iexact=cleaned['email'])
    invitee = User.objects.filter(lookup, is_active=True).first()
    if invitee is None:
        raise NotFound('User not found')

    try:
        with transaction.atomic():
            member = BoardMember.objects.create(board=board, user=invitee, role=cleaned['role'])
    except IntegrityError:
        raise Conflict('User is already a member of this board')

    data = serialize_member(member)
    publish_on_commit(board.pk, 'member:join', {'board_id': board.pk, 'member': data})
    notify_user_on_commit(invitee.pk, 'board:invited', serialize_board_summary(board))
    record_activity(user, f'added {invitee.username} to the board', board=board, action='added',
                    entity_type='member', entity_id=invitee.pk)
    return data


def remove_member(user, board_id, member_user_id):
    """Removes a member and drops their assignments on the board's tasks"""
    board = require_board_owner(user, board_id, 'Only the board owner can remove members')
    if int(member_user_id) == board.owner_id:
        raise BadRequest('The board owner cannot be removed')

    member = BoardMember.objects.select_related('user').filter(board=board, user_id=member_user_id).first()
    if member is None:
        raise NotFound('Member not found')

    with transaction.atomic():
        assignments = TaskAssignee.objects.filter(task__task_list__board=board, user_id=member_user_id)
        task_ids = list(assignments.values_list('task_id', flat=True))
        assignments.delete()
        member.delete()

        if task_ids:
            Task.objects.filter(pk__in=task_ids).update(version=F('version') + 1)
            for task in task_queryset().filter(pk__in=task_ids):
                publish_on_commit(board.pk, 'task:update', serialize_task(task))

        publish_on_commit(board.pk, 'member:leave', {'board_id': board.pk, 'user_id': member.user_id})
        notify_user_on_commit(member.user_id, 'board:removed', {'board_id': board.pk})

    record_activity(user, f'removed {member.user.username} from the board', board=board, action='removed',
                    entity_type='member', entity_id=member.user_id)


def board_presence(user, board_id):
    board = require_board_member(user, board_id)
    return get_registry().viewers(board.pk)


def list_activities(user, board_id, params):
    board = require_board_member(user, board_id)
    qs = Activity.objects.filter(board=board).select_related('user').order_by('-created_at', '-pk')
    activities, pagination = paginate(qs, params)
    return [serialize_activity(a) for a in activities], pagination


# === Lists ===

def _load_list(user, list_id):
    require_authenticated(user)
    task_list = TaskList.objects.filter(pk=list_id).first()
    if task_list is None:
        raise NotFound('List not found')
    require_board_member(user, task_list.board_id)
    return task_list


def create_list(user, board_id, data):
    board = require_board_member(user, board_id)
    form = forms.TaskListForm(data=data)
    forms.validated(form)

    with serialize(board_key(board.pk)):
        task_list = form.save(commit=False)
        task_list.board = board
        task_list.position = ordering.next_position(ordering.Sequence.lists(board.pk))
        task_list.save()

        payload = serialize_list(task_list, tasks=[])
        publish_on_commit(board.pk, 'list:create', payload)

    record_activity(user, f'created list "{task_list.name}"', board=board, action='created',
                    entity_type='list', entity_id=task_list.pk)
    return payload


def update_list(user, list_id, data):
    task_list = _load_list(user, list_id)
    form = forms.bind_partial(forms.TaskListForm, task_list, data)
    forms.validated(form)

    with transaction.atomic():
        task_list = form.save()
        payload = serialize_list(task_list)
        publish_on_commit(task_list.board_id, 'list:update', payload)

    record_activity(user, f'renamed list to "{task_list.name}"', board=task_list.board_id, action='updated',
                    entity_type='list', entity_id=task_list.pk)
    return payload


def delete_list(user, list_id):
    """Deletes a list with its tasks and closes the gap in the board's order"""
    task_list = _load_list(user, list_id)
    board_id = task_list.board_id

    with serialize(board_key(board_id), list_key(task_list.pk)):
        locked = TaskList.objects.filter(pk=task_list.pk).first()
        if locked is None:
            raise NotFound('List not found')

        position = locked.position
        locked.delete()
        ordering.reindex_for_removal(ordering.Sequence.lists(board_id), position)

        publish_on_commit(board_id, 'list:delete', {'id': task_list.pk, 'board_id': board_id, 'position': position})

    record_activity(user, f'deleted list "{task_list.name}"', board=board_id, action='deleted',
                    entity_type='list', entity_id=task_list.pk)


# === Tasks ===

def _load_task(user, task_id):
    require_authenticated(user)
    task = Task.objects.select_related('task_list').filter(pk=task_id).first()
    if task is None:
        raise NotFound('Task not found')
    if not BoardPermissions.is_board_member(user, task.task_list.board_id):
        raise Forbidden('You are not a member of this board')
    return task


def _check_assignees(board_id, user_ids):
    found = set(
        BoardMember.objects.filter(board_id=board_id, user_id__in=user_ids).values_list('user_id', flat=True)
    )
    missing = [uid for uid in user_ids if uid not in found]
    if missing:
        raise InvalidTarget(f'Users {missing} are not members of this board')


def create_task(user, data):
    """Creates a task appended to the end of its list"""
    require_authenticated(user)
    form = forms.TaskCreateForm(data=data)
    cleaned = forms.validated(form)

    task_list = TaskList.objects.filter(pk=cleaned['list_id']).first()
    if task_list is None:
        raise NotFound('List not found')
    board_id = task_list.board_id
    require_board_member(user, board_id)
    _check_assignees(board_id, cleaned['assignee_ids'])

    with serialize(list_key(task_list.pk)):
        if not TaskList.objects.filter(pk=task_list.pk).exists():
            raise NotFound('List not found')

        task = form.save(commit=False)
        task.task_list = task_list
        task.created_by = user
        task.position = ordering.next_position(ordering.Sequence.tasks(task_list.pk))
        task.save()
        TaskAssignee.objects.bulk_create(
            [TaskAssignee(task=task, user_id=uid) for uid in cleaned['assignee_ids']]
        )

        payload = canonical_task(task.pk)
        publish_on_commit(board_id, 'task:create', payload)

    record_activity(user, f'created task "{task.title}" in "{task_list.name}"', board=board_id, task=task.pk,
                    action='created')
    return payload


def get_task(user, task_id, comment_limit=10):
    """Canonical task with its latest comments"""
    task = _load_task(user, task_id)
    data = canonical_task(task.pk)
    comments = Comment.objects.filter(task_id=task.pk).select_related('user').order_by('-created_at', '-pk')
    data['comments'] = [serialize_comment(c) for c in comments[:comment_limit]]
    return data


def update_task(user, task_id, data):
    """
    Edits task fields. Archiving takes the task out of its list's order,
    restoring it appends it to the end.
    """
    task = _load_task(user, task_id)
    form = forms.bind_partial(forms.TaskUpdateForm, task, data)
    cleaned = forms.validated(form)
    board_id = task.task_list.board_id

    with serialize(list_key(task.task_list_id)):
        locked = Task.objects.filter(pk=task.pk).first()
        if locked is None:
            raise NotFound('Task not found')
        if locked.task_list_id != task.task_list_id:
            # Moved while we were validating; its list is not the one we hold
            raise InvalidTarget('Task was moved, retry the update')

        sequence = ordering.Sequence.tasks(locked.task_list_id)
        was_archived = locked.is_archived

        if cleaned['is_archived'] and not was_archived:
            ordering.reindex_for_removal(sequence, locked.position, exclude_pk=locked.pk)
        elif was_archived and not cleaned['is_archived']:
            locked.position = ordering.next_position(sequence)

        for field in ('title', 'description', 'priority', 'due_date', 'labels', 'is_archived'):
            setattr(locked, field, cleaned[field])
        locked.version = F('version') + 1
        locked.save()

        payload = canonical_task(locked.pk)
        publish_on_commit(board_id, 'task:update', payload)

    if cleaned['is_archived'] != was_archived:
        action = 'archived' if cleaned['is_archived'] else 'restored'
    else:
        action = 'updated'
    record_activity(user, f'{action} task "{payload["title"]}"', board=board_id, task=task.pk, action=action)
    return payload


def delete_task(user, task_id):
    task = _load_task(user, task_id)
    board_id = task.task_list.board_id

    with serialize(list_key(task.task_list_id)):
        locked = Task.objects.filter(pk=task.pk).first()
        if locked is None:
            raise NotFound('Task not found')
        if locked.task_list_id != task.task_list_id:
            raise InvalidTarget('Task was moved, retry the delete')

        list_id, position, archived = locked.task_list_id, locked.position, locked.is_archived
        locked.delete()
        if not archived:
            ordering.reindex_for_removal(ordering.Sequence.tasks(list_id), position)

        publish_on_commit(board_id, 'task:delete', {
            'id': task.pk, 'list_id': list_id, 'board_id': board_id, 'position': position,
        })

    record_activity(user, f'deleted task "{task.title}"', board=board_id, action='deleted',
                    entity_type='task', entity_id=task.pk)


def _bump_and_publish(task):
    Task.objects.filter(pk=task.pk).update(version=F('version') + 1)
    payload = canonical_task(task.pk)
    publish_on_commit(payload['board_id'], 'task:update', payload)
    return payload


def assign_task(user, task_id, data):
    task = _load_task(user, task_id)
    cleaned = forms.validated(forms.AssigneeForm(data=data))
    board_id = task.task_list.board_id

    assignee = User.objects.filter(pk=cleaned['user_id']).first()
    if assignee is None:
        raise NotFound('User not found')
    _check_assignees(board_id, [assignee.pk])

    try:
        with transaction.atomic():
            TaskAssignee.objects.create(task=task, user=assignee)
            payload = _bump_and_publish(task)
    except IntegrityError:
        raise Conflict('User is already assigned to this task')

    record_activity(user, f'assigned {assignee.username} to "{task.title}"', board=board_id, task=task.pk,
                    action='assigned', metadata={'user_id': assignee.pk})
    return payload


def unassign_task(user, task_id, assignee_id):
    task = _load_task(user, task_id)
    board_id = task.task_list.board_id

    with transaction.atomic():
        deleted, _ = TaskAssignee.objects.filter(task=task, user_id=assignee_id).delete()
        if not deleted:
            raise NotFound('User is not assigned to this task')
        payload = _bump_and_publish(task)

    record_activity(user, f'unassigned a user from "{task.title}"', board=board_id, task=task.pk,
                    action='unassigned', metadata={'user_id': int(assignee_id)})
    return payload


def add_comment(user, task_id, data):
    task = _load_task(user, task_id)
    cleaned = forms.validated(forms.CommentForm(data=data))

    with transaction.atomic():
        comment = Comment.objects.create(task=task, user=user, content=cleaned['content'])
        _bump_and_publish(task)

    record_activity(user, f'commented on "{task.title}"', board=task.task_list.board_id, task=task.pk,
                    action='commented')
    return serialize_comment(comment)


def search_tasks(user, params):
    """Non-archived tasks on the user's boards matching the filters"""
    require_authenticated(user)
    filters = forms.validated(forms.TaskSearchForm(data=params))

    qs = task_queryset().filter(
        is_archived=False,
        task_list__board_id__in=BoardMember.objects.filter(user=user).values('board_id'),
    )
    if filters['query']:
        qs = qs.filter(Q(title__icontains=filters['query']) | Q(description__icontains=filters['query']))
    if filters['priority']:
        qs = qs.filter(priority=filters['priority'])
    if filters['board_id']:
        qs = qs.filter(task_list__board_id=filters['board_id'])
    if filters['assignee_id']:
        qs = qs.filter(pk__in=TaskAssignee.objects.filter(user_id=filters['assignee_id']).values('task_id'))

    tasks, pagination = paginate(qs.order_by('-updated_at', '-pk'), params)
    return [serialize_task(t) for t in tasks], pagination
