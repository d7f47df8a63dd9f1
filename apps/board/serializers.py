# apps/board/serializers.py

"""
Canonical JSON shapes

The same dicts are returned by the HTTP API and carried by real-time events,
so a receiver can replace its local copy with whatever it gets.
"""

from django.db.models import Count, Prefetch

from apps.core.models import Board, Task, TaskAssignee, TaskList
from apps.core.utils import serialize_user


def _iso(value):
    return value.isoformat() if value else None


def task_queryset():
    """Tasks with everything the canonical shape needs"""
    return (
        Task.objects
        .select_related('task_list', 'created_by')
        .prefetch_related(
            Prefetch('assignees', queryset=TaskAssignee.objects.select_related('user').order_by('assigned_at', 'pk'))
        )
        .annotate(comment_count=Count('comments', distinct=True))
    )


def canonical_task(task_id):
    return serialize_task(task_queryset().get(pk=task_id))


def serialize_task(task):
    comment_count = getattr(task, 'comment_count', None)
    if comment_count is None:
        comment_count = task.comments.count()

    return {
        'id': task.pk,
        'list_id': task.task_list_id,
        'board_id': task.task_list.board_id,
        'position': task.position,
        'title': task.title,
        'description': task.description,
        'priority': task.priority,
        'due_date': _iso(task.due_date),
        'labels': list(task.labels or []),
        'is_archived': task.is_archived,
        'version': task.version,
        'created_by': serialize_user(task.created_by),
        'assignees': [serialize_user(a.user) for a in task.assignees.all()],
        'comment_count': comment_count,
        'created_at': _iso(task.created_at),
        'updated_at': _iso(task.updated_at),
    }


def serialize_comment(comment):
    return {
        'id': comment.pk,
        'task_id': comment.task_id,
        'content': comment.content,
        'user': serialize_user(comment.user),
        'created_at': _iso(comment.created_at),
    }


def serialize_list(task_list, tasks=None):
    data = {
        'id': task_list.pk,
        'board_id': task_list.board_id,
        'name': task_list.name,
        'position': task_list.position,
        'created_at': _iso(task_list.created_at),
        'updated_at': _iso(task_list.updated_at),
    }
    if tasks is not None:
        data['tasks'] = [serialize_task(t) for t in tasks]
    return data


def serialize_member(member):
    return {
        'user': serialize_user(member.user),
        'role': member.role,
        'joined_at': _iso(member.joined_at),
    }


def serialize_board_summary(board):
    data = {
        'id': board.pk,
        'name': board.name,
        'description': board.description,
        'background': board.background,
        'is_archived': board.is_archived,
        'owner': serialize_user(board.owner),
        'created_at': _iso(board.created_at),
        'updated_at': _iso(board.updated_at),
    }
    for counter in ('list_count', 'member_count'):
        if hasattr(board, counter):
            data[counter] = getattr(board, counter)
    return data


def serialize_board(board, online_users=None):
    """Full board: ordered lists with their non-archived tasks, members"""
    lists = (
        TaskList.objects
        .filter(board=board)
        .order_by('position', 'pk')
        .prefetch_related(
            Prefetch(
                'tasks',
                queryset=task_queryset().filter(is_archived=False).order_by('position', 'pk'),
                to_attr='active_tasks',
            )
        )
    )

    data = serialize_board_summary(board)
    data['lists'] = [serialize_list(tl, tl.active_tasks) for tl in lists]
    data['members'] = [
        serialize_member(m)
        for m in board.members.select_related('user').order_by('joined_at', 'pk')
    ]
    data['online_users'] = online_users or []
    return data


def serialize_activity(activity):
    return {
        'id': activity.pk,
        'action': activity.action,
        'entity_type': activity.entity_type,
        'entity_id': activity.entity_id,
        'description': activity.description,
        'metadata': activity.metadata,
        'user': serialize_user(activity.user),
        'board_id': activity.board_id,
        'task_id': activity.task_id,
        'created_at': _iso(activity.created_at),
    }


def board_with_counts(queryset=None):
    qs = queryset if queryset is not None else Board.objects.all()
    return qs.select_related('owner').annotate(
        list_count=Count('lists', distinct=True),
        member_count=Count('members', distinct=True),
    )
