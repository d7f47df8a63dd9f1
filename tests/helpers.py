# tests/helpers.py

from apps.core.models import Task, TaskList


def order_of(task_list):
    """(title, position) pairs of the list's active tasks, in order"""
    return list(
        Task.objects.filter(task_list_id=getattr(task_list, 'pk', task_list), is_archived=False)
        .order_by('position', 'pk')
        .values_list('title', 'position')
    )


def positions_of(task_list):
    return list(
        Task.objects.filter(task_list_id=getattr(task_list, 'pk', task_list), is_archived=False)
        .order_by('position', 'pk')
        .values_list('position', flat=True)
    )


def list_positions(board):
    return list(
        TaskList.objects.filter(board_id=getattr(board, 'pk', board)).order_by('position', 'pk').values_list('position', flat=True)
    )


def assert_dense(positions):
    assert sorted(positions) == list(range(len(positions))), positions
