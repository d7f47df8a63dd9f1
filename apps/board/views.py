# apps/board/views.py

from apps.core.permissions import api_view
from apps.core.utils import api_success

from . import coordinator, forms, services


# === Boards ===

@api_view('GET', 'POST')
def boards(request):
    """
    GET  - boards of the current user (?search=&archived=&page=&limit=)
    POST - create a board with the default lists
    """
    if request.method == 'POST':
        board = services.create_board(request.user, request.data)
        return api_success(board, 'Board created successfully', status=201)

    items, pagination = services.list_boards(request.user, request.GET)
    return api_success(items, pagination=pagination)


@api_view('GET', 'PATCH', 'DELETE')
def board_detail(request, board_id):
    if request.method == 'PATCH':
        board = services.update_board(request.user, board_id, request.data)
        return api_success(board, 'Board updated successfully')

    if request.method == 'DELETE':
        services.delete_board(request.user, board_id)
        return api_success(None, 'Board deleted successfully')

    return api_success(services.get_board(request.user, board_id))


@api_view('POST')
def board_members(request, board_id):
    member = services.add_member(request.user, board_id, request.data)
    return api_success(member, 'Member added successfully', status=201)


@api_view('DELETE')
def board_member_detail(request, board_id, user_id):
    services.remove_member(request.user, board_id, user_id)
    return api_success(None, 'Member removed successfully')


@api_view('GET')
def board_activities(request, board_id):
    items, pagination = services.list_activities(request.user, board_id, request.GET)
    return api_success(items, pagination=pagination)


@api_view('GET')
def board_presence(request, board_id):
    return api_success(services.board_presence(request.user, board_id))


# === Lists ===

@api_view('POST')
def board_lists(request, board_id):
    task_list = services.create_list(request.user, board_id, request.data)
    return api_success(task_list, 'List created successfully', status=201)


@api_view('PUT')
def list_order(request, board_id):
    cleaned = forms.validated(forms.ListOrderForm(data=request.data))
    lists = coordinator.reorder_lists(request.user, board_id, cleaned['list_ids'])
    return api_success(lists, 'Lists reordered successfully')


@api_view('PATCH', 'DELETE')
def list_detail(request, list_id):
    if request.method == 'DELETE':
        services.delete_list(request.user, list_id)
        return api_success(None, 'List deleted successfully')

    task_list = services.update_list(request.user, list_id, request.data)
    return api_success(task_list, 'List updated successfully')


@api_view('POST')
def list_move(request, list_id):
    cleaned = forms.validated(forms.MoveListForm(data=request.data))
    lists = coordinator.move_list(request.user, list_id, cleaned['position'])
    return api_success(lists, 'List moved successfully')


# === Tasks ===

@api_view('POST')
def tasks(request):
    task = services.create_task(request.user, request.data)
    return api_success(task, 'Task created successfully', status=201)


@api_view('GET')
def task_search(request):
    """?query=&priority=&board_id=&assignee_id=&page=&limit="""
    items, pagination = services.search_tasks(request.user, request.GET)
    return api_success(items, pagination=pagination)


@api_view('GET', 'PATCH', 'DELETE')
def task_detail(request, task_id):
    if request.method == 'PATCH':
        task = services.update_task(request.user, task_id, request.data)
        return api_success(task, 'Task updated successfully')

    if request.method == 'DELETE':
        services.delete_task(request.user, task_id)
        return api_success(None, 'Task deleted successfully')

    return api_success(services.get_task(request.user, task_id))


@api_view('POST')
def task_move(request, task_id):
    """
    Move intent from drag-and-drop

    Body: {"list_id": target list, "position": target index,
           "source_list_id": list the client saw the task in}
    """
    cleaned = forms.validated(forms.MoveTaskForm(data=request.data))
    task = coordinator.move_task(
        request.user,
        task_id,
        target_list_id=cleaned['list_id'],
        target_index=cleaned['position'],
        source_list_id=cleaned['source_list_id'],
    )
    return api_success(task, 'Task moved successfully')


@api_view('POST')
def task_assignees(request, task_id):
    task = services.assign_task(request.user, task_id, request.data)
    return api_success(task, 'User assigned successfully')


@api_view('DELETE')
def task_assignee_detail(request, task_id, user_id):
    task = services.unassign_task(request.user, task_id, user_id)
    return api_success(task, 'User unassigned successfully')


@api_view('POST')
def task_comments(request, task_id):
    comment = services.add_comment(request.user, task_id, request.data)
    return api_success(comment, 'Comment added successfully', status=201)
