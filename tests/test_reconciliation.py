# tests/test_reconciliation.py

import pytest

from apps.board.reconciliation import BoardCache, find_task, remove_task, splice_task


def make_task(task_id, list_id, position, version=1, **extra):
    return dict({'id': task_id, 'list_id': list_id, 'position': position, 'version': version,
                 'title': f'T{task_id}', 'is_archived': False}, **extra)


@pytest.fixture
def snapshot():
    """List 1 = [T1, T2, T3], list 2 = [T4], list 3 empty"""
    return {
        'id': 9,
        'name': 'Roadmap',
        'online_users': [],
        'lists': [
            {'id': 2, 'name': 'Doing', 'position': 1,
             'tasks': [make_task(4, 2, 0)]},
            {'id': 1, 'name': 'Todo', 'position': 0,
             'tasks': [make_task(3, 1, 2), make_task(1, 1, 0), make_task(2, 1, 1)]},
            {'id': 3, 'name': 'Done', 'position': 2, 'tasks': []},
        ],
    }


@pytest.fixture
def cache(snapshot):
    return BoardCache(snapshot)


def test_reset_orders_lists_and_tasks(cache):
    assert cache.list_order() == [1, 2, 3]
    assert cache.order(1) == [1, 2, 3]
    assert cache.board['name'] == 'Roadmap'
    assert not cache.stale


def test_splice_within_list():
    columns = {1: [make_task(1, 1, 0), make_task(2, 1, 1), make_task(3, 1, 2)]}

    result = splice_task(columns, columns[1][0], 1, 2)

    assert [(t['id'], t['position']) for t in result[1]] == [(2, 0), (3, 1), (1, 2)]
    # Input untouched
    assert [t['position'] for t in columns[1]] == [0, 1, 2]


def test_splice_across_lists_clamps():
    columns = {1: [make_task(1, 1, 0), make_task(2, 1, 1)], 2: [make_task(3, 2, 0)]}

    result = splice_task(columns, columns[1][0], 2, 10)

    assert [(t['id'], t['position']) for t in result[1]] == [(2, 0)]
    assert [(t['id'], t['position'], t['list_id']) for t in result[2]] == [(3, 0, 2), (1, 1, 2)]


def test_remove_and_find():
    columns = {1: [make_task(1, 1, 0), make_task(2, 1, 1)]}

    result = remove_task(columns, 1)

    assert [(t['id'], t['position']) for t in result[1]] == [(2, 0)]
    assert find_task(result, 1) is None
    assert find_task(result, 2)['position'] == 0


def test_optimistic_move_then_confirm(cache):
    request_id = cache.begin_move(1, 3, 0)

    assert cache.order(1) == [2, 3]
    assert cache.order(3) == [1]
    assert cache.order(1, visible=False) == [1, 2, 3]
    assert cache.source_of(request_id) == 1

    cache.confirm(request_id, make_task(1, 3, 0, version=2))

    assert cache.pending == {}
    assert cache.order(1, visible=False) == [2, 3]
    assert cache.order(3, visible=False) == [1]


def test_rejected_move_reverts(cache):
    request_id = cache.begin_move(3, 2, 0)
    assert cache.order(2) == [3, 4]

    cache.reject(request_id)

    assert cache.order(2) == [4]
    assert cache.order(1) == [1, 2, 3]


def test_optimistic_and_authoritative_paths_agree(snapshot):
    optimistic = BoardCache(snapshot)
    authoritative = BoardCache(snapshot)

    optimistic.begin_move(2, 2, 1)
    authoritative.apply_event('task:move', {
        'task': make_task(2, 2, 1, version=2),
        'source_list_id': 1, 'target_list_id': 2, 'from_position': 1, 'position': 1,
    })

    for list_id in (1, 2, 3):
        assert optimistic.order(list_id) == authoritative.order(list_id)


def test_foreign_move_is_replayed_under_pending_intent(cache):
    cache.begin_move(1, 1, 2)

    # Someone else moved T4 to the top of list 1
    assert cache.apply_event('task:move', {
        'task': make_task(4, 1, 0, version=2),
        'source_list_id': 2, 'target_list_id': 1, 'from_position': 0, 'position': 0,
    })

    assert cache.order(1, visible=False) == [4, 1, 2, 3]
    assert cache.order(1) == [4, 2, 1, 3]


def test_stale_and_duplicate_events_are_ignored(cache):
    move = {
        'task': make_task(1, 2, 0, version=2),
        'source_list_id': 1, 'target_list_id': 2, 'from_position': 0, 'position': 0,
    }
    assert cache.apply_event('task:move', move)
    assert not cache.apply_event('task:move', move)

    older = dict(move, task=make_task(1, 1, 0, version=1))
    assert not cache.apply_event('task:move', older)

    assert cache.order(2) == [1, 4]
    assert cache.order(1) == [2, 3]


def test_own_move_echo_after_confirm_is_a_noop(cache):
    request_id = cache.begin_move(1, 1, 2)
    canonical = make_task(1, 1, 2, version=2)
    cache.confirm(request_id, canonical)

    assert not cache.apply_event('task:move', {
        'task': canonical, 'source_list_id': 1, 'target_list_id': 1, 'from_position': 0, 'position': 2,
    })
    assert cache.order(1) == [2, 3, 1]


def test_unknown_references_mark_stale(cache):
    assert not cache.apply_event('task:move', {
        'task': make_task(99, 1, 0, version=2),
        'source_list_id': 1, 'target_list_id': 1, 'from_position': 0, 'position': 0,
    })
    assert cache.stale

    cache.reset({'id': 9, 'lists': []})
    assert not cache.stale
    assert not cache.apply_event('task:create', make_task(5, 42, 0))
    assert cache.stale


def test_task_lifecycle_events(cache):
    assert cache.apply_event('task:create', make_task(5, 3, 0))
    assert cache.order(3) == [5]

    assert cache.apply_event('task:update', make_task(5, 3, 0, version=2, title='Renamed'))
    assert find_task(cache.columns, 5)['title'] == 'Renamed'
    assert not cache.apply_event('task:update', make_task(5, 3, 0, version=2, title='Again'))

    assert cache.apply_event('task:update', make_task(2, 1, 1, version=2, is_archived=True))
    assert cache.order(1) == [1, 3]

    assert cache.apply_event('task:update', make_task(2, 1, 2, version=3))
    assert cache.order(1) == [1, 3, 2]

    assert cache.apply_event('task:delete', {'id': 1, 'list_id': 1, 'board_id': 9, 'position': 0})
    assert [(t['id'], t['position']) for t in cache.columns[1]] == [(3, 0), (2, 1)]
    assert not cache.apply_event('task:delete', {'id': 1, 'list_id': 1, 'board_id': 9, 'position': 0})


def test_delete_drops_pending_intents_for_task(cache):
    cache.begin_move(1, 2, 0)

    cache.apply_event('task:delete', {'id': 1, 'list_id': 1, 'board_id': 9, 'position': 0})

    assert cache.pending == {}
    assert cache.order(2) == [4]


def test_list_events(cache):
    assert cache.apply_event('list:create', {'id': 4, 'name': 'QA', 'position': 3, 'tasks': []})
    assert not cache.apply_event('list:create', {'id': 4, 'name': 'QA', 'position': 3, 'tasks': []})
    assert cache.list_order() == [1, 2, 3, 4]

    assert cache.apply_event('list:update', {'id': 4, 'name': 'Testing'})
    assert cache.lists[4]['name'] == 'Testing'

    assert cache.apply_event('list:reorder', {'board_id': 9, 'lists': [
        {'id': 4, 'position': 0}, {'id': 3, 'position': 1}, {'id': 2, 'position': 2}, {'id': 1, 'position': 3},
    ]})
    assert cache.list_order() == [4, 3, 2, 1]

    assert cache.apply_event('list:delete', {'id': 3, 'board_id': 9, 'position': 1})
    assert cache.list_order() == [4, 2, 1]
    assert [cache.lists[i]['position'] for i in (4, 2, 1)] == [0, 1, 2]
    assert 3 not in cache.columns


def test_reorder_with_different_list_set_marks_stale(cache):
    assert not cache.apply_event('list:reorder', {'board_id': 9, 'lists': [{'id': 1, 'position': 0}]})
    assert cache.stale


def test_board_and_presence_events(cache):
    assert cache.apply_event('board:update', {'name': 'Renamed'})
    assert cache.apply_event('presence:update', {'board_id': 9, 'users': [{'id': 1, 'username': 'ana'}]})

    assert cache.board['name'] == 'Renamed'
    assert cache.board['online_users'] == [{'id': 1, 'username': 'ana'}]
    assert not cache.apply_event('activity:new', {})


def test_begin_move_rejects_unknown_ids(cache):
    with pytest.raises(KeyError):
        cache.begin_move(99, 1, 0)
    with pytest.raises(KeyError):
        cache.begin_move(1, 99, 0)


def test_update_with_new_placement_moves_the_task(cache):
    # The task:move for T1 never arrived; the next update carries its new place
    assert cache.apply_event('task:update', make_task(1, 2, 1, version=3, title='Moved'))

    assert cache.order(1) == [2, 3]
    assert [(t['id'], t['position']) for t in cache.columns[2]] == [(4, 0), (1, 1)]
    assert find_task(cache.columns, 1)['title'] == 'Moved'
    assert cache.stale


def test_update_in_place_keeps_the_order(cache):
    assert cache.apply_event('task:update', make_task(2, 1, 1, version=2, title='Renamed'))

    assert cache.order(1) == [1, 2, 3]
    assert find_task(cache.columns, 2)['title'] == 'Renamed'
    assert not cache.stale


def test_version_gap_marks_stale(cache):
    assert cache.apply_event('task:update', make_task(3, 1, 2, version=4))
    assert cache.stale

    cache.reset({'id': 9, 'lists': [{'id': 1, 'position': 0, 'tasks': [make_task(1, 1, 0)]}]})
    assert cache.apply_event('task:move', {'task': make_task(1, 1, 0, version=3)})
    assert cache.stale


def test_member_events(cache):
    cache.board['members'] = [{'user': {'id': 1, 'username': 'ana'}, 'role': 'owner'}]
    bob = {'user': {'id': 2, 'username': 'bob'}, 'role': 'member'}

    assert cache.apply_event('member:join', {'board_id': 9, 'member': bob})
    assert not cache.apply_event('member:join', {'board_id': 9, 'member': bob})
    assert [m['user']['id'] for m in cache.board['members']] == [1, 2]

    assert cache.apply_event('member:leave', {'board_id': 9, 'user_id': 2})
    assert not cache.apply_event('member:leave', {'board_id': 9, 'user_id': 2})
    assert [m['user']['id'] for m in cache.board['members']] == [1]


def test_board_delete_marks_the_cache(cache):
    cache.begin_move(1, 2, 0)

    assert cache.apply_event('board:delete', {'id': 9})
    assert cache.deleted
    assert cache.pending == {}
    assert not cache.apply_event('board:delete', {'id': 9})
