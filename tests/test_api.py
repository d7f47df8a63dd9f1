# tests/test_api.py

import pytest
from django.test import override_settings

from apps.board import locking
from apps.board.locking import list_key
from apps.core.models import Board, Task

from .helpers import order_of

pytestmark = pytest.mark.django_db


def test_requires_authentication(client):
    response = client.get('/api/boards/')

    assert response.status_code == 401
    assert response.json() == {
        'success': False,
        'error': {'kind': 'unauthenticated', 'message': 'Authentication required', 'retryable': False},
    }


def test_invalid_token_is_rejected(client, board):
    response = client.get(f'/api/boards/{board.pk}/', HTTP_AUTHORIZATION='Bearer not-a-token')

    assert response.status_code == 401


def test_session_login_also_works(client, member, board):
    client.force_login(member)

    response = client.get(f'/api/boards/{board.pk}/')

    assert response.status_code == 200


def test_create_and_list_boards(api_client):
    response = api_client.post('/api/boards/', {'name': 'Sprint 12'}, content_type='application/json')

    assert response.status_code == 201
    body = response.json()
    assert body['success'] is True
    assert body['message'] == 'Board created successfully'
    assert [tl['name'] for tl in body['data']['lists']] == ['To Do', 'In Progress', 'Done']

    response = api_client.get('/api/boards/?limit=1')
    body = response.json()
    assert [b['name'] for b in body['data']] == ['Sprint 12']
    assert body['pagination']['total'] == 1


def test_validation_errors_carry_fields(api_client):
    response = api_client.post('/api/boards/', {'name': ''}, content_type='application/json')

    assert response.status_code == 400
    error = response.json()['error']
    assert error['kind'] == 'bad_request'
    assert 'name' in error['errors']


def test_malformed_json(api_client):
    response = api_client.post('/api/boards/', 'not json', content_type='application/json')

    assert response.status_code == 400
    assert response.json()['error']['message'] == 'Malformed JSON body'


def test_method_not_allowed(api_client, board):
    response = api_client.put(f'/api/boards/{board.pk}/')

    assert response.status_code == 405


def test_board_detail_patch_delete(api_client, board):
    response = api_client.patch(f'/api/boards/{board.pk}/', {'name': 'Renamed'}, content_type='application/json')
    assert response.status_code == 200
    assert response.json()['data']['name'] == 'Renamed'

    response = api_client.delete(f'/api/boards/{board.pk}/')
    assert response.status_code == 200
    assert not Board.objects.filter(pk=board.pk).exists()

    response = api_client.get(f'/api/boards/{board.pk}/')
    assert response.status_code == 404
    assert response.json()['error']['kind'] == 'not_found'


def test_forbidden_for_non_member(client, outsider, board, token_for):
    response = client.get(f'/api/boards/{board.pk}/', HTTP_AUTHORIZATION=f'Bearer {token_for(outsider)}')

    assert response.status_code == 403
    assert response.json()['error']['kind'] == 'forbidden'


def test_move_task_endpoint(api_client, lists, make_tasks):
    t1, t2, t3 = make_tasks(lists[0], 3)

    response = api_client.post(f'/api/tasks/{t1.pk}/move/', {
        'list_id': lists[0].pk, 'position': 2, 'source_list_id': lists[0].pk,
    }, content_type='application/json')

    assert response.status_code == 200
    assert response.json()['data']['position'] == 2
    assert order_of(lists[0]) == [('T2', 0), ('T3', 1), ('T1', 2)]


def test_move_task_requires_source_list(api_client, lists, make_tasks):
    t1, = make_tasks(lists[0], 1)

    response = api_client.post(f'/api/tasks/{t1.pk}/move/', {
        'list_id': lists[1].pk, 'position': 0,
    }, content_type='application/json')

    assert response.status_code == 400
    assert 'source_list_id' in response.json()['error']['errors']


@pytest.mark.parametrize('body, status, kind', [
    ({'position': -1}, 422, 'invalid_position'),
    ({'position': 5}, 422, 'invalid_position'),
    ({'position': 0, 'source_list_id': 'other'}, 400, 'invalid_target'),
])
def test_move_task_errors(api_client, lists, make_tasks, body, status, kind):
    t1, t2 = make_tasks(lists[0], 2)
    payload = {'list_id': lists[1].pk, 'source_list_id': lists[0].pk}
    payload.update(body)
    if payload['source_list_id'] == 'other':
        payload['source_list_id'] = lists[2].pk

    response = api_client.post(f'/api/tasks/{t1.pk}/move/', payload, content_type='application/json')

    assert response.status_code == status
    assert response.json()['error']['kind'] == kind
    assert order_of(lists[0]) == [('T1', 0), ('T2', 1)]


@override_settings(BOARD_LOCK_TIMEOUT=0.05)
def test_busy_answers_503_with_retry_after(api_client, lists, make_tasks):
    t1, t2 = make_tasks(lists[0], 2)
    key = list_key(lists[0].pk)
    assert locking._acquire(key, 1)
    try:
        response = api_client.post(f'/api/tasks/{t1.pk}/move/', {
            'list_id': lists[0].pk, 'position': 1, 'source_list_id': lists[0].pk,
        }, content_type='application/json')
    finally:
        locking._release(key)

    assert response.status_code == 503
    assert response['Retry-After'] == '1'
    assert response.json()['error'] == {
        'kind': 'busy', 'message': 'The list is busy, try again', 'retryable': True,
    }


def test_unexpected_errors_become_internal(api_client, board, monkeypatch):
    from apps.board import services

    def explode(*args, **kwargs):
        raise RuntimeError('database on fire')

    monkeypatch.setattr(services, 'get_board', explode)

    response = api_client.get(f'/api/boards/{board.pk}/')

    assert response.status_code == 500
    assert response.json()['error']['kind'] == 'internal'
    assert 'fire' not in response.content.decode()


def test_list_endpoints(api_client, board, lists):
    response = api_client.post(f'/api/boards/{board.pk}/lists/', {'name': 'QA'}, content_type='application/json')
    assert response.status_code == 201
    qa_id = response.json()['data']['id']

    response = api_client.post(f'/api/lists/{qa_id}/move/', {'position': 0}, content_type='application/json')
    assert [tl['name'] for tl in response.json()['data']] == ['QA', 'To Do', 'In Progress', 'Done']

    order = [lists[2].pk, lists[1].pk, lists[0].pk, qa_id]
    response = api_client.put(f'/api/boards/{board.pk}/lists/order/', {'list_ids': order},
                              content_type='application/json')
    assert [tl['id'] for tl in response.json()['data']] == order

    response = api_client.patch(f'/api/lists/{qa_id}/', {'name': 'Testing'}, content_type='application/json')
    assert response.json()['data']['name'] == 'Testing'

    response = api_client.delete(f'/api/lists/{qa_id}/')
    assert response.status_code == 200


def test_list_order_rejects_bad_payload(api_client, board):
    response = api_client.put(f'/api/boards/{board.pk}/lists/order/', {'list_ids': 'nope'},
                              content_type='application/json')

    assert response.status_code == 400


def test_task_endpoints(api_client, member, lists):
    response = api_client.post('/api/tasks/', {
        'list_id': lists[0].pk, 'title': 'Write docs', 'labels': ['docs'],
    }, content_type='application/json')
    assert response.status_code == 201
    task_id = response.json()['data']['id']

    response = api_client.patch(f'/api/tasks/{task_id}/', {'description': 'All of them'},
                                content_type='application/json')
    assert response.json()['data']['description'] == 'All of them'

    response = api_client.post(f'/api/tasks/{task_id}/assignees/', {'user_id': member.pk},
                               content_type='application/json')
    assert [a['id'] for a in response.json()['data']['assignees']] == [member.pk]

    response = api_client.post(f'/api/tasks/{task_id}/assignees/', {'user_id': member.pk},
                               content_type='application/json')
    assert response.status_code == 409

    response = api_client.delete(f'/api/tasks/{task_id}/assignees/{member.pk}/')
    assert response.json()['data']['assignees'] == []

    response = api_client.post(f'/api/tasks/{task_id}/comments/', {'content': 'On it'},
                               content_type='application/json')
    assert response.status_code == 201

    response = api_client.get(f'/api/tasks/{task_id}/')
    data = response.json()['data']
    assert data['comment_count'] == 1
    assert [c['content'] for c in data['comments']] == ['On it']

    response = api_client.get('/api/tasks/search/?query=docs')
    assert [t['id'] for t in response.json()['data']] == [task_id]

    response = api_client.delete(f'/api/tasks/{task_id}/')
    assert response.status_code == 200
    assert not Task.objects.filter(pk=task_id).exists()


def test_member_endpoints(api_client, board, outsider):
    response = api_client.post(f'/api/boards/{board.pk}/members/', {'username': 'outsider'},
                               content_type='application/json')
    assert response.status_code == 201
    assert response.json()['data']['role'] == 'member'

    response = api_client.delete(f'/api/boards/{board.pk}/members/{outsider.pk}/')
    assert response.status_code == 200


def test_presence_and_activities(api_client, owner, board, registry):
    registry.register('chan', {'id': owner.pk, 'username': 'owner'})
    registry.enter('chan', board.pk)

    response = api_client.get(f'/api/boards/{board.pk}/presence/')
    assert [u['id'] for u in response.json()['data']] == [owner.pk]

    response = api_client.get(f'/api/boards/{board.pk}/activities/?page=0')
    assert response.status_code == 400

    response = api_client.get(f'/api/boards/{board.pk}/activities/')
    assert response.json()['pagination']['total'] == 0
