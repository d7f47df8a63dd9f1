# tests/test_admin.py

import pytest

from apps.core.models import Activity, Comment

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('model', ['board', 'boardmember', 'tasklist', 'task', 'comment', 'activity'])
def test_changelists_render(admin_client, board, lists, make_tasks, owner, model):
    task, = make_tasks(lists[0], 1)
    Comment.objects.create(task=task, user=owner, content='First!')
    Activity.objects.create(action='created', entity_type='task', entity_id=str(task.pk),
                            description='created task', user=owner, board=board, task=task)

    response = admin_client.get(f'/admin/core/{model}/')

    assert response.status_code == 200


def test_board_change_page_shows_lists(admin_client, board):
    response = admin_client.get(f'/admin/core/board/{board.pk}/change/')

    assert response.status_code == 200
    assert 'In Progress' in response.content.decode()


def test_positions_cannot_be_added_from_admin(admin_client):
    assert admin_client.get('/admin/core/task/add/').status_code == 403
    assert admin_client.get('/admin/core/tasklist/add/').status_code == 403
