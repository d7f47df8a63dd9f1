# tests/conftest.py

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from apps.board import realtime
from apps.board.realtime import ConnectionRegistry, set_registry
from apps.core.auth_service import auth_service
from apps.core.models import Board, BoardMember, Task

PASSWORD = 'secret-pass-123'


@pytest.fixture(autouse=True)
def registry():
    """Fresh connection registry per test"""
    fresh = ConnectionRegistry()
    previous = set_registry(fresh)
    yield fresh
    set_registry(previous)


@pytest.fixture(autouse=True)
def clean_channel_layer():
    layer = get_channel_layer()
    async_to_sync(layer.flush)()
    yield layer
    async_to_sync(layer.flush)()


@pytest.fixture
def make_user(django_user_model):
    def make(username, **extra):
        return django_user_model.objects.create_user(
            username=username,
            email=f'{username}@example.com',
            password=PASSWORD,
            **extra
        )
    return make


@pytest.fixture
def owner(make_user):
    return make_user('owner', first_name='Olivia', last_name='Owner')


@pytest.fixture
def member(make_user):
    return make_user('member')


@pytest.fixture
def outsider(make_user):
    return make_user('outsider')


@pytest.fixture
def board(owner, member):
    """Board with the default lists, owned by `owner`, shared with `member`"""
    board = Board.objects.create(name='Roadmap', owner=owner)
    BoardMember.objects.create(board=board, user=member, role='member')
    return board


@pytest.fixture
def lists(board):
    return list(board.lists.order_by('position'))


@pytest.fixture
def other_board(outsider):
    return Board.objects.create(name='Elsewhere', owner=outsider)


@pytest.fixture
def make_tasks(owner):
    """Appends `count` tasks to a list, positions following the existing ones"""
    def make(task_list, count, prefix='T'):
        start = Task.objects.filter(task_list=task_list, is_archived=False).count()
        return [
            Task.objects.create(
                task_list=task_list,
                title=f'{prefix}{start + i + 1}',
                position=start + i,
                created_by=owner,
            )
            for i in range(count)
        ]
    return make


@pytest.fixture
def events(monkeypatch):
    """Board events published by mutations, as (board_id, type, payload)"""
    captured = []

    def capture(board_id, event_type, payload):
        captured.append((board_id, event_type, payload))
        return True

    monkeypatch.setattr(realtime, 'publish', capture)
    return captured


@pytest.fixture
def user_events(monkeypatch):
    captured = []

    def capture(user_id, event_type, payload):
        captured.append((user_id, event_type, payload))
        return True

    monkeypatch.setattr(realtime, 'notify_user', capture)
    return captured


@pytest.fixture
def token_for():
    return auth_service.issue_token


@pytest.fixture
def api_client(client, owner, token_for):
    client.defaults['HTTP_AUTHORIZATION'] = f'Bearer {token_for(owner)}'
    return client

