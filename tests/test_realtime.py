# tests/test_realtime.py

import logging
import threading

import pytest
from asgiref.sync import async_to_sync

from apps.board import realtime
from apps.board.realtime import ConnectionRegistry, board_group, publish, user_group


@pytest.fixture
def users():
    return {
        'ana': {'id': 1, 'username': 'ana', 'name': 'Ana Lima'},
        'ben': {'id': 2, 'username': 'ben'},
    }


def test_enter_moves_between_boards(users):
    registry = ConnectionRegistry()
    registry.register('c1', users['ana'])

    assert registry.enter('c1', 10) is None
    assert registry.enter('c1', 20) == 10
    assert registry.board_of('c1') == 20
    assert registry.subscribers(10) == frozenset()
    assert registry.subscribers(20) == frozenset({'c1'})


def test_viewers_are_distinct_and_sorted(users):
    registry = ConnectionRegistry()
    for channel, user in [('c1', users['ben']), ('c2', users['ana']), ('c3', users['ana'])]:
        registry.register(channel, user)
        registry.enter(channel, 10)

    assert registry.viewers(10) == [
        {'id': 1, 'username': 'ana', 'name': 'Ana Lima'},
        {'id': 2, 'username': 'ben', 'name': 'ben'},
    ]
    assert registry.is_user_online(10, 2)
    assert not registry.is_user_online(11, 2)


def test_unregister_prunes_everything(users):
    registry = ConnectionRegistry()
    registry.register('c1', users['ana'])
    registry.enter('c1', 10)

    assert registry.unregister('c1') == 10
    assert registry.board_of('c1') is None
    assert registry.subscribers(10) == frozenset()
    assert registry.viewers(10) == []
    assert registry.leave('c1') is None


def test_subscribers_is_a_snapshot(users):
    registry = ConnectionRegistry()
    registry.register('c1', users['ana'])
    registry.enter('c1', 10)

    snapshot = registry.subscribers(10)
    registry.register('c2', users['ben'])
    registry.enter('c2', 10)

    assert snapshot == frozenset({'c1'})


def test_registry_under_concurrent_churn(users):
    registry = ConnectionRegistry()

    def churn(index):
        for n in range(200):
            channel = f'c{index}-{n}'
            registry.register(channel, users['ana'])
            registry.enter(channel, n % 3)
            registry.viewers(n % 3)
            registry.unregister(channel)

    threads = [threading.Thread(target=churn, args=(i,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for board_id in range(3):
        assert registry.subscribers(board_id) == frozenset()


def test_set_registry_swaps_default():
    replacement = ConnectionRegistry()
    previous = realtime.set_registry(replacement)
    try:
        assert realtime.get_registry() is replacement
    finally:
        realtime.set_registry(previous)


def test_publish_reaches_group(clean_channel_layer):
    layer = clean_channel_layer
    channel = async_to_sync(layer.new_channel)()
    async_to_sync(layer.group_add)(board_group(5), channel)

    assert publish(5, 'list:update', {'id': 1}) is True
    message = async_to_sync(layer.receive)(channel)
    assert message == {'type': 'board.event', 'event': 'list:update', 'board_id': 5, 'payload': {'id': 1}}

    assert realtime.notify_user(7, 'board:invited', {'id': 5}) is True
    async_to_sync(layer.group_add)(user_group(7), channel)
    realtime.notify_user(7, 'board:removed', {'board_id': 5})
    message = async_to_sync(layer.receive)(channel)
    assert message['type'] == 'user.event'
    assert message['event'] == 'board:removed'


def test_publish_failures_are_swallowed(monkeypatch, caplog):
    class BrokenLayer:
        async def group_send(self, group, message):
            raise ConnectionError('redis down')

    monkeypatch.setattr(realtime, 'get_channel_layer', lambda: BrokenLayer())

    with caplog.at_level(logging.ERROR, logger='apps.board.realtime'):
        assert publish(1, 'task:update', {}) is False

    assert 'Failed to publish task:update' in caplog.text


def test_publish_without_layer(monkeypatch):
    monkeypatch.setattr(realtime, 'get_channel_layer', lambda: None)

    assert publish(1, 'task:update', {}) is False
