import threading
import time

import pytest
from redis.exceptions import AuthenticationError, ConnectionError as RedisConnectionError

from statushub.redis_pool import PoolClosedError, RedisConPool

PASSWORD = "password"


class FakeClient:
    def __init__(self, ping_error=None):
        self.ping_error = ping_error
        self.closed = False
        self.pings = 0

    def ping(self):
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error
        return True

    def close(self):
        self.closed = True


class Factory:
    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls = []
        self.created = []

    def __call__(self, host, port, password):
        self.calls.append((host, port, password))
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if isinstance(outcome, Exception):
            raise outcome
        client = FakeClient(ping_error=outcome if outcome != "ok" and outcome is not None else None)
        self.created.append(client)
        return client


@pytest.fixture
def make_pool():
    pools = []

    def build(size, factory):
        pool = RedisConPool(size, "localhost", 6379, PASSWORD, connect=factory)
        pools.append(pool)
        return pool

    yield build
    for pool in pools:
        pool.close()


def test_pool_fills_to_size(make_pool):
    factory = Factory()
    pool = make_pool(3, factory)
    assert len(pool) == 3
    assert factory.calls == [("localhost", 6379, PASSWORD)] * 3


def test_failed_connect_is_skipped(make_pool):
    factory = Factory([RedisConnectionError("refused")])
    pool = make_pool(3, factory)
    assert len(pool) == 2


def test_failed_auth_is_skipped_and_closed(make_pool):
    factory = Factory([AuthenticationError("bad")])
    factory.outcomes = ["ok"]
    factory = Factory()
    factory.outcomes = [None, None]

    def connect(host, port, password):
        client = factory(host, port, password)
        if len(factory.created) == 1:
            client.ping_error = AuthenticationError("bad")
        return client

    pool = make_pool(2, connect)
    assert len(pool) == 1
    assert factory.created[0].closed is True
    assert factory.created[1].closed is False


def test_get_and_return_are_fifo(make_pool):
    factory = Factory()
    pool = make_pool(2, factory)
    first = pool.get_connection()
    assert first is factory.created[0]
    assert len(pool) == 1
    pool.return_connection(first)
    assert len(pool) == 2
    assert pool.get_connection() is factory.created[1]


def test_connection_context_returns_on_error(make_pool):
    pool = make_pool(1, Factory())
    with pytest.raises(ValueError):
        with pool.connection():
            assert len(pool) == 0
            raise ValueError("boom")
    assert len(pool) == 1


def test_blocking_get_woken_by_return(make_pool):
    pool = make_pool(1, Factory())
    held = pool.get_connection()
    timer = threading.Timer(0.05, pool.return_connection, args=(held,))
    timer.start()
    assert pool.get_connection() is held
    timer.join()


def test_close_wakes_waiter_with_error(make_pool):
    pool = make_pool(1, Factory())
    pool.get_connection()
    errors = []

    def wait():
        try:
            pool.get_connection()
        except PoolClosedError as exc:
            errors.append(exc)

    waiter = threading.Thread(target=wait)
    waiter.start()
    time.sleep(0.05)
    pool.close()
    waiter.join(timeout=2)
    assert len(errors) == 1
    with pytest.raises(PoolClosedError):
        pool.get_connection()


def test_return_after_close_discards(make_pool):
    factory = Factory()
    pool = make_pool(1, factory)
    held = pool.get_connection()
    pool.close()
    pool.return_connection(held)
    assert len(pool) == 0
    assert held.closed is True


def test_check_replaces_broken_connection(make_pool):
    factory = Factory()
    pool = make_pool(3, factory)
    broken = factory.created[0]
    broken.ping_error = RedisConnectionError("lost")
    pool.check_connections()
    assert len(pool) == 3
    assert broken.closed is True
    assert len(factory.created) == 4
    taken = [pool.get_connection() for _ in range(3)]
    assert broken not in taken
    assert factory.created[3] in taken


def test_check_drops_when_reconnect_fails(make_pool):
    factory = Factory()
    pool = make_pool(2, factory)
    factory.created[1].ping_error = RedisConnectionError("lost")
    factory.outcomes = [RedisConnectionError("refused")]
    pool.check_connections()
    assert len(pool) == 1
    assert pool.get_connection() is factory.created[0]


def test_clear_connections_closes_all(make_pool):
    factory = Factory()
    pool = make_pool(2, factory)
    pool.clear_connections()
    assert len(pool) == 0
    assert all(client.closed for client in factory.created)