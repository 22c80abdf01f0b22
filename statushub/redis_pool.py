"""A fixed-size pool of authenticated Redis connections with keep-alive checks."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

Connector = Callable[[str, int, str], Any]


class PoolClosedError(RuntimeError):
    """Raised when a connection is requested from a closed pool."""


def _default_connect(host: str, port: int, password: str) -> redis.Redis:
    return redis.Redis(
        host=host, port=port, password=password or None, decode_responses=True
    )


def _close_client(client: Any) -> None:
    try:
        client.close()
    except (RedisError, OSError) as exc:
        logger.debug("closing redis connection failed: %s", exc)


class RedisConPool:
    """Hands out Redis clients one at a time and pings idle ones periodically.

    ``connect(host, port, password)`` creates a client; clients that cannot be
    created or that fail their first ping are left out of the pool.
    """

    CHECK_INTERVAL = 60.0

    def __init__(
        self,
        pool_size: int,
        host: str,
        port: int,
        password: str,
        connect: Connector | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._password = password
        self._connect = connect or _default_connect
        self._connections: deque[Any] = deque()
        self._cond = threading.Condition()
        self._stop = threading.Event()

        for _ in range(pool_size):
            client = self._open()
            if client is not None:
                self._connections.append(client)

        self._checker = threading.Thread(
            target=self._check_loop, name="redis-pool-check", daemon=True
        )
        self._checker.start()

    def _open(self) -> Any | None:
        try:
            client = self._connect(self._host, self._port, self._password)
        except (RedisError, OSError) as exc:
            logger.warning("connecting to redis %s:%s failed: %s", self._host, self._port, exc)
            return None
        try:
            client.ping()
        except RedisError as exc:
            logger.warning("redis authentication failed: %s", exc)
            _close_client(client)
            return None
        logger.debug("redis authentication succeeded")
        return client

    def _check_loop(self) -> None:
        while not self._stop.wait(self.CHECK_INTERVAL):
            self.check_connections()

    def get_connection(self) -> Any:
        """Take a client, waiting until one is free; raises once the pool is closed."""
        with self._cond:
            self._cond.wait_for(lambda: self._stop.is_set() or bool(self._connections))
            if self._stop.is_set():
                raise PoolClosedError("redis connection pool is closed")
            return self._connections.popleft()

    def return_connection(self, connection: Any) -> None:
        """Give a client back; after closing it is discarded instead."""
        with self._cond:
            if self._stop.is_set():
                _close_client(connection)
                return
            self._connections.append(connection)
            self._cond.notify()

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a client for the duration of a ``with`` block."""
        client = self.get_connection()
        try:
            yield client
        finally:
            self.return_connection(client)

    def check_connections(self) -> None:
        """Ping every idle client, replacing those whose ping raises."""
        with self._cond:
            if self._stop.is_set():
                return
            for _ in range(len(self._connections)):
                if self._stop.is_set():
                    break
                client = self._connections.popleft()
                try:
                    client.ping()
                except RedisError as exc:
                    logger.warning("error keeping connection alive: %s", exc)
                    _close_client(client)
                    replacement = self._open()
                    if replacement is not None:
                        self._connections.append(replacement)
                    continue
                self._connections.append(client)
            self._cond.notify_all()

    def clear_connections(self) -> None:
        """Close and drop every idle client."""
        with self._cond:
            while self._connections:
                _close_client(self._connections.popleft())

    def close(self) -> None:
        """Stop the pool, wake any waiters and end the keep-alive thread."""
        self._stop.set()
        with self._cond:
            self._cond.notify_all()
        if self._checker.is_alive() and self._checker is not threading.current_thread():
            self._checker.join()

    def __len__(self) -> int:
        with self._cond:
            return len(self._connections)