"""High-level Redis operations on top of a connection pool."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from redis.exceptions import RedisError

from . import dist_lock
from .config import ConfigMgr
from .redis_pool import PoolClosedError, RedisConPool

logger = logging.getLogger(__name__)

_FAILED = object()


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class RedisMgr:
    """Runs single Redis commands, reporting failure instead of raising."""

    POOL_SIZE = 5

    def __init__(self, pool: RedisConPool) -> None:
        self._pool = pool

    @classmethod
    def from_config(cls, config: ConfigMgr) -> RedisMgr:
        """Build a manager from the ``[Redis]`` section (Host, Port, Passwd)."""
        section = config["Redis"]
        pool = RedisConPool(
            cls.POOL_SIZE, section["Host"], int(section["Port"]), section["Passwd"]
        )
        return cls(pool)

    def _call(self, label: str, command: Callable[[Any], Any]) -> Any:
        try:
            with self._pool.connection() as conn:
                reply = command(conn)
        except PoolClosedError:
            logger.warning("Execute command [ %s ] failure: pool closed", label)
            return _FAILED
        except RedisError as exc:
            logger.warning("Execute command [ %s ] failure: %s", label, exc)
            return _FAILED
        return reply

    def _pop(self, label: str, command: Callable[[Any], Any]) -> str | None:
        reply = self._call(label, command)
        if reply is _FAILED or reply is None:
            return None
        return _text(reply)

    def get(self, key: str) -> str | None:
        """Return the string stored at ``key``, or None."""
        reply = self._call(f"GET {key}", lambda c: c.get(key))
        if reply is _FAILED or not isinstance(reply, (str, bytes)):
            return None
        return _text(reply)

    def set(self, key: str, value: str) -> bool:
        """Store ``value`` at ``key``."""
        reply = self._call(f"SET {key} {value}", lambda c: c.set(key, value))
        if reply is _FAILED:
            return False
        return reply is True or _text(reply) in ("OK", "ok")

    def lpush(self, key: str, value: str) -> bool:
        """Push ``value`` onto the head of a list."""
        reply = self._call(f"LPUSH {key} {value}", lambda c: c.lpush(key, value))
        return _is_int(reply) and reply > 0

    def lpop(self, key: str) -> str | None:
        """Pop from the head of a list, or None when it is empty."""
        return self._pop(f"LPOP {key}", lambda c: c.lpop(key))

    def rpush(self, key: str, value: str) -> bool:
        """Push ``value`` onto the tail of a list."""
        reply = self._call(f"RPUSH {key} {value}", lambda c: c.rpush(key, value))
        return _is_int(reply) and reply > 0

    def rpop(self, key: str) -> str | None:
        """Pop from the tail of a list, or None when it is empty."""
        return self._pop(f"RPOP {key}", lambda c: c.rpop(key))

    def hset(self, key: str, hkey: str, value: str | bytes) -> bool:
        """Set one hash field; ``value`` may be text or raw bytes."""
        reply = self._call(f"HSET {key} {hkey}", lambda c: c.hset(key, hkey, value))
        return _is_int(reply)

    def hget(self, key: str, hkey: str) -> str:
        """Return one hash field, or '' when it is missing."""
        reply = self._call(f"HGET {key} {hkey}", lambda c: c.hget(key, hkey))
        if reply is _FAILED or reply is None:
            return ""
        return _text(reply)

    def hdel(self, key: str, field: str) -> bool:
        """Delete one hash field; True only if it existed."""
        reply = self._call(f"HDEL {key} {field}", lambda c: c.hdel(key, field))
        return _is_int(reply) and reply > 0

    def delete(self, key: str) -> bool:
        """Delete ``key``; succeeds whether or not it existed."""
        reply = self._call(f"DEL {key}", lambda c: c.delete(key))
        return _is_int(reply)

    def exists_key(self, key: str) -> bool:
        """Report whether ``key`` exists."""
        reply = self._call(f"EXISTS {key}", lambda c: c.exists(key))
        return _is_int(reply) and reply != 0

    def acquire_lock(self, lock_name: str, lock_timeout: int, acquire_timeout: float) -> str | None:
        """Take a distributed lock; returns its identifier or None."""
        try:
            with self._pool.connection() as conn:
                return dist_lock.acquire_lock(conn, lock_name, lock_timeout, acquire_timeout)
        except PoolClosedError:
            return None

    def release_lock(self, lock_name: str, identifier: str | None) -> bool:
        """Release a lock held under ``identifier``; an empty identifier is a no-op."""
        if not identifier:
            return True
        try:
            with self._pool.connection() as conn:
                return dist_lock.release_lock(conn, lock_name, identifier)
        except PoolClosedError:
            return False

    def close(self) -> None:
        """Stop the pool and close all idle connections."""
        self._pool.close()
        self._pool.clear_connections()