"""A Redis-based distributed lock identified by random tokens."""

from __future__ import annotations

import logging
import time
import uuid

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

LOCK_PREFIX = "lock:"

_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""

_RETRY_INTERVAL = 0.001


def acquire_lock(client, lock_name: str, lock_timeout: int, acquire_timeout: float) -> str | None:
    """Try to take the lock until ``acquire_timeout`` seconds pass.

    Returns the identifier needed to release the lock, or None on failure.
    """
    identifier = str(uuid.uuid4())
    lock_key = LOCK_PREFIX + lock_name
    deadline = time.monotonic() + acquire_timeout
    while time.monotonic() < deadline:
        try:
            if client.set(lock_key, identifier, nx=True, ex=lock_timeout):
                return identifier
        except RedisError as exc:
            logger.warning("acquiring %s failed: %s", lock_key, exc)
        time.sleep(_RETRY_INTERVAL)
    return None


def release_lock(client, lock_name: str, identifier: str) -> bool:
    """Release the lock if ``identifier`` still holds it."""
    lock_key = LOCK_PREFIX + lock_name
    try:
        result = client.eval(_RELEASE_SCRIPT, 1, lock_key, identifier)
    except RedisError as exc:
        logger.warning("releasing %s failed: %s", lock_key, exc)
        return False
    return result == 1