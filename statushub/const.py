"""Error codes, key prefixes and lock timings shared by the status server."""

from __future__ import annotations

from enum import IntEnum


class ErrorCodes(IntEnum):
    """Result codes carried in service replies."""

    SUCCESS = 0
    ERROR_JSON = 1001
    RPC_FAILED = 1002
    VERIFY_EXPIRED = 1003
    VERIFY_CODE_ERR = 1004
    USER_EXIST = 1005
    PASSWD_ERR = 1006
    EMAIL_NOT_MATCH = 1007
    PASSWD_UP_FAILED = 1008
    PASSWD_INVALID = 1009
    TOKEN_INVALID = 1010
    UID_INVALID = 1011


USER_IP_PREFIX = "uip_"
USER_TOKEN_PREFIX = "utoken_"
IP_COUNT_PREFIX = "ipcount_"
USER_BASE_INFO = "ubaseinfo_"
LOGIN_COUNT = "logincount"
LOCK_COUNT = "lockcount"

# Seconds a distributed lock is held before it expires on its own.
LOCK_TIME_OUT = 10
# Seconds spent retrying to obtain a distributed lock.
ACQUIRE_TIME_OUT = 5


def token_key(uid: int | str) -> str:
    """Return the Redis key under which a user's login token is stored."""
    return f"{USER_TOKEN_PREFIX}{uid}"