"""A single MySQL connection and prepared statements that run on it."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from contextlib import closing
from dataclasses import dataclass
from typing import Any

import pymysql

from .sql_result import QueryResult, time2str

logger = logging.getLogger(__name__)

Connector = Callable[[str, int, str, str, str], Any]

# A connection used within this many seconds without error is trusted unchecked.
CHECK_INTERVAL = 5

_UNBOUND = object()
_QUOTES = "'\"`"


class DatabaseError(Exception):
    """A statement failed or no connection was available."""

    def __init__(self, errno: int, errstr: str) -> None:
        super().__init__(f"({errno}) {errstr}")
        self.errno = errno
        self.errstr = errstr


@dataclass(frozen=True)
class _Outcome:
    rows: tuple
    rowcount: int
    lastrowid: int


def _default_connect(host: str, port: int, user: str, passwd: str, dbname: str) -> Any:
    return pymysql.connect(
        host=host,
        port=port,
        user=user,
        password=passwd,
        database=dbname or None,
        charset="utf8mb4",
        autocommit=True,
    )


def _error_details(exc: BaseException) -> tuple[int, str]:
    args = getattr(exc, "args", ())
    if len(args) >= 2 and isinstance(args[0], int):
        return args[0], str(args[1])
    if len(args) == 1 and isinstance(args[0], int):
        return args[0], ""
    return -1, str(exc)


def _close_quietly(conn: Any) -> None:
    try:
        conn.close()
    except (pymysql.MySQLError, OSError) as exc:
        logger.debug("closing mysql connection failed: %s", exc)


def _convert_placeholders(sql: str) -> tuple[str, int]:
    """Turn '?' markers outside quotes into '%s' and count them."""
    parts: list[str] = []
    quote: str | None = None
    count = 0
    for ch in sql:
        if quote is not None:
            if ch == quote:
                quote = None
            parts.append("%%" if ch == "%" else ch)
        elif ch in _QUOTES:
            quote = ch
            parts.append(ch)
        elif ch == "?":
            count += 1
            parts.append("%s")
        elif ch == "%":
            parts.append("%%")
        else:
            parts.append(ch)
    if count == 0:
        return sql, 0
    return "".join(parts), count


class MySQL:
    """One connection to a MySQL server that remembers its last error."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        passwd: str,
        dbname: str,
        connector: Connector | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self._passwd = passwd
        self.dbname = dbname
        self._connector = connector or _default_connect
        self._conn: Any | None = None
        self._has_error = False
        self._errno = 0
        self._errstr = ""
        self._last_insert_id = 0
        self._affected_rows = 0
        self.last_used_time = 0.0
        self.cmd = ""

    @property
    def connected(self) -> bool:
        """Whether a server connection is held."""
        return self._conn is not None

    @property
    def has_error(self) -> bool:
        """Whether the last operation on this connection failed."""
        return self._has_error

    def connect(self) -> bool:
        """Open the connection unless a healthy one is already held."""
        if self._conn is not None and not self._has_error:
            return True
        try:
            conn = self._connector(self.host, self.port, self.user, self._passwd, self.dbname)
        except (pymysql.MySQLError, OSError) as exc:
            self._has_error = True
            self._errno, self._errstr = _error_details(exc)
            logger.warning(
                "mysql connect(%s, %s, %s) error: %s", self.host, self.port, self.dbname, exc
            )
            return False
        if self._conn is not None:
            _close_quietly(self._conn)
        self._conn = conn
        self._has_error = False
        self._errno, self._errstr = 0, ""
        return True

    def ping(self) -> bool:
        """Check that the server still answers."""
        if self._conn is None:
            return False
        try:
            self._conn.ping(reconnect=False)
        except (pymysql.MySQLError, OSError) as exc:
            self._has_error = True
            self._errno, self._errstr = _error_details(exc)
            return False
        self._has_error = False
        return True

    def is_need_check(self) -> bool:
        """Whether the connection should be pinged before it is reused."""
        return (time.time() - self.last_used_time) >= CHECK_INTERVAL or self._has_error

    def _run(self, sql: str, params: Sequence[Any] | None, fetch: bool) -> _Outcome:
        self.cmd = sql
        if self._conn is None:
            raise DatabaseError(-1, "mysql is null")
        try:
            with closing(self._conn.cursor()) as cursor:
                cursor.execute(sql, params)
                rows = cursor.fetchall() if fetch else ()
                outcome = _Outcome(tuple(rows or ()), cursor.rowcount, cursor.lastrowid or 0)
        except pymysql.MySQLError as exc:
            self._has_error = True
            self._errno, self._errstr = _error_details(exc)
            logger.warning("cmd=%s, error: %s", sql, self._errstr)
            raise DatabaseError(self._errno, self._errstr) from exc
        self._has_error = False
        self._errno, self._errstr = 0, ""
        self._affected_rows = max(outcome.rowcount, 0)
        self._last_insert_id = outcome.lastrowid
        return outcome

    def execute(self, sql: str, *args: Any) -> int:
        """Run a statement with optional ``%s`` parameters; returns affected rows."""
        return max(self._run(sql, args or None, fetch=False).rowcount, 0)

    def query(self, sql: str, *args: Any) -> QueryResult:
        """Run a query with optional ``%s`` parameters and return its rows."""
        return QueryResult(self._run(sql, args or None, fetch=True).rows)

    def prepare(self, sql: str) -> Statement:
        """Return a statement with ``?`` placeholders bound to this connection."""
        return Statement(self, sql)

    def last_insert_id(self) -> int:
        """The id generated by the last insert."""
        return self._last_insert_id

    def affected_rows(self) -> int:
        """Rows touched by the last statement; 0 without a connection."""
        if self._conn is None:
            return 0
        return self._affected_rows

    def use(self, dbname: str) -> bool:
        """Switch the default database."""
        if self._conn is None:
            return False
        if self.dbname == dbname:
            return True
        try:
            self._conn.select_db(dbname)
        except (pymysql.MySQLError, OSError) as exc:
            self.dbname = ""
            self._has_error = True
            self._errno, self._errstr = _error_details(exc)
            return False
        self.dbname = dbname
        self._has_error = False
        return True

    def errno(self) -> int:
        """The last error number; -1 without a connection."""
        if self._conn is None:
            return -1
        return self._errno

    def errstr(self) -> str:
        """The last error message."""
        if self._conn is None:
            return "mysql is null"
        return self._errstr

    def close(self) -> None:
        """Close the server connection."""
        if self._conn is not None:
            _close_quietly(self._conn)
            self._conn = None


class Statement:
    """A statement with 1-based ``?`` parameters bound one at a time."""

    def __init__(self, db: MySQL, sql: str) -> None:
        if not db.connected:
            raise DatabaseError(-1, "mysql is null")
        self._db = db
        self.sql = sql
        self._converted, count = _convert_placeholders(sql)
        self._binds: list[Any] = [_UNBOUND] * count
        self._last_insert_id = 0
        self._affected_rows = 0

    @property
    def param_count(self) -> int:
        """Number of placeholders in the statement."""
        return len(self._binds)

    def _slot(self, idx: int) -> int:
        if not 1 <= idx <= len(self._binds):
            raise IndexError(f"parameter index {idx} out of range 1..{len(self._binds)}")
        return idx - 1

    def bind(self, idx: int, value: Any) -> None:
        """Bind a number, text, bytes or None to parameter ``idx``."""
        if value is not None and not isinstance(value, (int, float, str, bytes, bytearray)):
            raise TypeError(f"cannot bind value of type {type(value).__name__}")
        if isinstance(value, bytearray):
            value = bytes(value)
        self._binds[self._slot(idx)] = value

    def bind_time(self, idx: int, ts: float) -> None:
        """Bind a timestamp as local 'YYYY-mm-dd HH:MM:SS' text."""
        self.bind(idx, time2str(ts))

    def bind_null(self, idx: int) -> None:
        """Bind NULL to parameter ``idx``."""
        self.bind(idx, None)

    def _params(self) -> tuple | None:
        missing = [pos for pos, value in enumerate(self._binds, 1) if value is _UNBOUND]
        if missing:
            raise ValueError(f"parameters not bound: {missing}")
        return tuple(self._binds) if self._binds else None

    def _record(self, outcome: _Outcome) -> _Outcome:
        self._affected_rows = max(outcome.rowcount, 0)
        self._last_insert_id = outcome.lastrowid
        return outcome

    def execute(self) -> int:
        """Run the statement; returns affected rows."""
        outcome = self._record(self._db._run(self._converted, self._params(), fetch=False))
        return self._affected_rows if outcome else 0

    def query(self) -> QueryResult:
        """Run the statement and return its rows."""
        outcome = self._record(self._db._run(self._converted, self._params(), fetch=True))
        return QueryResult(outcome.rows)

    def last_insert_id(self) -> int:
        """The id generated by this statement's last insert."""
        return self._last_insert_id

    def affected_rows(self) -> int:
        """Rows touched by this statement's last run."""
        return self._affected_rows