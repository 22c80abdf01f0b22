"""MySQL transactions and a bounded pool of reusable connections."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from .db_conn import Connector, DatabaseError, MySQL
from .sql_result import QueryResult

logger = logging.getLogger(__name__)


class MySQLTransaction:
    """A transaction on one connection, committed or rolled back when finished.

    Used as a context manager it rolls back if the block raises and otherwise
    commits or rolls back according to ``auto_commit``.
    """

    def __init__(self, mysql: MySQL, auto_commit: bool) -> None:
        self._mysql = mysql
        self.auto_commit = auto_commit
        self._finished = False
        self._has_error = False
        self._on_done: Callable[[MySQL], None] | None = None

    @classmethod
    def create(cls, mysql: MySQL, auto_commit: bool) -> MySQLTransaction:
        """Start a transaction on ``mysql``; raises if BEGIN fails."""
        transaction = cls(mysql, auto_commit)
        if not transaction.begin():
            raise DatabaseError(mysql.errno(), mysql.errstr() or "cannot begin transaction")
        return transaction

    @property
    def mysql(self) -> MySQL:
        """The connection the transaction runs on."""
        return self._mysql

    @property
    def is_finished(self) -> bool:
        """Whether COMMIT or ROLLBACK has completed."""
        return self._finished

    @property
    def has_error(self) -> bool:
        """Whether a statement in the transaction failed."""
        return self._has_error

    def begin(self) -> bool:
        """Send BEGIN."""
        try:
            self.execute("BEGIN")
        except DatabaseError:
            return False
        return True

    def commit(self) -> bool:
        """Send COMMIT unless already finished or failed; True on success."""
        if self._finished or self._has_error:
            return not self._has_error
        try:
            self.execute("COMMIT")
        except DatabaseError:
            return False
        self._finished = True
        return True

    def rollback(self) -> bool:
        """Send ROLLBACK unless already finished."""
        if self._finished:
            return True
        try:
            self.execute("ROLLBACK")
        except DatabaseError:
            return False
        self._finished = True
        return True

    def execute(self, sql: str, *args: Any) -> int:
        """Run a statement inside the transaction; returns affected rows."""
        if self._finished:
            logger.warning("transaction is finished, sql=%s", sql)
            raise DatabaseError(-1, "transaction is finished")
        try:
            return self._mysql.execute(sql, *args)
        except DatabaseError:
            self._has_error = True
            raise

    def last_insert_id(self) -> int:
        """The id generated by the last insert on the connection."""
        return self._mysql.last_insert_id()

    def _release(self) -> None:
        callback, self._on_done = self._on_done, None
        if callback is not None:
            callback(self._mysql)

    def finish(self) -> bool:
        """Commit or roll back per ``auto_commit`` and hand the connection back."""
        try:
            return self.commit() if self.auto_commit else self.rollback()
        finally:
            self._release()

    def __enter__(self) -> MySQLTransaction:
        return self

    def __exit__(self, *args) -> None:
        if args and args[0] is not None:
            try:
                self.rollback()
            finally:
                self._release()
        else:
            self.finish()


class MySQLPool:
    """Keeps up to ``pool_size`` idle connections and opens more on demand."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        passwd: str,
        dbname: str,
        pool_size: int,
        connector: Connector | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self._passwd = passwd
        self.dbname = dbname
        self.max_conn = pool_size
        self._connector = connector
        self._idle: deque[MySQL] = deque()
        self._lock = threading.Lock()

    def get(self) -> MySQL:
        """Take an idle connection, checking it if stale, or open a new one."""
        with self._lock:
            conn = self._idle.popleft() if self._idle else None
        if conn is not None:
            if not conn.is_need_check() or conn.ping() or conn.connect():
                conn.last_used_time = time.time()
                return conn
            conn.close()
            logger.warning("mysql reconnect failed")
            raise DatabaseError(-1, "reconnect fail")
        conn = MySQL(
            self.host, self.port, self.user, self._passwd, self.dbname, self._connector
        )
        if not conn.connect():
            raise DatabaseError(-1, f"cannot connect to mysql at {self.host}:{self.port}")
        conn.last_used_time = time.time()
        return conn

    def release(self, mysql: MySQL) -> None:
        """Return a connection; it is closed if the pool is full or it is unconnected."""
        if mysql.connected:
            with self._lock:
                if len(self._idle) < self.max_conn:
                    self._idle.append(mysql)
                    return
        mysql.close()

    @contextmanager
    def connection(self) -> Iterator[MySQL]:
        """Borrow a connection for the duration of a ``with`` block."""
        conn = self.get()
        try:
            yield conn
        finally:
            self.release(conn)

    def check_connection(self, sec: int = 30) -> int:
        """Close idle connections unused for ``sec`` seconds; returns how many."""
        now = time.time()
        with self._lock:
            stale = [c for c in self._idle if now - c.last_used_time >= sec]
            self._idle = deque(c for c in self._idle if now - c.last_used_time < sec)
        for conn in stale:
            conn.close()
        return len(stale)

    def execute(self, sql: str, *args: Any) -> int:
        """Run a statement on a pooled connection; returns affected rows."""
        with self.connection() as conn:
            return conn.execute(sql, *args)

    def query(self, sql: str, *args: Any) -> QueryResult:
        """Run a query on a pooled connection."""
        with self.connection() as conn:
            return conn.query(sql, *args)

    def open_transaction(self, auto_commit: bool = True) -> MySQLTransaction:
        """Start a transaction; its connection returns to the pool when it finishes."""
        conn = self.get()
        try:
            transaction = MySQLTransaction.create(conn, auto_commit)
        except DatabaseError:
            self.release(conn)
            raise
        transaction._on_done = self.release
        return transaction

    def __len__(self) -> int:
        with self._lock:
            return len(self._idle)