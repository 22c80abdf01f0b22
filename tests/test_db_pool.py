import time

import pymysql
import pytest

from statushub.db_conn import DatabaseError
from statushub.db_pool import MySQLPool, MySQLTransaction


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn
        self.rowcount = -1
        self.lastrowid = 0

    def execute(self, sql, params=None):
        self._conn.log.append(sql)
        self._conn.params.append(params)
        if sql in self._conn.failing:
            raise pymysql.err.ProgrammingError(1064, "bad sql")
        self.rowcount = self._conn.rowcount
        self.lastrowid = self._conn.lastrowid

    def fetchall(self):
        return self._conn.rows

    def close(self):
        pass


class FakeConn:
    def __init__(self):
        self.log = []
        self.params = []
        self.failing = set()
        self.rows = ()
        self.rowcount = 1
        self.lastrowid = 0
        self.ping_ok = True
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def ping(self, reconnect=False):
        if not self.ping_ok:
            raise pymysql.err.OperationalError(2006, "server has gone away")

    def select_db(self, name):
        pass

    def close(self):
        self.closed = True


class FakeServer:
    def __init__(self):
        self.created = []
        self.fail_connect = False

    def connect(self, host, port, user, passwd, dbname):
        if self.fail_connect:
            raise pymysql.err.OperationalError(2003, "cannot connect")
        conn = FakeConn()
        self.created.append(conn)
        return conn


@pytest.fixture
def server():
    return FakeServer()


def make_pool(server, size=2):
    password = "password"
    return MySQLPool("localhost", 3306, "user", password, "chat", size, server.connect)


def test_get_opens_connection_and_release_keeps_it(server):
    pool = make_pool(server)
    conn = pool.get()
    assert conn.connected
    assert len(server.created) == 1
    pool.release(conn)
    assert len(pool) == 1
    again = pool.get()
    assert again is conn
    assert len(server.created) == 1


def test_release_beyond_max_closes(server):
    pool = make_pool(server, size=1)
    first = pool.get()
    second = pool.get()
    pool.release(first)
    pool.release(second)
    assert len(pool) == 1
    assert not second.connected
    assert server.created[1].closed


def test_get_raises_when_connect_fails(server):
    server.fail_connect = True
    pool = make_pool(server)
    with pytest.raises(DatabaseError):
        pool.get()


def test_stale_connection_with_failed_ping_reconnects(server):
    pool = make_pool(server)
    conn = pool.get()
    pool.release(conn)
    conn.last_used_time = 0
    server.created[0].ping_ok = False
    again = pool.get()
    assert again is conn
    assert len(server.created) == 2
    assert server.created[0].closed
    again.execute("SELECT 1")
    assert server.created[1].log == ["SELECT 1"]


def test_stale_connection_that_cannot_reconnect_raises(server):
    pool = make_pool(server)
    conn = pool.get()
    pool.release(conn)
    conn.last_used_time = 0
    server.created[0].ping_ok = False
    server.fail_connect = True
    with pytest.raises(DatabaseError):
        pool.get()
    assert len(pool) == 0


def test_check_connection_drops_stale(server):
    pool = make_pool(server)
    old = pool.get()
    fresh = pool.get()
    pool.release(old)
    pool.release(fresh)
    old.last_used_time = time.time() - 100
    assert pool.check_connection(30) == 1
    assert len(pool) == 1
    assert server.created[0].closed
    assert not server.created[1].closed


def test_pool_execute_and_query(server):
    pool = make_pool(server)
    assert pool.execute("DELETE FROM t WHERE id = %s", 5) == 1
    conn = server.created[0]
    assert conn.log == ["DELETE FROM t WHERE id = %s"]
    assert conn.params == [(5,)]
    conn.rows = ((1, "alice"),)
    result = pool.query("SELECT id, name FROM t")
    assert result.next()
    assert result.get_int(0) == 1
    assert result.get_string(1) == "alice"
    assert len(pool) == 1


def test_transaction_auto_commit(server):
    pool = make_pool(server)
    tx = pool.open_transaction(True)
    server.created[0].lastrowid = 42
    tx.execute("INSERT INTO t VALUES (1)")
    assert tx.last_insert_id() == 42
    assert len(pool) == 0
    assert tx.finish() is True
    assert server.created[0].log == ["BEGIN", "INSERT INTO t VALUES (1)", "COMMIT"]
    assert tx.is_finished
    assert len(pool) == 1


def test_transaction_without_auto_commit_rolls_back(server):
    pool = make_pool(server)
    with pool.open_transaction(False) as tx:
        tx.execute("UPDATE t SET a = 1")
    assert server.created[0].log[-1] == "ROLLBACK"
    assert len(pool) == 1


def test_transaction_context_rolls_back_on_exception(server):
    pool = make_pool(server)
    with pytest.raises(KeyError):
        with pool.open_transaction(True) as tx:
            tx.execute("UPDATE t SET a = 1")
            raise KeyError("boom")
    assert server.created[0].log == ["BEGIN", "UPDATE t SET a = 1", "ROLLBACK"]
    assert len(pool) == 1


def test_execute_after_finish_raises(server):
    pool = make_pool(server)
    tx = pool.open_transaction(True)
    tx.finish()
    with pytest.raises(DatabaseError):
        tx.execute("SELECT 1")
    assert not tx.has_error


def test_failed_statement_blocks_commit(server):
    pool = make_pool(server)
    tx = pool.open_transaction(True)
    server.created[0].failing.add("BROKEN")
    with pytest.raises(DatabaseError):
        tx.execute("BROKEN")
    assert tx.has_error
    assert tx.commit() is False
    assert "COMMIT" not in server.created[0].log


def test_rollback_when_finished_sends_nothing(server):
    pool = make_pool(server)
    tx = pool.open_transaction(True)
    assert tx.commit() is True
    count = len(server.created[0].log)
    assert tx.rollback() is True
    assert len(server.created[0].log) == count


def test_create_raises_when_begin_fails(server):
    pool = make_pool(server)
    conn = pool.get()
    server.created[0].failing.add("BEGIN")
    with pytest.raises(DatabaseError):
        MySQLTransaction.create(conn, True)


def test_open_transaction_returns_connection_when_begin_fails(server):
    pool = make_pool(server)
    conn = pool.get()
    server.created[0].failing.add("BEGIN")
    pool.release(conn)
    with pytest.raises(DatabaseError):
        pool.open_transaction()
    assert len(pool) == 1
    assert pool.get() is conn