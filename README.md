# statushub

`statushub` is the status component of a chat system, provided as a library.
It picks the least-loaded chat server for a user, issues a login token, stores
that token in Redis and checks login requests against what is stored. It also
contains the Redis and MySQL helpers it relies on:

- a Redis connection pool with keep-alive checks (`statushub.redis_pool`)
- high-level Redis commands and a distributed lock (`statushub.redis_mgr`,
  `statushub.dist_lock`)
- MySQL connections, prepared statements, transactions and a connection pool
  (`statushub.db_conn`, `statushub.db_pool`)
- row-by-row result access and MySQL time conversions (`statushub.sql_result`)
- a pool of event loops running in background threads (`statushub.io_pool`)

## Installation

```
pip install statushub
```

To install it with the test dependencies:

```
pip install "statushub[test]"
```

## Configuration

Settings come from an INI file. `ConfigMgr.instance()` loads `config.ini`
from the current working directory once and shares it;
`ConfigMgr.from_file(path)` and `ConfigMgr.from_string(text)` build a
configuration from any file or text. Keys are case-sensitive.

```ini
[Redis]
Host = 127.0.0.1
Port = 6379
Passwd = placeholder

[chatservers]
Name = chatserver1,chatserver2

[chatserver1]
Name = chatserver1
Host = 127.0.0.1
Port = 8090

[chatserver2]
Name = chatserver2
Host = 127.0.0.1
Port = 8091
```

```python
from statushub.config import ConfigMgr

config = ConfigMgr.from_file("config.ini")
config["Redis"]["Host"]                # "127.0.0.1"
config.get_value("Missing", "Key")     # ""
config.sections()                      # section names, sorted
```

Lookups never raise: a missing section or key reads as an empty string.

## Assigning chat servers

```python
from statushub.config import ConfigMgr
from statushub.redis_mgr import RedisMgr
from statushub.status_service import StatusService

config = ConfigMgr.from_file("config.ini")
redis = RedisMgr.from_config(config)   # uses [Redis] Host, Port, Passwd
service = StatusService(config, redis)

reply = service.get_chat_server(42)
print(reply.host, reply.port, reply.error)

redis.close()
```

`StatusService` reads the server names from `Name` in `[chatservers]`
(comma-separated) and, for each, the `Name`, `Host` and `Port` of the section
of that name; sections without a `Name` are skipped.

`select_chat_server()` returns the server with the fewest logins, read from
the `logincount` hash in Redis. A server with no count recorded ranks as fully
loaded. It raises `RuntimeError` when no servers are configured.

`get_chat_server(uid)` chooses a server, generates a UUID token and stores it
under `utoken_<uid>` (see `statushub.const.token_key`).

### Login checks

`login(uid, token)` returns a `LoginReply` whose `error` is an
`ErrorCodes` value, decided as follows:

- `UID_INVALID` when any token is stored for the uid;
- otherwise `TOKEN_INVALID` when the given token is not empty;
- otherwise `SUCCESS`, with the uid and token echoed back.

## Redis commands

`RedisMgr` methods report failure instead of raising: `get`, `lpop` and
`rpop` return `None`, `hget` returns `""`, and the others return `False`
when the command fails or the pool is closed.

## Distributed lock

```python
identifier = redis.acquire_lock("lockcount", 10, 5)
try:
    ...
finally:
    redis.release_lock("lockcount", identifier)
```

The lock lives under the key `lock:<name>` and expires after `lock_timeout`
seconds. `acquire_lock` retries for `acquire_timeout` seconds and returns
`None` if it could not take the lock. `release_lock` deletes the lock only
if the identifier still matches; a `None` or empty identifier is accepted as
a no-op and returns `True`.

## MySQL

```python
from statushub.db_pool import MySQLPool

password = "password"
pool = MySQLPool("127.0.0.1", 3306, "user", password, "chat", 8)

with pool.connection() as db:
    result = db.query("SELECT uid, name FROM user WHERE email = %s", "a@example.com")
    for row in result:
        ...

    stmt = db.prepare("UPDATE user SET name = ? WHERE uid = ?")
    stmt.bind(1, "alice")
    stmt.bind(2, 7)
    stmt.execute()

with pool.open_transaction(auto_commit=False) as trans:
    trans.execute("UPDATE user SET name = %s WHERE uid = %s", "alice", 7)
    trans.commit()
```

`MySQL.execute`, `MySQL.query` and `MySQLPool` methods raise
`statushub.db_conn.DatabaseError` when a statement fails or no connection can
be made. A transaction used as a context manager rolls back if the block
raises; otherwise it commits when opened with `auto_commit=True` (the default
of `open_transaction`) and rolls back when not, then returns its connection
to the pool. The pool keeps up to `pool_size` idle connections and
`check_connection(sec)` closes those unused for `sec` seconds.

## What this package does not do

It provides no network server and no command: nothing here listens for
requests or exposes `StatusService` over RPC. An application has to call the
service's methods itself and handle shutdown.