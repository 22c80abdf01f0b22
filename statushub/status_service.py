"""Chat-server selection and login-token bookkeeping for the status service."""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass

from .config import ConfigMgr
from .const import LOGIN_COUNT, ErrorCodes, token_key

logger = logging.getLogger(__name__)

SERVER_LIST_SECTION = "chatservers"
INT_MAX = 2**31 - 1


@dataclass
class ChatServer:
    """One chat server known to the status service."""

    host: str = ""
    port: str = ""
    name: str = ""
    con_count: int = 0


@dataclass(frozen=True)
class ChatServerReply:
    """Answer to a request for a chat server to connect to."""

    host: str
    port: str
    error: ErrorCodes
    token: str


@dataclass(frozen=True)
class LoginReply:
    """Answer to a login check."""

    error: ErrorCodes
    uid: int = 0
    token: str = ""


def parse_server_names(value: str) -> list[str]:
    """Split a comma-separated server list; a trailing comma adds no name."""
    if not value:
        return []
    names = value.split(",")
    if names[-1] == "":
        names.pop()
    return names


def generate_unique_string() -> str:
    """Return a fresh random UUID as text."""
    return str(uuid.uuid4())


class StatusService:
    """Picks the least-loaded chat server and hands out login tokens."""

    def __init__(self, config: ConfigMgr, redis) -> None:
        self._redis = redis
        self._lock = threading.Lock()
        self._servers: dict[str, ChatServer] = {}
        for word in parse_server_names(config[SERVER_LIST_SECTION]["Name"]):
            section = config[word]
            if not section["Name"]:
                continue
            server = ChatServer(
                host=section["Host"], port=section["Port"], name=section["Name"]
            )
            self._servers[server.name] = server

    @property
    def servers(self) -> dict[str, ChatServer]:
        """The configured servers by name."""
        return dict(self._servers)

    def _login_count(self, name: str) -> int:
        count = self._redis.hget(LOGIN_COUNT, name)
        if not count:
            return INT_MAX
        return int(count)

    def select_chat_server(self) -> ChatServer:
        """Return the server with the fewest logins; unknown counts rank last."""
        with self._lock:
            if not self._servers:
                raise RuntimeError("no chat servers configured")
            best: ChatServer | None = None
            for server in self._servers.values():
                server.con_count = self._login_count(server.name)
                if best is None or server.con_count < best.con_count:
                    best = server
            return dataclasses.replace(best)

    def insert_token(self, uid: int, token: str) -> bool:
        """Store ``token`` as the login token of ``uid``."""
        return self._redis.set(token_key(uid), token)

    def get_chat_server(self, uid: int) -> ChatServerReply:
        """Choose a chat server for ``uid`` and issue it a new token."""
        server = self.select_chat_server()
        token = generate_unique_string()
        self.insert_token(uid, token)
        return ChatServerReply(
            host=server.host, port=server.port, error=ErrorCodes.SUCCESS, token=token
        )

    def login(self, uid: int, token: str) -> LoginReply:
        """Check ``token`` against what is stored for ``uid``."""
        stored = self._redis.get(token_key(uid))
        # A token found under the uid is reported as an invalid uid.
        if stored is not None:
            return LoginReply(error=ErrorCodes.UID_INVALID)
        if token != "":
            return LoginReply(error=ErrorCodes.TOKEN_INVALID)
        return LoginReply(error=ErrorCodes.SUCCESS, uid=uid, token=token)