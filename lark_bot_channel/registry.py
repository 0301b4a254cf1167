"""Per-account runtime state: provider clients, connections, listeners."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .config import CHANNEL_ID

if TYPE_CHECKING:
    from .longconn import LongConnection
    from .webhook import WebhookServer

logger = logging.getLogger(__name__)


def client_key(account_id: str) -> str:
    return f"{CHANNEL_ID}:{account_id}"


class AccountRegistry:
    """Tables keyed by ``lark-bot:<account_id>``.

    Written when an account starts and when it shuts down; the send path
    only reads.
    """

    def __init__(self) -> None:
        self.clients: dict[str, Any] = {}
        self.connections: dict[str, LongConnection] = {}
        self.servers: dict[str, WebhookServer] = {}

    # ---- clients ----

    def set_client(self, account_id: str, client: Any) -> None:
        self.clients[client_key(account_id)] = client

    def get_client(self, account_id: str) -> Any | None:
        return self.clients.get(client_key(account_id))

    # ---- connection handles ----

    def set_connection(self, account_id: str, connection: LongConnection) -> None:
        self.connections[client_key(account_id)] = connection

    def get_connection(self, account_id: str) -> LongConnection | None:
        return self.connections.get(client_key(account_id))

    def set_server(self, account_id: str, server: WebhookServer) -> None:
        self.servers[client_key(account_id)] = server

    def get_server(self, account_id: str) -> WebhookServer | None:
        return self.servers.get(client_key(account_id))

    # ---- lifecycle ----

    def is_running(self, account_id: str) -> bool:
        return client_key(account_id) in self.clients

    def account_ids(self) -> list[str]:
        prefix = f"{CHANNEL_ID}:"
        return [key[len(prefix):] for key in self.clients]

    def remove(
        self, account_id: str
    ) -> tuple[Any | None, LongConnection | None, WebhookServer | None]:
        """Drop every entry for *account_id* and return what was held."""
        key = client_key(account_id)
        return (
            self.clients.pop(key, None),
            self.connections.pop(key, None),
            self.servers.pop(key, None),
        )
