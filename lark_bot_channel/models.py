"""Data models shared across the Lark bot channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Domain(str, Enum):
    LARK = "lark"
    FEISHU = "feishu"


class ConnectionMode(str, Enum):
    WEBSOCKET = "websocket"
    WEBHOOK = "webhook"


class DmPolicy(str, Enum):
    OPEN = "open"
    ALLOWLIST = "allowlist"
    BLOCKLIST = "blocklist"


class ChatKind(str, Enum):
    DIRECT = "direct"
    GROUP = "group"


class ReplyKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"


@dataclass(frozen=True)
class AccountSettings:
    """One bot identity, fully defaulted.

    Built by :func:`lark_bot_channel.config.resolve_account` and never
    mutated while the account runs.
    """

    account_id: str = "default"
    app_id: str = ""
    app_secret: str = ""
    encrypt_key: str = ""
    verification_token: str = ""
    domain: Domain = Domain.LARK
    connection_mode: ConnectionMode = ConnectionMode.WEBHOOK
    webhook_port: int = 9876
    webhook_path: str = "/webhook/lark"
    handle_groups: bool = True
    handle_dms: bool = True
    trigger_on_mention: bool = True
    dm_policy: DmPolicy = DmPolicy.OPEN
    allow_from: tuple[str, ...] = ("*",)
    block_from: tuple[str, ...] = ()

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.app_secret)


@dataclass
class InboundMessage:
    sender_id: str
    sender_type: str
    chat_id: str
    chat_kind: ChatKind
    message_type: str
    text: str
    raw_content: str
    message_id: str
    mentioned: bool = False
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReplyFragment:
    kind: ReplyKind
    text: str


@dataclass
class SendResult:
    """Outcome of a provider send; failures are values, not exceptions."""

    ok: bool
    channel: str = "lark-bot"
    message_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "channel": self.channel, "messageId": self.message_id}
        return {"ok": False, "error": self.error}
