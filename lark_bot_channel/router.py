"""Session routing: session keys and the host-facing inbound context."""

from __future__ import annotations

from typing import Any

from .config import CHANNEL_ID
from .models import AccountSettings, ChatKind, InboundMessage


def build_session_key(
    *,
    channel: str,
    account_id: str,
    chat_kind: ChatKind | str,
    chat_id: str,
) -> str:
    """Derive ``{channel}:{account}:{kind}:{chat}``, lower-cased."""
    kind = chat_kind.value if isinstance(chat_kind, ChatKind) else chat_kind
    return f"{channel}:{account_id}:{kind}:{chat_id}".lower()


def build_inbound_context(
    message: InboundMessage,
    account: AccountSettings,
    bot_open_id: str = "",
) -> dict[str, Any]:
    """Build the channel-agnostic context record handed to the host.

    The body is repeated under several keys because different host stages
    read different ones.
    """
    text = message.text
    return {
        "Body": text,
        "BodyForAgent": text,
        "BodyForCommands": text,
        "RawBody": message.raw_content or text,
        "CommandBody": text,
        "SessionKey": build_session_key(
            channel=CHANNEL_ID,
            account_id=account.account_id,
            chat_kind=message.chat_kind,
            chat_id=message.chat_id,
        ),
        "Provider": CHANNEL_ID,
        "Surface": CHANNEL_ID,
        "MessageChannel": CHANNEL_ID,
        "OriginatingChannel": CHANNEL_ID,
        "ChatType": message.chat_kind.value,
        "CommandAuthorized": True,
        "MessageSid": message.message_id,
        "SenderId": message.sender_id,
        "SenderName": message.sender_id,
        "SenderUsername": message.sender_id,
        "From": message.sender_id,
        "To": bot_open_id or CHANNEL_ID,
        "AccountId": account.account_id,
    }
