"""Inbound event normalization and filtering.

Operates on the ``im.message.receive_v1`` event body as a plain dict::

    {
        "sender": {"sender_id": {"open_id": "ou_..."}, "sender_type": "user"},
        "message": {
            "message_id": "om_...",
            "chat_id": "oc_...",
            "chat_type": "p2p",
            "message_type": "text",
            "content": "{\\"text\\": \\"@_user_1 hello\\"}",
            "mentions": [{"key": "@_user_1", "name": "Bot", ...}],
        },
    }
"""

from __future__ import annotations

import json
import re
import time
from typing import Any

from .models import AccountSettings, ChatKind, InboundMessage
from .policy import is_allowed

_MENTION_RE = re.compile(r"@_user_\d+\s*")

APP_SENDER_TYPE = "app"


def map_chat_type(lark_chat_type: str) -> ChatKind:
    return ChatKind.DIRECT if lark_chat_type == "p2p" else ChatKind.GROUP


def parse_message_text(content: str, msg_type: str) -> str:
    """Extract the text body of a message.

    Non-text messages become a ``[<type> message]`` placeholder and their
    content is never parsed.  Mention markers (``@_user_1``) are stripped.
    """
    if msg_type != "text":
        return f"[{msg_type} message]"
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        return content
    if not isinstance(parsed, dict):
        return content
    text = str(parsed.get("text") or "")
    return _MENTION_RE.sub("", text).strip()


def is_bot_mentioned(event: dict[str, Any]) -> bool:
    mentions = (event.get("message") or {}).get("mentions")
    if not isinstance(mentions, list):
        return False
    return any(
        isinstance(m, dict) and m.get("key") and m.get("name") for m in mentions
    )


def normalize_event(event: dict[str, Any]) -> InboundMessage | None:
    """Convert a raw receive event into an :class:`InboundMessage`.

    Returns None when the event carries no message object.
    """
    message = event.get("message")
    if not message:
        return None
    sender = event.get("sender") or {}
    content = message.get("content") or "{}"
    msg_type = message.get("message_type") or "text"
    return InboundMessage(
        sender_id=(sender.get("sender_id") or {}).get("open_id") or "",
        sender_type=sender.get("sender_type") or "",
        chat_id=message.get("chat_id") or "",
        chat_kind=map_chat_type(message.get("chat_type") or ""),
        message_type=msg_type,
        text=parse_message_text(content, msg_type),
        raw_content=content,
        message_id=message.get("message_id") or str(int(time.time() * 1000)),
        mentioned=is_bot_mentioned(event),
        raw=event,
    )


def drop_reason(
    message: InboundMessage, account: AccountSettings, bot_open_id: str = ""
) -> str | None:
    """Apply the routing filters in order.

    Returns a short reason for the first failing filter, or None when the
    message should be dispatched.
    """
    if message.sender_type == APP_SENDER_TYPE:
        return "app sender"
    # An empty bot id means the self lookup failed; the check is skipped.
    if bot_open_id and message.sender_id == bot_open_id:
        return "own message"
    if message.chat_kind is ChatKind.DIRECT and not account.handle_dms:
        return "direct messages disabled"
    if message.chat_kind is ChatKind.GROUP and not account.handle_groups:
        return "group messages disabled"
    if message.chat_kind is ChatKind.DIRECT and not is_allowed(
        message.sender_id, account
    ):
        return "blocked by dm policy"
    if (
        message.chat_kind is ChatKind.GROUP
        and account.trigger_on_mention
        and not message.mentioned
    ):
        return "group message without mention"
    if not message.text.strip():
        return "empty text"
    return None
