"""Shared fixtures for lark-bot-channel tests.

Provides a FakeRuntime that mimics the host gateway's dispatch entry point,
a receive-event builder and a provider client whose send API is mocked.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from lark_bot_channel.models import AccountSettings


# ---------------------------------------------------------------------------
# FakeRuntime
# ---------------------------------------------------------------------------


class FakeRuntime:
    """Minimal stand-in for the host runtime.

    Records every dispatched context and delivers the scripted ``replies``
    (``(kind, text)`` pairs) to whatever dispatcher it is handed.
    """

    def __init__(self, replies: list[tuple[str, str]] | None = None) -> None:
        self.replies = replies if replies is not None else [("final", "ok")]
        self.contexts: list[dict[str, Any]] = []
        self.reply_options: list[dict[str, Any]] = []
        self.cfg: dict[str, Any] = {"channels": {}}

    def load_config(self) -> dict[str, Any]:
        return self.cfg

    async def dispatch_inbound(
        self,
        *,
        context: dict[str, Any],
        cfg: dict[str, Any],
        dispatcher: Any,
        reply_options: dict[str, Any],
    ) -> None:
        self.contexts.append(context)
        self.reply_options.append(reply_options)
        for kind, text in self.replies:
            await dispatcher.deliver({"text": text}, {"kind": kind})


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@pytest.fixture
def make_event():
    """Factory for ``im.message.receive_v1`` event bodies."""

    def _make(
        text: str = "hi",
        *,
        sender: str = "ou_user",
        sender_type: str = "user",
        chat_id: str = "oc_chat",
        chat_type: str = "p2p",
        message_type: str = "text",
        message_id: str | None = "om_1",
        mentions: list[dict[str, Any]] | None = None,
        content: str | None = None,
    ) -> dict[str, Any]:
        message: dict[str, Any] = {
            "chat_id": chat_id,
            "chat_type": chat_type,
            "message_type": message_type,
            "content": content if content is not None else json.dumps({"text": text}),
        }
        if message_id is not None:
            message["message_id"] = message_id
        if mentions is not None:
            message["mentions"] = mentions
        return {
            "sender": {"sender_id": {"open_id": sender}, "sender_type": sender_type},
            "message": message,
        }

    return _make


# ---------------------------------------------------------------------------
# Accounts and clients
# ---------------------------------------------------------------------------


@pytest.fixture
def account() -> AccountSettings:
    return AccountSettings(app_id="cli_test", app_secret="secret")


@pytest.fixture
def mock_client() -> MagicMock:
    """Provider client whose message-create call succeeds."""
    client = MagicMock()
    client.im.v1.message.acreate = AsyncMock(
        return_value=SimpleNamespace(
            code=0, msg="success", data=SimpleNamespace(message_id="om_sent")
        )
    )
    return client
