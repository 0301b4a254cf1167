"""Lark/Feishu custom-app bot as a gateway messaging channel.

Supports both connection modes:

- **websocket**: the SDK's long connection, no public endpoint needed.
- **webhook**: a local HTTP listener receiving provider callbacks.

Each inbound ``im.message.receive_v1`` event is normalized, filtered,
dispatched to the host and the joined final reply is sent back to the
originating chat.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from . import config
from .channels.base import AccountContext, ChannelPlugin
from .client import (
    build_event_handler,
    create_lark_client,
    domain_label,
    event_to_dict,
    fetch_bot_open_id,
)
from .config import CHANNEL_ID
from .dispatch import DispatchBridge
from .host import HostRuntime
from .inbound import drop_reason, normalize_event
from .longconn import LongConnection
from .models import AccountSettings, ConnectionMode, SendResult
from .outbound import send_text
from .registry import AccountRegistry
from .webhook import WebhookServer

logger = logging.getLogger(__name__)

Log = logging.Logger | logging.LoggerAdapter


class LarkBotChannel(ChannelPlugin):
    """The ``lark-bot`` channel plugin."""

    id = CHANNEL_ID
    meta: Mapping[str, Any] = MappingProxyType({
        "id": CHANNEL_ID,
        "label": "Lark Bot",
        "selectionLabel": "Lark Bot (Custom App)",
        "docsPath": f"/channels/{CHANNEL_ID}",
        "blurb": "Connect a Lark/Feishu custom app bot as a messaging channel.",
        "aliases": ("lark", "feishu"),
    })
    capabilities: Mapping[str, Any] = MappingProxyType({
        "chatTypes": ("direct", "group"),
        "outbound": True,
    })
    delivery_mode = "direct"

    def __init__(
        self,
        runtime: HostRuntime | None = None,
        registry: AccountRegistry | None = None,
    ) -> None:
        super().__init__(runtime, registry)
        self._inflight: set[concurrent.futures.Future[None]] = set()
        self._shutdown_tasks: dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Config surface
    # ------------------------------------------------------------------

    def list_account_ids(self, cfg: dict[str, Any]) -> list[str]:
        return config.list_account_ids(cfg)

    def resolve_account(
        self, cfg: dict[str, Any], account_id: str | None = None
    ) -> AccountSettings:
        return config.resolve_account(cfg, account_id)

    def is_configured(self, account: AccountSettings | None) -> bool:
        return config.is_configured(account)

    def describe_account(self, account: AccountSettings) -> dict[str, Any]:
        return config.describe_account(account)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_text(
        self, to: str, text: str, account: AccountSettings | str
    ) -> SendResult:
        account_id = account if isinstance(account, str) else account.account_id
        return await send_text(self.registry, to, text, account_id)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_event(
        self,
        event: dict[str, Any],
        account: AccountSettings,
        *,
        bot_open_id: str = "",
        runtime: HostRuntime | None = None,
        log: Log | None = None,
    ) -> None:
        """Normalize, filter, dispatch and answer one receive event.

        Every failure is logged and the event dropped; nothing propagates.
        """
        log = log or logger
        tag = f"{CHANNEL_ID}:{account.account_id}"
        try:
            message = normalize_event(event)
            if message is None:
                return
            reason = drop_reason(message, account, bot_open_id)
            if reason is not None:
                log.debug(
                    "[%s] Dropped message %s from %s: %s",
                    tag, message.message_id, message.sender_id, reason,
                )
                return

            log.info(
                "[%s] Inbound: from=%s chat=%s type=%s text=%r",
                tag, message.sender_id, message.chat_id,
                message.chat_kind.value, message.text[:50],
            )

            runtime = runtime or self.runtime
            if runtime is None:
                log.error("[%s] No host runtime configured; dropping message", tag)
                return
            reply = await DispatchBridge(runtime).dispatch(
                message, account, bot_open_id, log
            )
            if not reply:
                return

            result = await self.send_text(message.chat_id, reply, account)
            if result.ok:
                log.info("[%s] Sent reply: %r", tag, reply[:50])
            else:
                log.error("[%s] Failed to send reply: %s", tag, result.error)
        except Exception:
            log.exception("[%s] Error processing message", tag)

    # ------------------------------------------------------------------
    # Gateway lifecycle
    # ------------------------------------------------------------------

    async def start_account(self, ctx: AccountContext) -> None:
        """Start one account: client, identity, event handler, transport.

        Raises ``ValueError`` for missing credentials or host runtime, and
        propagates transport failures (listener bind, initial connect).
        """
        account = config.resolve_account(ctx.cfg, ctx.account_id)
        account_id = account.account_id
        tag = f"{CHANNEL_ID}:{account_id}"
        log = ctx.log or logger

        log.info(
            "[%s] Starting provider (%s mode)", tag, account.connection_mode.value
        )

        if not account.is_configured:
            raise ValueError(
                f"[{CHANNEL_ID}] Missing appId or appSecret in "
                f"channels.{CHANNEL_ID} config"
            )
        runtime = ctx.runtime or self.runtime
        if runtime is None:
            raise ValueError(f"[{CHANNEL_ID}] No host runtime to dispatch messages to")

        if self.registry.is_running(account_id):
            log.warning("[%s] Already running; restarting", tag)
            await self.stop_account(account_id)

        client = create_lark_client(account)
        self.registry.set_client(account_id, client)

        bot_open_id = ""
        try:
            bot_open_id = await fetch_bot_open_id(client)
            log.info("[%s] Bot ID: %s", tag, bot_open_id)
        except Exception as exc:
            log.warning("[%s] Could not get bot info (non-fatal): %s", tag, exc)

        loop = asyncio.get_running_loop()

        def on_message(data: Any) -> None:
            # Called from the SDK (websocket thread or webhook request).
            try:
                event = event_to_dict(data)
            except Exception:
                log.exception("[%s] Could not decode receive event", tag)
                return
            fut = asyncio.run_coroutine_threadsafe(
                self.handle_event(
                    event, account, bot_open_id=bot_open_id, runtime=runtime, log=log
                ),
                loop,
            )
            self._inflight.add(fut)
            fut.add_done_callback(self._inflight.discard)

        event_handler = build_event_handler(account, on_message)

        try:
            if account.connection_mode is ConnectionMode.WEBSOCKET:
                log.info("[%s] Connecting via WebSocket...", tag)
                connection = LongConnection(account, event_handler)
                await connection.start()
                self.registry.set_connection(account_id, connection)
                log.info("[%s] %s WebSocket connected", tag, domain_label(account))
            else:
                log.info(
                    "[%s] Starting webhook server on port %d...",
                    tag, account.webhook_port,
                )
                server = WebhookServer(
                    event_handler,
                    port=account.webhook_port,
                    path=account.webhook_path,
                )
                await server.start()
                self.registry.set_server(account_id, server)
                log.info("[%s] Webhook ready at %s", tag, server.url)
        except Exception:
            self.registry.remove(account_id)
            raise

        if ctx.abort_signal is not None:
            self._shutdown_tasks[account_id] = asyncio.create_task(
                self._stop_on_abort(account_id, ctx.abort_signal, log)
            )

        log.info("[%s] Gateway started, listening for messages", tag)

    async def _stop_on_abort(
        self, account_id: str, abort_signal: asyncio.Event, log: Log
    ) -> None:
        await abort_signal.wait()
        log.info("[%s:%s] Shutting down...", CHANNEL_ID, account_id)
        await self.stop_account(account_id)
        log.info("[%s:%s] Stopped", CHANNEL_ID, account_id)

    async def stop_account(self, account_id: str) -> None:
        """Close the account's transport and forget all its runtime state.

        In-flight event handling is not awaited.
        """
        task = self._shutdown_tasks.pop(account_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        _client, connection, server = self.registry.remove(account_id)
        if server is not None:
            await server.close()
        if connection is not None:
            await connection.close()
