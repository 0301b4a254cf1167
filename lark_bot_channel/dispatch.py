"""Bridge between normalized inbound messages and the host dispatch pipeline."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import Any

from .config import CHANNEL_ID
from .host import HostRuntime, reply_dispatcher_factory
from .models import AccountSettings, InboundMessage, ReplyFragment, ReplyKind
from .router import build_inbound_context

logger = logging.getLogger(__name__)

# Streaming delivery is off for this channel: only complete replies are sent.
REPLY_OPTIONS: dict[str, Any] = {"disableBlockStreaming": True}
REPLY_SEPARATOR = "\n\n"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


class ReplyCollector:
    """Accumulates reply fragments and folds the final ones into one text.

    Used directly as the reply dispatcher, or wired into the host's own
    dispatcher through :meth:`deliver` and :meth:`on_error`.
    """

    def __init__(self, log: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._log = log or logger
        self.fragments: list[ReplyFragment] = []
        self.errors: list[BaseException] = []

    async def deliver(self, payload: Any, info: Any) -> None:
        text = str(_field(payload, "text") or "").strip()
        if not text:
            return
        kind = (
            ReplyKind.FINAL
            if str(_field(info, "kind") or "") == ReplyKind.FINAL.value
            else ReplyKind.PARTIAL
        )
        self.fragments.append(ReplyFragment(kind=kind, text=text))

    def on_error(self, err: BaseException) -> None:
        self.errors.append(err)
        self._log.error("[%s] Dispatch error: %s", CHANNEL_ID, err)

    async def wait_for_idle(self) -> None:
        return None

    @property
    def final_parts(self) -> list[str]:
        return [f.text for f in self.fragments if f.kind is ReplyKind.FINAL]

    def text(self) -> str:
        return REPLY_SEPARATOR.join(self.final_parts).strip()


class DispatchBridge:
    """Runs one inbound message through the host and returns the reply text."""

    def __init__(self, runtime: HostRuntime) -> None:
        self.runtime = runtime

    def _make_dispatcher(self, collector: ReplyCollector) -> Any:
        factory = reply_dispatcher_factory(self.runtime)
        if factory is None:
            return collector
        return factory(deliver=collector.deliver, on_error=collector.on_error)

    async def dispatch(
        self,
        message: InboundMessage,
        account: AccountSettings,
        bot_open_id: str = "",
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> str:
        """Dispatch *message* and return the joined final reply.

        Returns an empty string when the host produced no final reply or
        when dispatching failed; failures are logged, never raised.
        """
        log = log or logger
        context = build_inbound_context(message, account, bot_open_id)
        collector = ReplyCollector(log)
        try:
            cfg = self.runtime.load_config()
            dispatcher = self._make_dispatcher(collector)
            await self.runtime.dispatch_inbound(
                context=context,
                cfg=cfg,
                dispatcher=dispatcher,
                reply_options=dict(REPLY_OPTIONS),
            )
            wait_for_idle = getattr(dispatcher, "wait_for_idle", None)
            if callable(wait_for_idle):
                result = wait_for_idle()
                if inspect.isawaitable(result):
                    await result
        except Exception:
            log.exception(
                "[%s:%s] Failed to dispatch message %s",
                CHANNEL_ID, account.account_id, message.message_id,
            )
            return ""
        return collector.text()
