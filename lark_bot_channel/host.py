"""Interfaces the channel consumes from the host gateway.

The channel never generates replies itself.  It hands each inbound context
to the host's dispatch entry point together with a reply dispatcher, and
the host calls ``dispatcher.deliver(payload, info)`` for every reply
fragment it produces.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

DeliverCallback = Callable[[Any, Any], Awaitable[None]]
ErrorCallback = Callable[[BaseException], None]


@runtime_checkable
class ReplyDispatcher(Protocol):
    async def deliver(self, payload: Any, info: Any) -> None: ...

    def on_error(self, err: BaseException) -> None: ...


@runtime_checkable
class HostRuntime(Protocol):
    """What the host must provide for the channel to answer messages."""

    async def dispatch_inbound(
        self,
        *,
        context: dict[str, Any],
        cfg: dict[str, Any],
        dispatcher: Any,
        reply_options: dict[str, Any],
    ) -> None: ...

    def load_config(self) -> dict[str, Any]: ...


def reply_dispatcher_factory(
    runtime: Any,
) -> Callable[..., Any] | None:
    """Return the host's ``create_reply_dispatcher`` if it offers one."""
    factory = getattr(runtime, "create_reply_dispatcher", None)
    return factory if callable(factory) else None
