"""Abstract base class for gateway channel plugins."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..host import HostRuntime
from ..models import AccountSettings, SendResult
from ..registry import AccountRegistry

logger = logging.getLogger(__name__)


@dataclass
class AccountContext:
    """What the host hands to :meth:`ChannelPlugin.start_account`.

    ``abort_signal`` is set by the host to request shutdown of the account.
    ``runtime`` overrides the plugin-wide host runtime for this account.
    """

    cfg: dict[str, Any]
    account_id: str | None = None
    abort_signal: asyncio.Event | None = None
    log: logging.Logger | logging.LoggerAdapter | None = None
    runtime: HostRuntime | None = None


class ChannelPlugin(ABC):
    """Base class every channel plugin implements.

    One plugin instance serves any number of accounts; per-account runtime
    state lives in its :class:`AccountRegistry`.
    """

    id: str
    meta: Mapping[str, Any]
    capabilities: Mapping[str, Any]

    def __init__(
        self,
        runtime: HostRuntime | None = None,
        registry: AccountRegistry | None = None,
    ) -> None:
        self.runtime = runtime
        self.registry = registry if registry is not None else AccountRegistry()

    @abstractmethod
    async def start_account(self, ctx: AccountContext) -> None: ...

    @abstractmethod
    async def stop_account(self, account_id: str) -> None: ...

    @abstractmethod
    async def send_text(
        self, to: str, text: str, account: AccountSettings | str
    ) -> SendResult: ...

    def is_running(self, account_id: str) -> bool:
        return self.registry.is_running(account_id)
