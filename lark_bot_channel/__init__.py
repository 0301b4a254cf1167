"""Lark/Feishu custom-app bot channel plugin for the messaging gateway."""

from __future__ import annotations

from typing import Any

from .channel import LarkBotChannel
from .channels.base import AccountContext, ChannelPlugin
from .config import CHANNEL_ID, list_account_ids, load_config, resolve_account
from .dispatch import DispatchBridge, ReplyCollector
from .host import HostRuntime
from .models import (
    AccountSettings,
    ChatKind,
    ConnectionMode,
    DmPolicy,
    Domain,
    InboundMessage,
    ReplyFragment,
    ReplyKind,
    SendResult,
)
from .registry import AccountRegistry

__version__ = "0.1.0"

PLUGIN_ID = CHANNEL_ID
PLUGIN_NAME = "Lark Bot"
PLUGIN_DESCRIPTION = "Lark/Feishu custom app bot integration"


def register(api: Any) -> LarkBotChannel:
    """Plugin entry point: register the channel with the host *api*.

    The host's runtime, if it exposes one as ``api.runtime``, becomes the
    default dispatch target for every account.
    """
    channel = LarkBotChannel(runtime=getattr(api, "runtime", None))
    api.register_channel(plugin=channel)
    return channel


__all__ = [
    "AccountContext",
    "AccountRegistry",
    "AccountSettings",
    "CHANNEL_ID",
    "ChannelPlugin",
    "ChatKind",
    "ConnectionMode",
    "DispatchBridge",
    "DmPolicy",
    "Domain",
    "HostRuntime",
    "InboundMessage",
    "LarkBotChannel",
    "ReplyCollector",
    "ReplyFragment",
    "ReplyKind",
    "SendResult",
    "list_account_ids",
    "load_config",
    "register",
    "resolve_account",
]
