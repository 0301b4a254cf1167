"""Channel plugin base classes."""

from .base import AccountContext, ChannelPlugin

__all__ = ["AccountContext", "ChannelPlugin"]
