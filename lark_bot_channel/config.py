"""Account resolution for the ``lark-bot`` channel configuration.

The channel section lives at ``cfg["channels"]["lark-bot"]`` and comes in
two shapes::

    # single account
    channels:
      lark-bot:
        appId: cli_xxx
        appSecret: ...

    # several named accounts
    channels:
      lark-bot:
        accounts:
          main: {appId: cli_xxx, appSecret: ...}
          support: {appId: cli_yyy, appSecret: ...}

Resolution never fails: absent fields take their defaults and missing
credentials are only rejected when the account is started.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import yaml

from .models import AccountSettings, ConnectionMode, DmPolicy, Domain

logger = logging.getLogger(__name__)

CHANNEL_ID = "lark-bot"
DEFAULT_ACCOUNT_ID = "default"

_E = TypeVar("_E", bound=Enum)

# camelCase key -> snake_case alias
_ALIASES: dict[str, str] = {
    "appId": "app_id",
    "appSecret": "app_secret",
    "encryptKey": "encrypt_key",
    "verificationToken": "verification_token",
    "connectionMode": "connection_mode",
    "webhookPort": "webhook_port",
    "webhookPath": "webhook_path",
    "handleGroups": "handle_groups",
    "handleDMs": "handle_dms",
    "triggerOnMention": "trigger_on_mention",
    "dmPolicy": "dm_policy",
    "allowFrom": "allow_from",
    "blockFrom": "block_from",
}


def channel_section(cfg: dict[str, Any] | None) -> dict[str, Any]:
    """Return the ``lark-bot`` channel section, or an empty dict."""
    channels = (cfg or {}).get("channels") or {}
    if not isinstance(channels, dict):
        return {}
    section = channels.get(CHANNEL_ID)
    return section if isinstance(section, dict) else {}


def _get(raw: dict[str, Any], key: str, default: Any) -> Any:
    if raw.get(key) is not None:
        return raw[key]
    alias = _ALIASES.get(key)
    if alias and raw.get(alias) is not None:
        return raw[alias]
    return default


def _enum(cls: type[_E], value: Any, default: _E) -> _E:
    try:
        return cls(str(value).lower())
    except ValueError:
        logger.warning(
            "Unknown %s value %r in %s config; using %r",
            cls.__name__, value, CHANNEL_ID, default.value,
        )
        return default


def _id_list(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set)):
        return tuple(str(v) for v in value)
    logger.warning(
        "Invalid id list %r in %s config; using %r", value, CHANNEL_ID, list(default)
    )
    return default


def _port(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid webhookPort %r in %s config; using %d", value, CHANNEL_ID, default
        )
        return default


def _raw_account(section: dict[str, Any], account_id: str | None) -> dict[str, Any]:
    accounts = section.get("accounts")
    if not isinstance(accounts, dict):
        return section
    raw = accounts.get(account_id or DEFAULT_ACCOUNT_ID)
    if raw is None and accounts:
        # Unknown or omitted id: fall back to the first declared account.
        raw = next(iter(accounts.values()))
    if raw is not None and not isinstance(raw, dict):
        logger.warning(
            "Ignoring non-mapping %s account entry %r", CHANNEL_ID, account_id
        )
        return {}
    return raw or {}


def resolve_account(
    cfg: dict[str, Any] | None, account_id: str | None = None
) -> AccountSettings:
    """Produce a fully-defaulted :class:`AccountSettings` for *account_id*."""
    raw = _raw_account(channel_section(cfg), account_id)
    defaults = AccountSettings()
    return AccountSettings(
        account_id=account_id or DEFAULT_ACCOUNT_ID,
        app_id=str(_get(raw, "appId", "")),
        app_secret=str(_get(raw, "appSecret", "")),
        encrypt_key=str(_get(raw, "encryptKey", "")),
        verification_token=str(_get(raw, "verificationToken", "")),
        domain=_enum(Domain, _get(raw, "domain", defaults.domain.value), defaults.domain),
        connection_mode=_enum(
            ConnectionMode,
            _get(raw, "connectionMode", defaults.connection_mode.value),
            defaults.connection_mode,
        ),
        webhook_port=_port(_get(raw, "webhookPort", None), defaults.webhook_port),
        webhook_path=str(_get(raw, "webhookPath", defaults.webhook_path)),
        handle_groups=bool(_get(raw, "handleGroups", True)),
        handle_dms=bool(_get(raw, "handleDMs", True)),
        trigger_on_mention=bool(_get(raw, "triggerOnMention", True)),
        dm_policy=_enum(
            DmPolicy, _get(raw, "dmPolicy", defaults.dm_policy.value), defaults.dm_policy
        ),
        allow_from=_id_list(_get(raw, "allowFrom", None), defaults.allow_from),
        block_from=_id_list(_get(raw, "blockFrom", None), defaults.block_from),
    )


def list_account_ids(cfg: dict[str, Any] | None) -> list[str]:
    """List configured account ids for the channel."""
    section = channel_section(cfg)
    if not section:
        return []
    accounts = section.get("accounts")
    if isinstance(accounts, dict):
        return list(accounts)
    if _get(section, "appId", ""):
        return [DEFAULT_ACCOUNT_ID]
    return []


def is_configured(account: AccountSettings | None) -> bool:
    return bool(account is not None and account.is_configured)


def describe_account(account: AccountSettings) -> dict[str, Any]:
    return {
        "accountId": account.account_id,
        "enabled": True,
        "configured": bool(account.app_id),
    }


def load_config(config_path: str | Path) -> dict[str, Any]:
    """Load a YAML host config, falling back to an empty dict if missing."""
    path = Path(config_path).expanduser()
    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return {}
    return yaml.safe_load(path.read_text()) or {}
