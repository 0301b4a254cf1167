"""Tests for account resolution and config loading."""

from __future__ import annotations

from lark_bot_channel.config import (
    channel_section,
    describe_account,
    is_configured,
    list_account_ids,
    load_config,
    resolve_account,
)
from lark_bot_channel.models import (
    AccountSettings,
    ConnectionMode,
    DmPolicy,
    Domain,
)


def _cfg(section: dict) -> dict:
    return {"channels": {"lark-bot": section}}


# ---------------------------------------------------------------------------
# resolve_account
# ---------------------------------------------------------------------------


def test_defaults_for_empty_config():
    """An absent channel section resolves to a fully-defaulted account."""
    account = resolve_account({})

    assert account.account_id == "default"
    assert account.app_id == ""
    assert account.domain is Domain.LARK
    assert account.connection_mode is ConnectionMode.WEBHOOK
    assert account.webhook_port == 9876
    assert account.webhook_path == "/webhook/lark"
    assert account.handle_groups is True
    assert account.handle_dms is True
    assert account.trigger_on_mention is True
    assert account.dm_policy is DmPolicy.OPEN
    assert account.allow_from == ("*",)
    assert account.block_from == ()
    assert not account.is_configured


def test_none_config_is_tolerated():
    assert resolve_account(None) == AccountSettings()


def test_flat_single_account():
    cfg = _cfg(
        {
            "appId": "cli_a",
            "appSecret": "s",
            "domain": "feishu",
            "connectionMode": "websocket",
            "webhookPort": 8080,
            "handleGroups": False,
            "dmPolicy": "allowlist",
            "allowFrom": ["ou_1", "ou_2"],
        }
    )
    account = resolve_account(cfg)

    assert account.app_id == "cli_a"
    assert account.app_secret == "s"
    assert account.domain is Domain.FEISHU
    assert account.connection_mode is ConnectionMode.WEBSOCKET
    assert account.webhook_port == 8080
    assert account.handle_groups is False
    assert account.dm_policy is DmPolicy.ALLOWLIST
    assert account.allow_from == ("ou_1", "ou_2")
    assert account.is_configured


def test_snake_case_aliases():
    cfg = _cfg({"app_id": "cli_a", "app_secret": "s", "handle_dms": False})
    account = resolve_account(cfg)

    assert account.app_id == "cli_a"
    assert account.handle_dms is False


def test_named_accounts():
    cfg = _cfg(
        {
            "accounts": {
                "main": {"appId": "cli_main", "appSecret": "s1"},
                "support": {"appId": "cli_support", "appSecret": "s2"},
            }
        }
    )

    assert resolve_account(cfg, "support").app_id == "cli_support"
    assert resolve_account(cfg, "support").account_id == "support"


def test_unknown_account_falls_back_to_first():
    """Unknown or omitted ids resolve to the first declared account."""
    cfg = _cfg(
        {
            "accounts": {
                "main": {"appId": "cli_main", "appSecret": "s1"},
                "support": {"appId": "cli_support", "appSecret": "s2"},
            }
        }
    )

    assert resolve_account(cfg, "nope").app_id == "cli_main"
    assert resolve_account(cfg).app_id == "cli_main"
    assert resolve_account(cfg).account_id == "default"


def test_default_account_preferred_when_id_omitted():
    cfg = _cfg(
        {
            "accounts": {
                "main": {"appId": "cli_main"},
                "default": {"appId": "cli_default"},
            }
        }
    )
    assert resolve_account(cfg).app_id == "cli_default"


def test_invalid_enum_and_port_fall_back(caplog):
    cfg = _cfg({"domain": "mars", "webhookPort": "not-a-port"})
    account = resolve_account(cfg)

    assert account.domain is Domain.LARK
    assert account.webhook_port == 9876
    assert "Unknown Domain value" in caplog.text
    assert "Invalid webhookPort" in caplog.text


def test_single_string_allowlist():
    account = resolve_account(_cfg({"dmPolicy": "allowlist", "allowFrom": "ou_1"}))
    assert account.allow_from == ("ou_1",)


def test_non_list_id_values_fall_back(caplog):
    account = resolve_account(
        _cfg({"dmPolicy": "allowlist", "allowFrom": 123, "blockFrom": {"a": 1}})
    )
    assert account.allow_from == ("*",)
    assert account.block_from == ()
    assert "Invalid id list 123" in caplog.text


def test_non_mapping_account_entry_is_ignored(caplog):
    cfg = _cfg({"accounts": {"main": "cli_main", "other": None}})

    account = resolve_account(cfg, "main")

    assert account.account_id == "main"
    assert account.app_id == ""
    assert not account.is_configured
    assert "Ignoring non-mapping lark-bot account entry 'main'" in caplog.text
    assert resolve_account(cfg, "other").app_id == ""


def test_non_mapping_channels_tree():
    assert resolve_account({"channels": ["lark-bot"]}) == AccountSettings()


def test_channel_section_ignores_non_dict():
    assert channel_section({"channels": {"lark-bot": "oops"}}) == {}


# ---------------------------------------------------------------------------
# Account listing and description
# ---------------------------------------------------------------------------


def test_list_account_ids():
    assert list_account_ids({}) == []
    assert list_account_ids(_cfg({"appSecret": "s"})) == []
    assert list_account_ids(_cfg({"appId": "cli_a"})) == ["default"]
    assert list_account_ids(
        _cfg({"accounts": {"main": {}, "support": {}}})
    ) == ["main", "support"]


def test_is_configured():
    assert not is_configured(None)
    assert not is_configured(AccountSettings(app_id="cli_a"))
    assert is_configured(AccountSettings(app_id="cli_a", app_secret="s"))


def test_describe_account():
    info = describe_account(AccountSettings(account_id="main", app_id="cli_a"))
    assert info == {"accountId": "main", "enabled": True, "configured": True}


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


def test_load_config_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "channels:\n"
        "  lark-bot:\n"
        "    appId: cli_a\n"
        "    appSecret: s\n"
        "    connectionMode: websocket\n"
    )
    cfg = load_config(path)

    account = resolve_account(cfg)
    assert account.app_id == "cli_a"
    assert account.connection_mode is ConnectionMode.WEBSOCKET


def test_load_config_missing_file(tmp_path, caplog):
    assert load_config(tmp_path / "missing.yaml") == {}
    assert "Config file not found" in caplog.text


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == {}
