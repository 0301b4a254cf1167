"""Tests for the per-account registry."""

from __future__ import annotations

from lark_bot_channel.registry import AccountRegistry, client_key


def test_client_key():
    assert client_key("main") == "lark-bot:main"


def test_set_and_remove():
    registry = AccountRegistry()
    client, conn, server = object(), object(), object()
    registry.set_client("main", client)
    registry.set_connection("main", conn)
    registry.set_server("main", server)

    assert registry.is_running("main")
    assert registry.get_client("main") is client
    assert registry.account_ids() == ["main"]

    assert registry.remove("main") == (client, conn, server)
    assert not registry.is_running("main")
    assert registry.get_connection("main") is None
    assert registry.get_server("main") is None


def test_remove_unknown_account():
    assert AccountRegistry().remove("nope") == (None, None, None)


def test_accounts_are_isolated():
    registry = AccountRegistry()
    registry.set_client("a", "client-a")
    registry.set_client("b", "client-b")
    registry.remove("a")

    assert registry.get_client("b") == "client-b"
    assert registry.account_ids() == ["b"]
