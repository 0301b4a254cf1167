"""CLI entry point for running and inspecting the Lark bot channel."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import signal
import sys
from typing import Any

from .channel import LarkBotChannel
from .channels.base import AccountContext
from .client import create_lark_client
from .config import describe_account, list_account_ids, load_config, resolve_account
from .outbound import send_text
from .registry import AccountRegistry

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = "~/.lark-bot/config.yaml"


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="lark-bot-channel",
        description="Lark/Feishu bot channel for the messaging gateway",
    )
    parser.add_argument(
        "--config",
        default=_DEFAULT_CONFIG,
        help="Config file path",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("accounts", help="List configured accounts")

    send_p = sub.add_parser("send", help="Send a text message to a chat")
    send_p.add_argument("--account", default=None, help="Account id")
    send_p.add_argument("--to", required=True, help="Destination chat_id")
    send_p.add_argument("--message", required=True, help="Message text")

    serve_p = sub.add_parser("serve", help="Run accounts until interrupted")
    serve_p.add_argument(
        "--runtime",
        required=True,
        help="Host runtime as 'module:attribute' (class or instance)",
    )
    serve_p.add_argument(
        "--account",
        action="append",
        dest="accounts",
        help="Account id to start (repeatable; default: all)",
    )

    return parser


def load_runtime(target: str) -> Any:
    """Import a host runtime from ``module:attribute``.

    A class is instantiated without arguments.
    """
    module_path, sep, attr = target.partition(":")
    if not sep or not module_path or not attr:
        raise ValueError(f"Runtime must look like 'module:attribute', got {target!r}")
    obj = getattr(importlib.import_module(module_path), attr)
    return obj() if isinstance(obj, type) else obj


# ---- subcommand handlers ----


def _cmd_accounts(args: argparse.Namespace) -> None:
    cfg = load_config(args.config)
    ids = list_account_ids(cfg)
    if not ids:
        print("No lark-bot accounts configured.")
        return
    for account_id in ids:
        account = resolve_account(cfg, account_id)
        info = describe_account(account)
        print(
            f"  {info['accountId']}"
            f"  configured={info['configured']}"
            f"  mode={account.connection_mode.value}"
            f"  domain={account.domain.value}"
            f"  dm_policy={account.dm_policy.value}"
        )


def _cmd_send(args: argparse.Namespace) -> None:
    """Send one text message without starting a transport."""
    cfg = load_config(args.config)
    account = resolve_account(cfg, args.account)
    if not account.is_configured:
        print(
            f"Account '{account.account_id}' has no appId/appSecret.",
            file=sys.stderr,
        )
        sys.exit(1)

    registry = AccountRegistry()
    registry.set_client(account.account_id, create_lark_client(account))
    result = asyncio.run(
        send_text(registry, args.to, args.message, account.account_id)
    )
    if result.ok:
        print(f"Message sent: {result.message_id}")
    else:
        print(f"Failed to send message: {result.error}", file=sys.stderr)
        sys.exit(1)


async def _serve(
    cfg: dict[str, Any], runtime: Any, account_ids: list[str]
) -> None:
    channel = LarkBotChannel(runtime=runtime)
    abort = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, abort.set)

    for account_id in account_ids:
        await channel.start_account(
            AccountContext(cfg=cfg, account_id=account_id)
        )

    await abort.wait()
    for account_id in account_ids:
        await channel.stop_account(account_id)


def _cmd_serve(args: argparse.Namespace) -> None:
    cfg = load_config(args.config)
    account_ids = args.accounts or list_account_ids(cfg)
    if not account_ids:
        print("No lark-bot accounts configured.", file=sys.stderr)
        sys.exit(1)
    runtime = load_runtime(args.runtime)
    asyncio.run(_serve(cfg, runtime, account_ids))


# ---- main ----


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    if args.command == "accounts":
        _cmd_accounts(args)
    elif args.command == "send":
        _cmd_send(args)
    elif args.command == "serve":
        _cmd_serve(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
