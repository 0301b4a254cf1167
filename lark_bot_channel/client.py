"""Provider client construction and bot identity lookup (lark-oapi)."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import lark_oapi as lark

from .models import AccountSettings, Domain

logger = logging.getLogger(__name__)

BOT_INFO_URI = "/open-apis/bot/v3/info"


def resolve_domain(account: AccountSettings) -> str:
    if account.domain is Domain.FEISHU:
        return lark.FEISHU_DOMAIN  # https://open.feishu.cn
    return lark.LARK_DOMAIN  # https://open.larksuite.com


def domain_label(account: AccountSettings) -> str:
    return "Feishu" if account.domain is Domain.FEISHU else "Lark"


def create_lark_client(account: AccountSettings) -> lark.Client:
    """Build the API client used for sends and identity lookups."""
    return (
        lark.Client.builder()
        .app_id(account.app_id)
        .app_secret(account.app_secret)
        .domain(resolve_domain(account))
        .log_level(lark.LogLevel.INFO)
        .build()
    )


def build_event_handler(
    account: AccountSettings, on_message: Callable[[Any], None]
) -> lark.EventDispatcherHandler:
    """Event dispatcher with a single ``im.message.receive_v1`` handler.

    Shared by both connection modes; in webhook mode it also verifies
    signatures and answers the URL challenge.
    """
    return (
        lark.EventDispatcherHandler.builder(
            account.encrypt_key or "",
            account.verification_token or "",
            lark.LogLevel.WARNING,
        )
        .register_p2_im_message_receive_v1(on_message)
        .build()
    )


def event_to_dict(data: Any) -> dict[str, Any]:
    """Turn an SDK receive event into the plain event-body dict."""
    event = getattr(data, "event", None)
    if event is None:
        return {}
    return json.loads(lark.JSON.marshal(event))


def _fetch_bot_open_id_sync(client: lark.Client) -> str:
    request = (
        lark.BaseRequest.builder()
        .http_method(lark.HttpMethod.GET)
        .uri(BOT_INFO_URI)
        .token_types({lark.AccessTokenType.TENANT})
        .build()
    )
    resp = client.request(request)
    if resp.code != 0 or not resp.raw or not resp.raw.content:
        raise RuntimeError(
            f"bot info request failed: code={resp.code}, msg={getattr(resp, 'msg', '')}"
        )
    data = json.loads(resp.raw.content)
    open_id = (data.get("bot") or {}).get("open_id", "")
    if not open_id:
        raise RuntimeError("bot info response has no open_id")
    return open_id


async def fetch_bot_open_id(client: lark.Client) -> str:
    """Fetch the bot's own open_id; raises on any failure."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _fetch_bot_open_id_sync, client)
