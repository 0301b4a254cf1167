"""Outbound text delivery through the provider's message-create API."""

from __future__ import annotations

import json
import logging

from lark_oapi.api.im.v1 import CreateMessageRequest, CreateMessageRequestBody

from .config import CHANNEL_ID
from .models import SendResult
from .registry import AccountRegistry

logger = logging.getLogger(__name__)


def build_text_request(to: str, text: str) -> CreateMessageRequest:
    return (
        CreateMessageRequest.builder()
        .receive_id_type("chat_id")
        .request_body(
            CreateMessageRequestBody.builder()
            .receive_id(to)
            .msg_type("text")
            .content(json.dumps({"text": text}, ensure_ascii=False))
            .build()
        )
        .build()
    )


async def send_text(
    registry: AccountRegistry, to: str, text: str, account_id: str
) -> SendResult:
    """Send *text* to chat *to* as *account_id*.

    Never raises: a missing client, a non-zero provider code and transport
    errors all come back as ``SendResult(ok=False, error=...)``.
    """
    client = registry.get_client(account_id)
    if client is None:
        return SendResult(ok=False, error="Lark client not initialized")
    try:
        resp = await client.im.v1.message.acreate(build_text_request(to, text))
    except Exception as exc:
        logger.warning("[%s:%s] Send to %s failed: %s", CHANNEL_ID, account_id, to, exc)
        return SendResult(ok=False, error=f"Send failed: {exc}")
    if resp is not None and resp.code == 0:
        message_id = resp.data.message_id if resp.data else None
        return SendResult(ok=True, channel=CHANNEL_ID, message_id=message_id)
    code = getattr(resp, "code", None)
    msg = getattr(resp, "msg", None)
    return SendResult(ok=False, error=f"Lark API error {code}: {msg}")
