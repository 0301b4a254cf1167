"""Callback-mode HTTP listener using aiohttp.

The listener owns no protocol logic: each POST on the configured path is
turned into a lark-oapi ``RawRequest`` and handed to the SDK's event
dispatcher, which verifies the signature, answers the URL-verification
challenge and invokes the registered message handler.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web
from lark_oapi.core.model import RawRequest
from multidict import CIMultiDict

logger = logging.getLogger(__name__)


class WebhookServer:
    """Single-route HTTP listener for provider event callbacks.

    Args:
        event_handler: lark-oapi ``EventDispatcherHandler``.
        port: Bind port (``0`` picks a free one).
        path: Route path, e.g. ``/webhook/lark``.
        host: Bind address (default ``"0.0.0.0"``).
    """

    def __init__(
        self,
        event_handler: Any,
        *,
        port: int,
        path: str,
        host: str = "0.0.0.0",
    ) -> None:
        self._event_handler = event_handler
        self._host = host
        self._port = port
        self.path = path if path.startswith("/") else f"/{path}"
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    # ---- lifecycle ----

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(self.path, self._handle_post)
        return app

    async def start(self) -> None:
        """Bind the listener; returns once the socket is bound.

        Raises ``OSError`` when the port cannot be bound.
        """
        self._app = self.build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await self._runner.cleanup()
            self._runner = None
            raise
        logger.info("Webhook listening on %s:%s%s", self._host, self.port, self.path)

    async def close(self) -> None:
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._app = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    @property
    def port(self) -> int:
        """Actual bound port (differs from the configured one when it was 0)."""
        if self._runner and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self._port

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self.port}{self.path}"

    # ---- inbound ----

    @staticmethod
    def to_raw_request(path: str, headers: Any, body: bytes) -> RawRequest:
        req = RawRequest()
        req.uri = path
        req.body = body
        # Case-insensitive so X-Lark-* lookups survive lower-cased proxies.
        req.headers = CIMultiDict(headers)
        return req

    async def _handle_post(self, request: web.Request) -> web.Response:
        body = await request.read()
        raw = self.to_raw_request(request.path_qs, request.headers, body)
        resp = self._event_handler.do(raw)
        return web.Response(
            status=resp.status_code,
            body=resp.content,
            headers=resp.headers or {},
        )
