"""Persistent-connection mode using the lark-oapi websocket client.

The SDK schedules all websocket work on the event loop held in its module
global ``lark_oapi.ws.client.loop``.  Every account therefore shares one
SDK loop, run on a daemon thread and installed into that global once;
each :class:`LongConnection` drives its client on it through
``run_coroutine_threadsafe``.  The thread is stopped when the last
connection closes.  Reconnection after a drop is handled by the SDK's
``auto_reconnect``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

import lark_oapi as lark
import lark_oapi.ws.client as ws_client_module

from .client import resolve_domain
from .models import AccountSettings

logger = logging.getLogger(__name__)


async def _cancel_tasks(tasks: list[asyncio.Task[Any]]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def _client_tasks(client: Any) -> list[asyncio.Task[Any]]:
    """Tasks on the running loop whose coroutine is a method of *client*."""
    owned = []
    for task in asyncio.all_tasks():
        if task is asyncio.current_task():
            continue
        frame = getattr(task.get_coro(), "cr_frame", None)
        if frame is not None and frame.f_locals.get("self") is client:
            owned.append(task)
    return owned


class SdkLoop:
    """The event loop shared by every websocket client in the process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._users = 0

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread

    def acquire(self) -> asyncio.AbstractEventLoop:
        """Return the running SDK loop, starting its thread on first use."""
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                started = threading.Event()
                thread = threading.Thread(
                    target=self._run, args=(loop, started), name="lark-ws", daemon=True
                )
                thread.start()
                started.wait()
                ws_client_module.loop = loop
                self._loop, self._thread = loop, thread
            self._users += 1
            return self._loop

    @staticmethod
    def _run(loop: asyncio.AbstractEventLoop, started: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(started.set)
        try:
            loop.run_forever()
        finally:
            loop.close()
            logger.debug("SDK websocket loop exited")

    async def release(self) -> None:
        """Drop one user; the last one cancels leftover tasks and stops the thread."""
        with self._lock:
            self._users -= 1
            if self._users > 0 or self._loop is None:
                return
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None

        async def _cancel_remaining() -> None:
            current = asyncio.current_task()
            await _cancel_tasks([t for t in asyncio.all_tasks() if t is not current])

        try:
            await asyncio.wrap_future(
                asyncio.run_coroutine_threadsafe(_cancel_remaining(), loop)
            )
        finally:
            loop.call_soon_threadsafe(loop.stop)
            await asyncio.to_thread(thread.join, 5)


sdk_loop = SdkLoop()


class LongConnection:
    """Outbound-initiated websocket that delivers events to *event_handler*."""

    def __init__(self, account: AccountSettings, event_handler: Any) -> None:
        self.account = account
        self._event_handler = event_handler
        self._client: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def _build_client(self) -> Any:
        return lark.ws.Client(
            self.account.app_id,
            self.account.app_secret,
            event_handler=self._event_handler,
            log_level=lark.LogLevel.INFO,
            domain=resolve_domain(self.account),
            auto_reconnect=True,
        )

    async def start(self) -> None:
        """Connect and return once the first handshake succeeded.

        Raises whatever the SDK raised if the initial connect fails.
        """
        loop = sdk_loop.acquire()
        try:
            await asyncio.wrap_future(asyncio.run_coroutine_threadsafe(self._open(), loop))
        except BaseException:
            await sdk_loop.release()
            raise
        self._loop = loop

    async def _open(self) -> None:
        self._client = self._build_client()
        await self._client._connect()
        asyncio.get_running_loop().create_task(self._client._ping_loop())

    async def _shutdown(self) -> None:
        # Otherwise the SDK reconnects as soon as it sees the socket close.
        self._client._auto_reconnect = False
        try:
            await self._client._disconnect()
        finally:
            await _cancel_tasks(_client_tasks(self._client))

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    async def close(self) -> None:
        """Disconnect the websocket and cancel this client's SDK tasks."""
        loop = self._loop
        if loop is None:
            return
        self._loop = None
        try:
            await asyncio.wrap_future(
                asyncio.run_coroutine_threadsafe(self._shutdown(), loop)
            )
        except Exception:
            logger.warning(
                "Error disconnecting long connection for '%s'",
                self.account.account_id,
                exc_info=True,
            )
        finally:
            await sdk_loop.release()
