"""
Realtime client connection with automatic reconnection.

Maintains one WebSocket connection to the CollabHub server with:
- Capped exponential backoff between failed attempts
- A ceiling on consecutive failed attempts
- Terminal handling of authentication failures (no retry)
- Presence announcement and connect/reconnect callbacks on every open
- Event dispatch by frame ``type`` to sync or async handlers
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections import defaultdict
from typing import Any, Callable, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidStatus, WebSocketException

from .config import ReconnectConfig

log = structlog.get_logger()

AUTH_FAILED_CLOSE_CODE = 4001
AUTH_FAILED_HTTP_STATUSES = (401, 403)

EventHandler = Callable[[dict[str, Any]], Any]
LifecycleCallback = Callable[[], Any]


class AuthenticationError(Exception):
    """The server rejected the token. Retrying would not help."""


class ReconnectExhausted(Exception):
    """Too many consecutive connection attempts failed."""

    def __init__(self, attempts: int, last_error: str | None):
        super().__init__(f"Gave up after {attempts} failed attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def with_token(url: str, token: str) -> str:
    """Add the auth token to the WebSocket URL as a query parameter."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query) if k != "token"]
    query.append(("token", token))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _is_auth_failure(exc: BaseException) -> bool:
    if isinstance(exc, InvalidStatus):
        return exc.response.status_code in AUTH_FAILED_HTTP_STATUSES
    if isinstance(exc, ConnectionClosed):
        return exc.rcvd is not None and exc.rcvd.code == AUTH_FAILED_CLOSE_CODE
    return False


async def _call(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class RealtimeClient:
    """
    Persistent realtime connection to a CollabHub server.

    ``run()`` drives the connection until ``stop()`` is called, the token
    is rejected (``AuthenticationError``) or the attempt ceiling is reached
    (``ReconnectExhausted``). A connection that was open and then dropped
    is reconnected; only consecutive failures to open count toward the
    ceiling.
    """

    def __init__(
        self,
        url: str,
        token: str,
        reconnect: Optional[ReconnectConfig] = None,
        connect: Callable[[str], Any] = websockets.connect,
    ):
        self._url = url
        self._token = token
        self._reconnect = reconnect or ReconnectConfig()
        self._connect = connect

        self._ws: Any = None
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._connect_callbacks: list[LifecycleCallback] = []
        self._reconnect_callbacks: list[LifecycleCallback] = []

        self._running = False
        self._has_connected = False
        self._attempts = 0
        self._last_error: str | None = None
        self._task: asyncio.Task | None = None

    # --- State ---

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def status(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "reconnect_attempts": self._attempts,
            "last_error": self._last_error,
        }

    # --- Registration ---

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for an event type. ``"*"`` receives every event."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: str, handler: EventHandler | None = None) -> None:
        """Remove one handler, or all handlers for the event type."""
        if handler is None:
            self._handlers.pop(event_type, None)
            return
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def on_connect(self, callback: LifecycleCallback) -> None:
        """Called after the first successful connect."""
        self._connect_callbacks.append(callback)

    def on_reconnect(self, callback: LifecycleCallback) -> None:
        """Called after every successful reconnect."""
        self._reconnect_callbacks.append(callback)

    # --- Lifecycle ---

    async def start(self) -> None:
        """Run the connection loop as a background task."""
        self._task = asyncio.create_task(self.run())

    async def wait(self) -> None:
        """Wait for the background task; re-raises its terminal error."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        """Close the connection locally. Never triggers a retry."""
        self._running = False
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        log.info("client.stopped")

    async def run(self) -> None:
        self._running = True
        delay = self._reconnect.initial_delay_seconds

        while self._running:
            try:
                ws = await self._connect(with_token(self._url, self._token))
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                if _is_auth_failure(exc):
                    self._fail_auth(exc)
                self._attempts += 1
                self._last_error = str(exc)
                if self._attempts >= self._reconnect.max_attempts:
                    self._running = False
                    log.error("client.reconnect_exhausted", attempts=self._attempts, error=self._last_error)
                    raise ReconnectExhausted(self._attempts, self._last_error) from exc
                log.warning(
                    "client.reconnecting",
                    attempt=self._attempts,
                    delay=delay,
                    error=self._last_error,
                )
                await asyncio.sleep(delay)
                delay = min(delay * self._reconnect.multiplier, self._reconnect.max_delay_seconds)
                continue

            if not self._running:
                await ws.close()
                break

            self._attempts = 0
            delay = self._reconnect.initial_delay_seconds
            await self._on_open(ws)

            try:
                await self._listen(ws)
            except ConnectionClosed as exc:
                if _is_auth_failure(exc):
                    self._fail_auth(exc)
                self._last_error = str(exc)
                log.warning("client.connection_lost", error=self._last_error)
            finally:
                self._ws = None

            if self._running:
                await asyncio.sleep(delay)

    def _fail_auth(self, exc: BaseException) -> None:
        self._running = False
        self._last_error = str(exc)
        log.error("client.authentication_failed", error=self._last_error)
        raise AuthenticationError(self._last_error) from exc

    async def _on_open(self, ws: Any) -> None:
        self._ws = ws
        reconnect = self._has_connected
        self._has_connected = True
        log.info("client.connected", reconnect=reconnect)

        await self._send({"type": "presence.announce"})
        callbacks = self._reconnect_callbacks if reconnect else self._connect_callbacks
        for callback in callbacks:
            try:
                await _call(callback)
            except Exception:
                log.exception("client.callback_failed", reconnect=reconnect)

    async def _listen(self, ws: Any) -> None:
        while self._running:
            try:
                raw = await ws.recv()
            except ConnectionClosedOK:
                log.info("client.connection_closed")
                return
            await self._dispatch(raw)

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("client.invalid_frame", raw=str(raw)[:200])
            return
        if not isinstance(event, dict):
            log.warning("client.invalid_frame", raw=str(raw)[:200])
            return

        event_type = event.get("type", "")
        for handler in [*self._handlers.get(event_type, []), *self._handlers.get("*", [])]:
            try:
                await _call(handler, event)
            except Exception:
                log.exception("client.handler_failed", event_type=event_type)

    # --- Sending ---

    async def _send(self, frame: dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(json.dumps(frame))
        except ConnectionClosed as exc:
            log.warning("client.send_failed", frame_type=frame.get("type"), error=str(exc))
            return False
        return True

    async def ping(self) -> bool:
        return await self._send({"type": "ping"})

    async def join_room(self, project_id: str) -> bool:
        return await self._send({"type": "room.join", "projectId": project_id})

    async def leave_room(self, project_id: str) -> bool:
        return await self._send({"type": "room.leave", "projectId": project_id})

    async def send_message(
        self,
        project_id: str,
        content: str,
        message_type: str = "text",
        reply_to_message_id: str | None = None,
    ) -> bool:
        frame: dict[str, Any] = {
            "type": "message.send",
            "projectId": project_id,
            "content": content,
            "messageType": message_type,
        }
        if reply_to_message_id:
            frame["replyToMessageId"] = reply_to_message_id
        return await self._send(frame)

    async def set_typing(self, project_id: str, active: bool) -> bool:
        frame_type = "typing.start" if active else "typing.stop"
        return await self._send({"type": frame_type, "projectId": project_id})

    async def update_progress(self, project_id: str, progress: int) -> bool:
        return await self._send(
            {"type": "project.progress", "projectId": project_id, "progress": progress}
        )

    async def complete_task(self, project_id: str, task_id: str) -> bool:
        return await self._send(
            {"type": "project.taskComplete", "projectId": project_id, "taskId": task_id}
        )

    async def request_match(
        self,
        recipient_id: str,
        project_id: str | None = None,
        message: str | None = None,
    ) -> bool:
        frame: dict[str, Any] = {"type": "match.request", "recipientId": recipient_id}
        if project_id:
            frame["projectId"] = project_id
        if message:
            frame["message"] = message
        return await self._send(frame)
