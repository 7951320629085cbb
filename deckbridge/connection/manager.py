"""
Connection Manager - owns the single websocket session to openHAB.

Provides the event stream (item state changes, connectivity), the heartbeat,
and the REST path for item reads and commands.
"""

from __future__ import annotations

import asyncio
import json
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import WebSocketException

from deckbridge.bridge_logging import get_logger, mask_token
from deckbridge.config import DEFAULT_HEARTBEAT_S, ServerSettings
from deckbridge.connection import messages
from deckbridge.connection.messages import HeartbeatAck, ItemStateChangedEvent
from deckbridge.connection.rest import ItemDirectory
from deckbridge.services.base import BridgeService


log = get_logger("DECK.Connection")

# websockets raises a plain ValueError for an unparsable port.
_TRANSPORT_ERRORS = (WebSocketException, OSError, asyncio.TimeoutError, ValueError)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


StateListener = Callable[[ItemStateChangedEvent], None]
ConnectivityListener = Callable[[ConnectionState], None]


def _default_connector(url: str) -> Any:
    # openHAB liveness is handled by the application-level heartbeat.
    return websockets.connect(url, ping_interval=None)


class ConnectionManager(BridgeService):
    """
    Maintains at most one live session to the openHAB server.

    There is no reconnect on a missed heartbeat acknowledgement; a new session
    is only opened by update_settings() or an explicit connect().
    """

    def __init__(
        self,
        name: str = "connection",
        config: Optional[Dict[str, Any]] = None,
        *,
        directory: Optional[ItemDirectory] = None,
        connector: Optional[Callable[[str], Any]] = None,
    ):
        config = dict(config or {})
        super().__init__(name, config)

        self.heartbeat_s = float(config.get("heartbeat_s", DEFAULT_HEARTBEAT_S))
        self._settings = ServerSettings.from_values(
            config.get("host", ""), config.get("port", ""), config.get("api_token", "")
        )
        self._directory = directory or ItemDirectory(timeout_s=float(config.get("http_timeout_s", 10.0)))
        self._directory.configure(self._settings.rest_url, self._settings.api_token)
        self._connector = connector or _default_connector

        self._state = ConnectionState.DISCONNECTED
        self._socket: Any = None
        self._generation = 0
        self._session_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._connected_at: float | None = None
        self._last_pong: float | None = None

        self._state_listeners: List[StateListener] = []
        self._connectivity_listeners: List[ConnectivityListener] = []

    # Lifecycle

    async def start(self) -> None:
        log.info("DECK.Connection.Starting", extra={"fields": {"host": self._settings.host}})
        self.connect()
        self._mark_started()

    async def stop(self) -> None:
        await self.close()
        self._mark_stopped()

    def health(self) -> Dict[str, Any]:
        connected = self._state is ConnectionState.CONNECTED
        return {
            "status": "healthy" if connected else "degraded",
            "message": f"openHAB session {self._state.value}",
            "details": {
                "state": self._state.value,
                "host": self._settings.host,
                "port": self._settings.port,
                "rest_url": self._settings.rest_url,
                "last_pong_age_s": self.last_pong_age,
            },
        }

    def on_config_reload(self, new_config: Dict[str, Any]) -> None:
        super().on_config_reload(new_config)
        self.update_settings(
            new_config.get("host", ""),
            new_config.get("port", ""),
            new_config.get("api_token", ""),
        )

    # Subscribers

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def add_connectivity_listener(self, listener: ConnectivityListener) -> None:
        self._connectivity_listeners.append(listener)

    def remove_connectivity_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._connectivity_listeners:
            self._connectivity_listeners.remove(listener)

    # Session

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._socket is not None

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    @property
    def directory(self) -> ItemDirectory:
        return self._directory

    @property
    def last_pong_age(self) -> float | None:
        if self._last_pong is None:
            return None
        return round(time.monotonic() - self._last_pong, 3)

    def update_settings(self, host: Any = "", port: Any = "", api_key: Any = "") -> None:
        settings = ServerSettings.from_values(host, port, api_key)
        log.info(
            "DECK.Connection.SettingsUpdated",
            extra={
                "fields": {
                    "host": settings.host,
                    "port": settings.port,
                    "api_token": mask_token(settings.api_token),
                    "rest_url": settings.rest_url,
                }
            },
        )
        if not settings.is_complete:
            log.warning("DECK.Connection.SettingsIncomplete", extra={"fields": {"missing": "host"}})

        self._settings = settings
        self._directory.configure(settings.rest_url, settings.api_token)

        self.disconnect()
        self.connect()

    def connect(self) -> None:
        url = self._settings.websocket_url
        if not url or not self._settings.rest_url:
            log.warning("DECK.Connection.NotConfigured", extra={"fields": {"action": "skip_connect"}})
            return
        if self._session_task is not None and not self._session_task.done():
            log.warning("DECK.Connection.AlreadyActive", extra={"fields": {"state": self._state.value}})
            return

        self._cancel_heartbeat()
        self._generation += 1
        self._set_state(ConnectionState.CONNECTING)
        log.info("DECK.Connection.Connecting", extra={"fields": {"host": self._settings.host, "port": self._settings.port}})
        self._session_task = asyncio.get_running_loop().create_task(self._run_session(url, self._generation))

    def disconnect(self) -> None:
        self._generation += 1

        task = self._session_task
        self._session_task = None
        if task is not None and not task.done():
            task.cancel()
            self._track(task)

        self._cancel_heartbeat()
        self._socket = None
        self._connected_at = None
        if self._state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)

    async def close(self) -> None:
        """Disconnect and release the REST client."""
        self.disconnect()
        pending = [t for t in self._background if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._directory.aclose()

    async def send_message(self, message: Dict[str, Any]) -> bool:
        if self._socket is None:
            log.error("DECK.Connection.NotOpen", extra={"fields": {"type": message.get("type")}})
            self.connect()
            return False
        return await self._send(self._socket, message)

    # REST

    async def send_command(self, item_name: str, command: str | int | float) -> bool:
        return await self._directory.send_command(item_name, command)

    async def get_item_state(self, item_name: str) -> None:
        """Read one item over REST and publish it as a state-change event."""
        item = await self._directory.get_item(item_name)
        if item is None:
            return
        self._emit_item_state(messages.item_state_snapshot(item.name, item.state))

    def request_item_state(self, item_name: str) -> None:
        self._track(asyncio.get_running_loop().create_task(self.get_item_state(item_name)))

    async def get_items(self) -> List[str]:
        return await self._directory.list_items()

    def clear_item_cache(self) -> None:
        self._directory.clear_cache()

    # Internals

    async def _run_session(self, url: str, generation: int) -> None:
        heartbeat: asyncio.Task[None] | None = None
        try:
            async with self._connector(url) as socket:
                if generation != self._generation:
                    return
                self._socket = socket
                self._connected_at = time.monotonic()
                self._last_pong = None
                self._set_state(ConnectionState.CONNECTED)
                log.info("DECK.Connection.Connected", extra={"fields": {"host": self._settings.host}})

                await self._send(socket, messages.type_filter())
                heartbeat = asyncio.create_task(self._heartbeat_loop(socket))
                self._heartbeat_task = heartbeat

                async for raw in socket:
                    self._process_message(raw)

        except _TRANSPORT_ERRORS as exc:
            log.error("DECK.Connection.TransportError", extra={"fields": {"host": self._settings.host, "error": repr(exc)}})
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
            if generation == self._generation:
                self._heartbeat_task = None
                self._socket = None
                self._session_task = None
                self._connected_at = None
                if self._state is not ConnectionState.DISCONNECTED:
                    log.info("DECK.Connection.Closed", extra={"fields": {"host": self._settings.host}})
                    self._set_state(ConnectionState.DISCONNECTED)

    def _process_message(self, raw: str | bytes) -> None:
        message = messages.parse_incoming(raw)
        if message is None:
            log.warning("DECK.Connection.MalformedMessage", extra={"fields": {"preview": str(raw)[:200]}})
            return

        if isinstance(message, ItemStateChangedEvent):
            self._emit_item_state(message)
        elif isinstance(message, HeartbeatAck):
            self._last_pong = time.monotonic()
        else:
            log.debug(
                "DECK.Connection.WebSocketEvent",
                extra={"fields": {"topic": message.topic, "payload": str(message.payload)[:200]}},
            )

    async def _heartbeat_loop(self, socket: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_s)
            self._check_liveness()
            await self._send(socket, messages.heartbeat())

    def _check_liveness(self) -> None:
        reference = self._last_pong if self._last_pong is not None else self._connected_at
        if reference is None:
            return
        silence = time.monotonic() - reference
        if silence > 2 * self.heartbeat_s:
            # Observed only; the session is not torn down here.
            log.warning("DECK.Connection.HeartbeatMissed", extra={"fields": {"silence_s": round(silence, 3)}})

    async def _send(self, socket: Any, message: Dict[str, Any]) -> bool:
        try:
            await socket.send(json.dumps(message))
            return True
        except _TRANSPORT_ERRORS as exc:
            log.error(
                "DECK.Connection.SendFailed",
                extra={"fields": {"topic": message.get("topic"), "error": repr(exc)}},
            )
            return False

    def _emit_item_state(self, event: ItemStateChangedEvent) -> None:
        for listener in list(self._state_listeners):
            try:
                listener(event)
            except Exception as exc:
                log.error("DECK.Connection.ListenerError", extra={"fields": {"topic": event.topic, "error": repr(exc)}})

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        for listener in list(self._connectivity_listeners):
            try:
                listener(state)
            except Exception as exc:
                log.error("DECK.Connection.ListenerError", extra={"fields": {"state": state.value, "error": repr(exc)}})

    def _cancel_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)
