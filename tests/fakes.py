"""Test doubles shared by the bridge tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

from deckbridge.connection.manager import ConnectionState
from deckbridge.connection.rest import Item


class FakeControl:
    def __init__(self, control_id: str, *, is_dial: bool = False) -> None:
        self._id = control_id
        self._is_dial = is_dial
        self.titles: List[str] = []
        self.states: List[int] = []
        self.feedback: List[Dict[str, Any]] = []
        self.saved_settings: List[Dict[str, Any]] = []
        self.alerts = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def is_dial(self) -> bool:
        return self._is_dial

    def set_title(self, title: str) -> None:
        self.titles.append(title)

    def set_state(self, state: int) -> None:
        self.states.append(state)

    def set_feedback(self, feedback: Dict[str, Any]) -> None:
        self.feedback.append(feedback)

    def set_settings(self, settings: Dict[str, Any]) -> None:
        self.saved_settings.append(settings)

    def show_alert(self) -> None:
        self.alerts += 1


class FakeConnection:
    """Records what the registry asks of the connection manager."""

    def __init__(self, items: Optional[List[str]] = None) -> None:
        self.state_requests: List[str] = []
        self.commands: List[tuple[str, Any]] = []
        self.items = items or []
        self.state_listeners: List[Any] = []
        self.connectivity_listeners: List[Any] = []
        self.command_result = True

    def request_item_state(self, item_name: str) -> None:
        self.state_requests.append(item_name)

    async def send_command(self, item_name: str, command: Any) -> bool:
        self.commands.append((item_name, command))
        return self.command_result

    async def get_items(self) -> List[str]:
        return list(self.items)

    def add_state_listener(self, listener: Any) -> None:
        self.state_listeners.append(listener)

    def remove_state_listener(self, listener: Any) -> None:
        if listener in self.state_listeners:
            self.state_listeners.remove(listener)

    def add_connectivity_listener(self, listener: Any) -> None:
        self.connectivity_listeners.append(listener)

    def remove_connectivity_listener(self, listener: Any) -> None:
        if listener in self.connectivity_listeners:
            self.connectivity_listeners.remove(listener)

    def announce(self, state: ConnectionState) -> None:
        for listener in list(self.connectivity_listeners):
            listener(state)


class FakeSocket:
    """Websocket stand-in: async context manager and async iterator of frames."""

    def __init__(self, *, fail_on_enter: Optional[BaseException] = None) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed = False
        self._fail_on_enter = fail_on_enter
        self._frames: asyncio.Queue[Optional[str]] = asyncio.Queue()

    def feed(self, frame: Any) -> None:
        self._frames.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def finish(self) -> None:
        self._frames.put_nowait(None)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def __aenter__(self) -> "FakeSocket":
        if self._fail_on_enter is not None:
            raise self._fail_on_enter
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        self.closed = True
        return False

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        frame = await self._frames.get()
        if frame is None:
            raise StopAsyncIteration
        return frame


class FakeConnector:
    def __init__(self, *, fail_on_enter: Optional[BaseException] = None) -> None:
        self.urls: List[str] = []
        self.sockets: List[FakeSocket] = []
        self._fail_on_enter = fail_on_enter

    def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        socket = FakeSocket(fail_on_enter=self._fail_on_enter)
        self.sockets.append(socket)
        return socket


class FakeDirectory:
    def __init__(self, states: Optional[Dict[str, str]] = None) -> None:
        self.rest_url: Optional[str] = None
        self.api_token = ""
        self.states = states or {}
        self.commands: List[tuple[str, Any]] = []
        self.closed = False

    def configure(self, rest_url: Optional[str], api_token: str = "") -> None:
        self.rest_url = rest_url
        self.api_token = api_token

    async def get_item(self, item_name: str) -> Optional[Item]:
        if item_name not in self.states:
            return None
        return Item(name=item_name, state=self.states[item_name])

    async def send_command(self, item_name: str, command: Any) -> bool:
        self.commands.append((item_name, command))
        return True

    async def list_items(self) -> List[str]:
        return sorted(self.states)

    def clear_cache(self) -> None:
        pass

    async def aclose(self) -> None:
        self.closed = True


async def wait_until(predicate: Any, timeout: float = 1.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.005)
    return bool(predicate())
