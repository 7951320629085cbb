from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote


DEFAULT_HEARTBEAT_S = 5.0
DEFAULT_DEBOUNCE_MS = 800


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Connection settings for the openHAB server.

    Endpoints stay unset (None) until a host is supplied. An empty port is
    left out of the URLs so the scheme default applies.
    """

    host: str = ""
    port: str = ""
    api_token: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.host)

    @property
    def _authority(self) -> str:
        return f"{self.host}:{self.port}" if self.port else self.host

    @property
    def websocket_url(self) -> str | None:
        if not self.is_complete:
            return None
        return f"ws://{self._authority}/ws?accessToken={quote(self.api_token, safe='')}"

    @property
    def rest_url(self) -> str | None:
        if not self.is_complete:
            return None
        return f"http://{self._authority}/rest"

    @classmethod
    def from_values(cls, host: object = "", port: object = "", api_token: object = "") -> "ServerSettings":
        return cls(
            host=_clean(host),
            port=_clean(port),
            api_token=_clean(api_token),
        )


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    server: ServerSettings
    heartbeat_s: float = DEFAULT_HEARTBEAT_S
    debounce_s: float = DEFAULT_DEBOUNCE_MS / 1000.0
    dial_min: int = 0
    dial_max: int = 100
    http_timeout_s: float = 10.0


def load_bridge_config() -> BridgeConfig:
    server = ServerSettings.from_values(
        os.environ.get("DECK_OPENHAB_HOST", ""),
        os.environ.get("DECK_OPENHAB_PORT", ""),
        os.environ.get("DECK_OPENHAB_TOKEN", ""),
    )

    heartbeat_s = _opt_float("DECK_HEARTBEAT_S")
    debounce_ms = _opt_int("DECK_DEBOUNCE_MS")
    dial_min = _opt_int("DECK_DIAL_MIN")
    dial_max = _opt_int("DECK_DIAL_MAX")
    http_timeout_s = _opt_float("DECK_HTTP_TIMEOUT_S")

    return BridgeConfig(
        server=server,
        heartbeat_s=heartbeat_s if heartbeat_s and heartbeat_s > 0 else DEFAULT_HEARTBEAT_S,
        debounce_s=(debounce_ms if debounce_ms is not None and debounce_ms >= 0 else DEFAULT_DEBOUNCE_MS) / 1000.0,
        dial_min=dial_min if dial_min is not None else 0,
        dial_max=dial_max if dial_max is not None else 100,
        http_timeout_s=http_timeout_s if http_timeout_s and http_timeout_s > 0 else 10.0,
    )


def _clean(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _opt_int(name: str) -> int | None:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return None
    try:
        return int(v)
    except ValueError:
        return None


def _opt_float(name: str) -> float | None:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return None
    try:
        return float(v)
    except ValueError:
        return None
