from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

import httpx

from deckbridge.bridge_logging import get_logger


log = get_logger("DECK.Items")

# InvalidURL (e.g. a non-numeric port) is not an HTTPError subclass.
_REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


@dataclass(frozen=True, slots=True)
class Item:
    name: str
    state: str


class ItemDirectory:
    """Thin REST client for the openHAB items endpoint.

    The item-name list is cached after the first successful fetch and kept for
    the process lifetime; call clear_cache() to force a new fetch.
    Transport and HTTP errors are logged and never raised to callers.
    """

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout_s: float = 10.0) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self._rest_url: str | None = None
        self._api_token = ""
        self._items: list[str] | None = None

    def configure(self, rest_url: str | None, api_token: str = "") -> None:
        self._rest_url = rest_url.rstrip("/") if rest_url else None
        self._api_token = api_token or ""

    @property
    def rest_url(self) -> str | None:
        return self._rest_url

    @property
    def cached_items(self) -> list[str] | None:
        return list(self._items) if self._items is not None else None

    def clear_cache(self) -> None:
        self._items = None

    async def list_items(self) -> list[str]:
        if self._items is None:
            await self._refresh_items()
        return list(self._items or [])

    async def get_item(self, item_name: str) -> Item | None:
        if not self._rest_url:
            log.warning("DECK.Items.NotConfigured", extra={"fields": {"op": "get_item", "item": item_name}})
            return None

        url = f"{self._rest_url}/items/{quote(item_name, safe='')}"
        try:
            response = await self._client.get(url, headers=self._headers())
        except _REQUEST_ERRORS as exc:
            log.error("DECK.Items.RequestFailed", extra={"fields": {"url": url, "error": repr(exc)}})
            return None

        if not response.is_success:
            log.error(
                "DECK.Items.BadStatus",
                extra={"fields": {"url": url, "status": response.status_code, "reason": response.reason_phrase}},
            )
            return None

        try:
            data = response.json()
        except ValueError as exc:
            log.error("DECK.Items.InvalidJSON", extra={"fields": {"url": url, "error": repr(exc)}})
            return None
        if not isinstance(data, dict):
            log.error("DECK.Items.UnexpectedShape", extra={"fields": {"url": url}})
            return None

        state = data.get("state")
        item = Item(name=str(data.get("name") or item_name), state="" if state is None else str(state))
        log.debug("DECK.Items.StateReceived", extra={"fields": {"item": item.name, "state": item.state}})
        return item

    async def send_command(self, item_name: str, command: str | int | float) -> bool:
        if not self._rest_url:
            log.warning("DECK.Items.NotConfigured", extra={"fields": {"op": "send_command", "item": item_name}})
            return False

        url = f"{self._rest_url}/items/{quote(item_name, safe='')}"
        headers = self._headers()
        headers["Content-Type"] = "text/plain"
        try:
            response = await self._client.post(url, content=str(command).encode("utf-8"), headers=headers)
        except _REQUEST_ERRORS as exc:
            log.error(
                "DECK.Items.CommandFailed",
                extra={"fields": {"item": item_name, "command": str(command), "error": repr(exc)}},
            )
            return False

        if not response.is_success:
            log.error(
                "DECK.Items.CommandFailed",
                extra={
                    "fields": {
                        "item": item_name,
                        "command": str(command),
                        "status": response.status_code,
                        "reason": response.reason_phrase,
                    }
                },
            )
            return False

        log.debug("DECK.Items.CommandSent", extra={"fields": {"item": item_name, "command": str(command)}})
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _refresh_items(self) -> None:
        if not self._rest_url:
            log.warning("DECK.Items.NotConfigured", extra={"fields": {"op": "list_items"}})
            return

        url = f"{self._rest_url}/items"
        log.debug("DECK.Items.Fetching", extra={"fields": {"url": url}})
        try:
            response = await self._client.get(url, params={"fields": "name"}, headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except _REQUEST_ERRORS as exc:
            log.error("DECK.Items.ListFailed", extra={"fields": {"url": url, "error": repr(exc)}})
            return
        except ValueError as exc:
            log.error("DECK.Items.InvalidJSON", extra={"fields": {"url": url, "error": repr(exc)}})
            return

        if not isinstance(data, list):
            log.error("DECK.Items.UnexpectedShape", extra={"fields": {"url": url}})
            return

        self._items = [str(entry["name"]) for entry in data if isinstance(entry, dict) and entry.get("name")]
        log.info("DECK.Items.Listed", extra={"fields": {"count": len(self._items)}})

    def _headers(self) -> dict[str, str]:
        if self._api_token:
            return {"Authorization": f"Bearer {self._api_token}"}
        return {}
