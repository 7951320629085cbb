from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket

from deckbridge.actions import ActionHandlers, ActionRegistry, InputCoalescer
from deckbridge.bridge_logging import get_logger
from deckbridge.config import BridgeConfig, load_bridge_config
from deckbridge.connection import ConnectionManager
from deckbridge.services import ServiceRegistry
from deckbridge.surface.session import SurfaceSession


log = get_logger("DECK")


def build_services(config: BridgeConfig, **connection_kwargs: Any) -> ServiceRegistry:
    """Construct and register services in start order (connection first)."""
    registry = ServiceRegistry()

    connection = ConnectionManager(
        "connection",
        {
            "host": config.server.host,
            "port": config.server.port,
            "api_token": config.server.api_token,
            "heartbeat_s": config.heartbeat_s,
            "http_timeout_s": config.http_timeout_s,
        },
        **connection_kwargs,
    )
    coalescer = InputCoalescer(delay_s=config.debounce_s, minimum=config.dial_min, maximum=config.dial_max)
    actions = ActionRegistry("actions", {}, connection=connection, coalescer=coalescer)

    registry.register(connection)
    registry.register(actions)
    return registry


def global_settings_to_config(settings: dict[str, Any]) -> dict[str, Any]:
    """Map the surface's global settings keys onto connection config keys."""
    return {
        "host": settings.get("serverHost") or "",
        "port": settings.get("serverPort") or "",
        "api_token": settings.get("apiKey") or "",
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_bridge_config()
    services = build_services(config)
    app.state.services = services

    actions = services.get_service("actions")
    app.state.handlers = ActionHandlers(actions)

    log.info(
        "DECK.Services.Starting",
        extra={"fields": {"services": services.service_names, "host": config.server.host}},
    )
    await services.start_all()

    yield

    try:
        log.info("DECK.Services.Stopping")
        await services.stop_all()
        log.info("DECK.Services.Stopped")
    except Exception as e:
        log.error("DECK.Services.StopError", extra={"fields": {"error": repr(e)}})


app = FastAPI(title="deckbridge", lifespan=lifespan)


@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    services = getattr(app.state, "services", None)
    response: dict[str, Any] = {"status": "ok"}
    if services is not None:
        response["services"] = services.health_all()
    return response


@app.get("/api/items")
async def list_items() -> dict[str, Any]:
    """Item names known to the server (cached after the first fetch)."""
    services = getattr(app.state, "services", None)
    connection = services.get_service("connection") if services is not None else None
    if connection is None or not connection.is_started:
        raise HTTPException(status_code=503, detail="Connection service not started")

    items = await connection.get_items()
    return {"items": sorted(items)}


@app.post("/api/settings")
async def update_settings(request: dict[str, Any]) -> dict[str, Any]:
    """
    Update openHAB server settings and reconnect.

    Request body:
        {
            "serverHost": str,
            "serverPort": str | int,
            "apiKey": str
        }
    """
    services = getattr(app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not available")

    host = request.get("serverHost")
    if host is not None and not isinstance(host, str):
        raise HTTPException(status_code=400, detail="Invalid 'serverHost' parameter")

    services.reload_config("connection", global_settings_to_config(request))
    connection = services.get_service("connection")
    return {"state": connection.state.value, "rest_url": connection.settings.rest_url}


@app.websocket("/ws/surface")
async def ws_surface(ws: WebSocket) -> None:
    await ws.accept()

    services = app.state.services

    def _on_global_settings(settings: dict[str, Any]) -> None:
        services.reload_config("connection", global_settings_to_config(settings))

    session = SurfaceSession(app.state.handlers, on_global_settings=_on_global_settings)
    log.info("DECK.Surface.Connected", extra={"fields": {"session_id": session.session_id}})
    writer = asyncio.create_task(session.pump(ws.send_text))

    try:
        while True:
            message = await ws.receive()
            if message.get("type") == "websocket.disconnect":
                log.info("DECK.Surface.Disconnected", extra={"fields": {"session_id": session.session_id}})
                return

            text = message.get("text")
            if text is None:
                continue
            await session.handle_text(text)
    finally:
        session.close()
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
