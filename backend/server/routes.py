"""
Route registration for the avatar control surface.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire one ControlSurfaceGateway to each WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from catalog.messages import MessageCatalog
from observability.logger import log_event
from server.page import render_control_page
from surface.gateway import ControlSurfaceGateway, GatewayResult


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/catalog")
    async def catalog() -> list[dict[str, Any]]: # pyright: ignore[reportUnusedFunction]
        messages: MessageCatalog = app.state.catalog
        return messages.to_json()

    @app.get("/", response_class=HTMLResponse)
    async def control_page() -> HTMLResponse: # pyright: ignore[reportUnusedFunction]
        return HTMLResponse(
            render_control_page(app.state.catalog, title=app.state.config.page_title)
        )

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = ControlSurfaceGateway(
            config=app.state.config,
            catalog=app.state.catalog,
        )
        pump: asyncio.Task[None] | None = None

        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, result)

            pump = asyncio.create_task(_pump_outbound(ws, gateway))

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect()

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                    await _flush_gateway_result(ws, result)

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.handle.session_id if gateway.handle else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")

        finally:
            if pump is not None:
                pump.cancel()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
) -> None:
    for msg in result.outbound_json:
        await ws.send_text(json.dumps(msg))


async def _pump_outbound(ws: WebSocket, gateway: ControlSurfaceGateway) -> None:
    """Forward asynchronous gateway messages until cancelled or the socket drops."""
    try:
        while True:
            msg = await gateway.next_outbound()
            await ws.send_text(json.dumps(msg))
    except (WebSocketDisconnect, RuntimeError) as e:
        # RuntimeError: send after close
        log_event({
            "event_type": "OUTBOUND_PUMP_STOPPED",
            "session_id": gateway.handle.session_id if gateway.handle else None,
            "reason": type(e).__name__,
        })
