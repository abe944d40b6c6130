"""WebSocket endpoint — realtime catalog updates for the storefront.

Learn: Each browser tab connects to /ws/products. The handler:
1. Authenticates via JWT query param (required outside development)
2. Registers a ClientConnection with the broadcast hub
3. Reads client frames until the client disconnects, answering pings
4. Unregisters on the way out, whoever hung up first

The hub's writer task owns all outbound sends for the connection, so this
handler never writes to the socket itself. Pongs are queued through the
hub too, behind any events already pending.
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from vitrine.auth.jwt import TokenError, verify_token
from vitrine.realtime.hub import BroadcastHub, ClientConnection

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws/products")
async def products_websocket(websocket: WebSocket):
    """Push `created` / `updated` / `deleted` messages to one client.

    Two things can end the connection:
    - the client disconnects (receive loop ends)
    - the hub drops it (send failure, timeout, full queue)
    Both paths converge on unregister + close.
    """
    config = websocket.app.state.settings

    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")

    if not token and config.environment != "development":
        await websocket.close(code=4001, reason="Authentication required")
        return

    if token:
        try:
            verify_token(
                token, secret=config.jwt_secret, algorithm=config.jwt_algorithm
            )
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()

    hub: BroadcastHub = websocket.app.state.hub
    connection = ClientConnection(
        websocket,
        queue_size=config.ws_queue_size,
        send_timeout=config.ws_send_timeout_seconds,
    )
    handle = await hub.register(connection)

    async def client_listener():
        """Handle incoming frames; only pings are understood."""
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await hub.send_to(handle, json.dumps({"type": "pong"}))
        except (WebSocketDisconnect, RuntimeError):
            pass

    client_task = asyncio.create_task(client_listener())
    closed_task = asyncio.create_task(connection.wait_closed())

    try:
        done, pending = await asyncio.wait(
            [client_task, closed_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        await hub.unregister(handle)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except RuntimeError:
                # Peer already gone
                pass
        logger.debug("realtime.socket_closed", handle=handle)
