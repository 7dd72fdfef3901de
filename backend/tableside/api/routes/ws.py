"""Live table feed over WebSocket."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from tableside.core.security import decode_access_token
from tableside.core.tenancy import SUPERVISOR_ROLES, TenantContext, UserRole, context_from_payload
from tableside.db.session import DbSession
from tableside.services.floor import table_view
from tableside.services.live_feed import feed_hub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _authenticate_websocket(websocket: WebSocket, token: Optional[str]) -> Optional[TenantContext]:
    """Authenticate from the ``token`` query parameter or the access_token cookie.

    Connections without a valid waiter (or supervisor) token are closed with
    1008 Policy Violation.
    """
    payload = decode_access_token(token) if token else None
    if not payload:
        cookie_token = websocket.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    ctx = context_from_payload(payload)
    if ctx is None or (ctx.role != UserRole.WAITER and ctx.role not in SUPERVISOR_ROLES):
        logger.warning("WebSocket rejected for table feed: no valid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    return ctx


async def _pump(websocket: WebSocket, subscription) -> None:
    async for snapshot in subscription:
        await websocket.send_json(jsonable_encoder({"type": "table", "data": snapshot}))


@router.websocket("/ws/tables/{table_id}")
async def table_feed(
    websocket: WebSocket,
    table_id: int,
    db: DbSession,
    token: Optional[str] = Query(None),
):
    """Stream full table snapshots: one on connect, then one after every change."""
    ctx = await _authenticate_websocket(websocket, token)
    if ctx is None:
        return

    await websocket.accept()
    subscription = feed_hub.subscribe(ctx.tenant_id, table_id)
    snapshot = table_view(db, ctx, table_id)
    await websocket.send_json(jsonable_encoder({"type": "table", "data": snapshot}))

    sender = asyncio.create_task(_pump(websocket, subscription))
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug(f"Table feed disconnected: tenant {ctx.tenant_id} table {table_id}")
    finally:
        subscription.close()
        sender.cancel()
