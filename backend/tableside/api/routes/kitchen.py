"""Kitchen Display routes."""

import logging

from fastapi import APIRouter, Request

from tableside.core.rate_limit import limiter
from tableside.core.tenancy import RequireKitchen
from tableside.db.session import DbSession
from tableside.core.responses import list_response
from tableside.models.kitchen_order import OrderStatus
from tableside.services.floor import publish_table, serialize_order
from tableside.services.order_lifecycle import OrderLifecycle
from tableside.services.push_notifications import firebase_push

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/orders")
@limiter.limit("120/minute")
async def kitchen_queue(request: Request, db: DbSession, ctx: RequireKitchen):
    """In Progress orders, oldest first. Lines for products no longer on the menu are flagged."""
    return list_response(OrderLifecycle(db).kitchen_queue(ctx))


@router.post("/orders/{order_id}/ready")
@limiter.limit("60/minute")
async def mark_ready(request: Request, order_id: str, db: DbSession, ctx: RequireKitchen):
    order = OrderLifecycle(db).mark_ready(ctx, order_id)
    if order.status == OrderStatus.READY_TO_SERVE.value:
        await firebase_push.notify_ready_to_serve(ctx.tenant_id, order.table_id, order.id)
    publish_table(db, ctx, order.table_id)
    return serialize_order(order)
