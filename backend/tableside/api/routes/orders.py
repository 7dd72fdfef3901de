"""Order status, dispatch and driver routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from tableside.core.rate_limit import limiter
from tableside.core.responses import list_response
from tableside.core.tenancy import RequireDriver, RequireFloorStaff, RequireManager
from tableside.db.session import DbSession
from tableside.models.kitchen_order import OrderStatus
from tableside.schemas.order import AssignDriverRequest, ConfirmDeliveryRequest, StatusUpdate
from tableside.services.floor import publish_table, serialize_order
from tableside.services.order_lifecycle import OrderLifecycle, allowed_transitions
from tableside.services.push_notifications import firebase_push

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@limiter.limit("60/minute")
async def list_orders(
    request: Request,
    db: DbSession,
    ctx: RequireFloorStaff,
    status_filter: Optional[str] = Query(None, alias="status"),
    source: Optional[str] = Query(None),
    table_id: Optional[int] = Query(None, ge=1),
):
    orders = OrderLifecycle(db).list_orders(ctx, status=status_filter, source=source, table_id=table_id)
    items = []
    for order in orders:
        data = serialize_order(order)
        data["allowed_transitions"] = allowed_transitions(order)
        items.append(data)
    return list_response(items)


@router.get("/driver/deliveries")
@limiter.limit("60/minute")
async def driver_deliveries(request: Request, db: DbSession, ctx: RequireDriver):
    """Orders out for delivery with the calling driver."""
    orders = OrderLifecycle(db).driver_deliveries(ctx, ctx.user_id)
    return list_response([serialize_order(o) for o in orders])


@router.patch("/{order_id}/status")
@limiter.limit("60/minute")
async def update_status(
    request: Request,
    order_id: str,
    body: StatusUpdate,
    db: DbSession,
    ctx: RequireFloorStaff,
):
    order = OrderLifecycle(db).advance(ctx, order_id, body.status)
    if order.status == OrderStatus.READY_TO_SERVE.value:
        await firebase_push.notify_ready_to_serve(ctx.tenant_id, order.table_id, order.id)
    publish_table(db, ctx, order.table_id)
    return serialize_order(order)


@router.post("/{order_id}/assign-driver")
@limiter.limit("30/minute")
async def assign_driver(
    request: Request,
    order_id: str,
    body: AssignDriverRequest,
    db: DbSession,
    ctx: RequireManager,
):
    order = OrderLifecycle(db).assign_driver(ctx, order_id, body.driver_id, body.driver_name)
    return serialize_order(order)


@router.post("/{order_id}/cancel")
@limiter.limit("30/minute")
async def cancel_order(request: Request, order_id: str, db: DbSession, ctx: RequireManager):
    """Pending/Confirmed orders become Canceled; Out for Delivery becomes Returned."""
    order = OrderLifecycle(db).cancel(ctx, order_id)
    publish_table(db, ctx, order.table_id)
    return serialize_order(order)


@router.post("/{order_id}/confirm-delivery")
@limiter.limit("10/minute")
async def confirm_delivery(
    request: Request,
    order_id: str,
    body: ConfirmDeliveryRequest,
    db: DbSession,
    ctx: RequireDriver,
):
    order = OrderLifecycle(db).confirm_delivery(ctx, order_id, ctx.user_id, body.confirmation_code)
    return serialize_order(order)
