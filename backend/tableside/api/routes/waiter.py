"""Waiter table-management routes."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Path, Query, Request, status

from tableside.core.config import settings
from tableside.core.rate_limit import limiter
from tableside.core.tenancy import RequireWaiter
from tableside.db.session import DbSession
from tableside.schemas.draft import (
    AddItemRequest,
    AddSeatRequest,
    PaymentMethodRequest,
    RenameSeatRequest,
)
from tableside.services.draft_store import DraftStore
from tableside.services.floor import floor_overview, publish_table, serialize_order, table_view
from tableside.services.kitchen_submission import KitchenSubmission
from tableside.services.order_lifecycle import OrderLifecycle

logger = logging.getLogger(__name__)

router = APIRouter()

TableId = Annotated[int, Path(ge=1, description="Physical table number")]


@router.get("/tables")
@limiter.limit("60/minute")
async def list_tables(
    request: Request,
    db: DbSession,
    ctx: RequireWaiter,
    count: Optional[int] = Query(None, ge=1, le=500),
):
    """Floor overview: projected status of every table plus counts and notifications."""
    return floor_overview(db, ctx, count or settings.default_table_count)


@router.get("/tables/{table_id}")
@limiter.limit("120/minute")
async def get_table(request: Request, db: DbSession, ctx: RequireWaiter, table_id: TableId):
    return table_view(db, ctx, table_id)


@router.post("/tables/{table_id}/seats", status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
async def add_seat(
    request: Request,
    table_id: TableId,
    db: DbSession,
    ctx: RequireWaiter,
    body: Optional[AddSeatRequest] = None,
):
    DraftStore(db).add_seat(ctx, table_id, body.name if body else None)
    publish_table(db, ctx, table_id)
    return table_view(db, ctx, table_id)


@router.patch("/tables/{table_id}/seats/{seat_id}")
@limiter.limit("60/minute")
async def rename_seat(
    request: Request,
    table_id: TableId,
    body: RenameSeatRequest,
    db: DbSession,
    ctx: RequireWaiter,
    seat_id: int,
):
    DraftStore(db).rename_seat(ctx, table_id, seat_id, body.name)
    publish_table(db, ctx, table_id)
    return table_view(db, ctx, table_id)


@router.post("/tables/{table_id}/items", status_code=status.HTTP_201_CREATED)
@limiter.limit("120/minute")
async def add_item(
    request: Request,
    table_id: TableId,
    body: AddItemRequest,
    db: DbSession,
    ctx: RequireWaiter,
):
    """Add an item (with its options) to a seat of the table."""
    DraftStore(db).add_item(
        ctx,
        table_id,
        seat_id=body.seat_id,
        menu_item_id=body.menu_item_id,
        quantity=body.quantity,
        notes=body.notes,
        size_id=body.size_id,
        addon_ids=body.addon_ids,
        stuffed_crust_id=body.stuffed_crust_id,
        removed_ingredients=body.removed_ingredients,
        flavor_combination_id=body.flavor_combination_id,
        flavors=[f.model_dump() for f in body.flavors],
    )
    publish_table(db, ctx, table_id)
    return table_view(db, ctx, table_id)


@router.delete("/tables/{table_id}/seats/{seat_id}/items/{item_index}")
@limiter.limit("120/minute")
async def remove_item(
    request: Request,
    table_id: TableId,
    db: DbSession,
    ctx: RequireWaiter,
    seat_id: int,
    item_index: int,
):
    DraftStore(db).remove_item(ctx, table_id, seat_id, item_index)
    publish_table(db, ctx, table_id)
    return table_view(db, ctx, table_id)


@router.put("/tables/{table_id}/payment-method")
@limiter.limit("60/minute")
async def set_payment_method(
    request: Request,
    table_id: TableId,
    body: PaymentMethodRequest,
    db: DbSession,
    ctx: RequireWaiter,
):
    DraftStore(db).set_payment_method(ctx, table_id, body.payment_method)
    publish_table(db, ctx, table_id)
    return table_view(db, ctx, table_id)


@router.post("/tables/{table_id}/submit", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def submit_to_kitchen(request: Request, db: DbSession, ctx: RequireWaiter, table_id: TableId):
    """Send every unsent item of the table to the kitchen as one order."""
    order = KitchenSubmission(db).submit(ctx, table_id)
    publish_table(db, ctx, table_id)
    return {"order": serialize_order(order), "table": table_view(db, ctx, table_id)}


@router.post("/tables/{table_id}/reset")
@limiter.limit("30/minute")
async def reset_table(request: Request, db: DbSession, ctx: RequireWaiter, table_id: TableId):
    DraftStore(db).reset(ctx, table_id)
    publish_table(db, ctx, table_id)
    return table_view(db, ctx, table_id)


@router.post("/orders/{order_id}/served")
@limiter.limit("60/minute")
async def mark_served(request: Request, order_id: str, db: DbSession, ctx: RequireWaiter):
    """Waiter took a Ready to Serve order to the table."""
    order = OrderLifecycle(db).mark_served(ctx, order_id)
    publish_table(db, ctx, order.table_id)
    return serialize_order(order)
