"""Bill preparation, presentation and close-out routes."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Path, Query, Request, status

from tableside.core.errors import CloseOutFailed
from tableside.core.rate_limit import limiter
from tableside.core.responses import list_response
from tableside.core.tenancy import RequireWaiter
from tableside.db.session import DbSession
from tableside.schemas.bill import BillResponse, CloseBillRequest
from tableside.services.billing import BillingService, present
from tableside.services.floor import publish_table

logger = logging.getLogger(__name__)

router = APIRouter()


def _bill_json(bill) -> dict:
    return BillResponse.model_validate(bill).model_dump(mode="json")


@router.post("/tables/{table_id}/prepare", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def prepare_bill(
    request: Request,
    db: DbSession,
    ctx: RequireWaiter,
    table_id: int = Path(..., ge=1),
):
    """Aggregate the table's delivered orders into a pending bill and start payment."""
    bill = BillingService(db).prepare_bill(ctx, table_id)
    publish_table(db, ctx, table_id)
    return _bill_json(bill)


@router.post("/tables/{table_id}/cancel")
@limiter.limit("30/minute")
async def cancel_payment(
    request: Request,
    db: DbSession,
    ctx: RequireWaiter,
    table_id: int = Path(..., ge=1),
):
    BillingService(db).cancel_payment(ctx, table_id)
    publish_table(db, ctx, table_id)
    return {"table_id": table_id, "is_in_payment": False}


@router.get("")
@limiter.limit("60/minute")
async def list_bills(
    request: Request,
    db: DbSession,
    ctx: RequireWaiter,
    status_filter: Optional[str] = Query(None, alias="status"),
):
    bills = BillingService(db).list_bills(ctx, status=status_filter)
    return list_response([_bill_json(b) for b in bills])


@router.get("/{bill_id}")
@limiter.limit("120/minute")
async def get_bill(
    request: Request,
    bill_id: str,
    db: DbSession,
    ctx: RequireWaiter,
    view: Literal["together", "separated", "split"] = Query("together"),
    ways: Optional[int] = Query(None, ge=1, le=50),
):
    """Bill presented together, per seat, or split N ways. Display only."""
    bill = BillingService(db).get_bill(ctx, bill_id)
    return present(bill, view, ways)


@router.post("/{bill_id}/close")
@limiter.limit("30/minute")
async def close_bill(
    request: Request,
    bill_id: str,
    body: CloseBillRequest,
    db: DbSession,
    ctx: RequireWaiter,
):
    """Confirm payment: bill and orders Completed, table released."""
    try:
        bill = BillingService(db).close_bill(ctx, bill_id, body.table_id)
    except CloseOutFailed:
        # Table was taken out of payment; let watchers see it
        publish_table(db, ctx, body.table_id)
        raise
    publish_table(db, ctx, body.table_id)
    return _bill_json(bill)
