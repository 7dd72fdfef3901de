"""Bill aggregation and table close-out."""

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tableside.core.errors import (
    BillAlreadyClosed,
    BillNotFound,
    BillTableMismatch,
    CloseOutFailed,
    EmptyTable,
    InvalidOption,
    TableInPayment,
    TableNotInPayment,
    UndeliveredOrdersExist,
    UnsentItemsExist,
)
from tableside.core.tenancy import TenantContext
from tableside.db.session import commit_or_fail
from tableside.models.bill import Bill, BillStatus
from tableside.models.kitchen_order import OrderSource, OrderStatus
from tableside.services.draft_store import DraftStore
from tableside.services.order_lifecycle import OrderLifecycle
from tableside.services.pricing import CENT, line_total, quantize, to_decimal

logger = logging.getLogger(__name__)

BILL_VIEWS = ("together", "separated", "split")


def split_shares(total: Decimal, ways: int) -> List[Decimal]:
    """Split ``total`` into ``ways`` shares that sum exactly to it.

    Every share but the last is the rounded per-person amount; the last
    absorbs the remaining cents.
    """
    if ways < 1:
        raise InvalidOption("A bill must be split at least one way")
    per_person = quantize(total / ways)
    if ways == 1:
        return [quantize(total)]
    shares = [per_person] * (ways - 1)
    shares.append(quantize(total - per_person * (ways - 1)))
    if shares[-1] < 0:
        floor = (total / ways).quantize(CENT, rounding=ROUND_DOWN)
        shares = [floor] * (ways - 1) + [quantize(total - floor * (ways - 1))]
    return shares


def present(bill: Bill, view: str = "together", ways: Optional[int] = None) -> dict:
    """Read-only presentation of a bill. Never changes the stored total."""
    if view not in BILL_VIEWS:
        raise InvalidOption(f"View must be one of {', '.join(BILL_VIEWS)}")

    total = quantize(to_decimal(bill.total_amount))
    result = {
        "id": bill.id,
        "table_id": bill.table_id,
        "status": bill.status,
        "payment_method": bill.payment_method,
        "total_amount": float(total),
        "view": view,
        "created_at": bill.created_at,
        "paid_at": bill.paid_at,
    }

    if view == "together":
        result["items"] = bill.items or []
    elif view == "separated":
        names = bill.seat_names or {}
        seats = {}
        for line in bill.items or []:
            seat_id = line.get("seat")
            seat = seats.setdefault(seat_id, {
                "seat": seat_id,
                "name": names.get(str(seat_id)),
                "items": [],
                "subtotal": Decimal("0"),
            })
            seat["items"].append(line)
            seat["subtotal"] += line_total(line.get("price"), line.get("quantity", 1))
        ordered = [seats[k] for k in sorted(seats, key=lambda s: (s is None, s or 0))]
        for seat in ordered:
            seat["subtotal"] = float(seat["subtotal"])
        result["seats"] = ordered
    else:
        ways = ways or 1
        shares = split_shares(total, ways)
        result["ways"] = ways
        result["per_person"] = float(shares[0])
        result["shares"] = [float(s) for s in shares]

    return result


class BillingService:
    def __init__(self, db: Session):
        self.db = db
        self.drafts = DraftStore(db)
        self.orders = OrderLifecycle(db)

    # ==================== QUERIES ====================

    def get_bill(self, ctx: TenantContext, bill_id: str) -> Bill:
        bill = (
            self.db.query(Bill)
            .filter(Bill.id == bill_id, Bill.tenant_id == ctx.tenant_id)
            .first()
        )
        if bill is None:
            raise BillNotFound(bill_id)
        return bill

    def list_bills(self, ctx: TenantContext, status: Optional[str] = None) -> List[Bill]:
        query = self.db.query(Bill).filter(Bill.tenant_id == ctx.tenant_id)
        if status:
            query = query.filter(Bill.status == status)
        return query.order_by(Bill.created_at.desc()).all()

    def _pending_bills(self, ctx: TenantContext, table_id: int) -> List[Bill]:
        return (
            self.db.query(Bill)
            .filter(
                Bill.tenant_id == ctx.tenant_id,
                Bill.table_id == table_id,
                Bill.status == BillStatus.PENDING.value,
            )
            .all()
        )

    # ==================== PREPARE ====================

    def prepare_bill(self, ctx: TenantContext, table_id: int) -> Bill:
        """Aggregate the table's active orders into a pending bill.

        Every active order must already be Delivered. The table is put in
        payment and the bill persisted in the same transaction.

        Raises:
            TableInPayment: a bill for the table is already awaiting payment.
            UnsentItemsExist: some draft item was never sent to the kitchen.
            UndeliveredOrdersExist: some active order is not Delivered yet.
            EmptyTable: nothing was ordered.
        """
        draft = self.drafts.get(ctx, table_id)
        if draft is not None and draft.is_in_payment:
            raise TableInPayment(table_id)
        if draft is not None and draft.unsent_items:
            raise UnsentItemsExist()

        orders = self.orders.active_orders_for_table(ctx, table_id)
        undelivered = [o.status for o in orders if o.status != OrderStatus.DELIVERED.value]
        if undelivered:
            raise UndeliveredOrdersExist(undelivered)
        if not orders:
            raise EmptyTable()

        items = []
        for order in orders:
            for line in order.items or []:
                items.append({**line, "order_id": order.id})
        total = sum((to_decimal(o.total_amount) for o in orders), Decimal("0"))

        # Any bill still pending for the table is superseded
        for stale in self._pending_bills(ctx, table_id):
            stale.status = BillStatus.CANCELED.value

        draft = self.drafts.mark_in_payment(ctx, table_id, commit=False)
        bill = Bill(
            tenant_id=ctx.tenant_id,
            table_id=table_id,
            items=items,
            order_ids=[o.id for o in orders],
            seat_names={str(s["id"]): s.get("name") for s in draft.seats or [] if s.get("name")},
            total_amount=quantize(total),
            payment_method=draft.payment_method or "together",
            source=OrderSource.WAITER_BILL.value,
            status=BillStatus.PENDING.value,
        )
        self.db.add(bill)
        commit_or_fail(self.db, "prepare_bill")

        logger.info(
            f"Bill {bill.id} prepared: tenant {ctx.tenant_id} table {table_id}, "
            f"{len(orders)} order(s), total {bill.total_amount}"
        )
        return bill

    def cancel_payment(self, ctx: TenantContext, table_id: int):
        """Abandon the pending checkout; the draft and its orders stay as they are."""
        draft = self.drafts.get(ctx, table_id)
        if draft is None or not draft.is_in_payment:
            raise TableNotInPayment(table_id)
        canceled = self._pending_bills(ctx, table_id)
        for bill in canceled:
            bill.status = BillStatus.CANCELED.value
        self.drafts.clear_in_payment(ctx, table_id, commit=False)
        commit_or_fail(self.db, "cancel_payment")
        logger.info(f"Payment canceled for tenant {ctx.tenant_id} table {table_id} ({len(canceled)} bill(s))")
        return draft

    # ==================== CLOSE-OUT ====================

    def _complete_table_orders(self, ctx: TenantContext, table_id: int, order_ids: List[str]) -> int:
        billed = set(order_ids or [])
        orders = [o for o in self.orders.active_orders_for_table(ctx, table_id) if o.id in billed]
        for order in orders:
            order.status = OrderStatus.COMPLETED.value
        return len(orders)

    def close_bill(self, ctx: TenantContext, bill_id: str, table_id: int) -> Bill:
        """Mark the bill paid, complete the orders it covers and delete the draft.

        All three writes commit together. Only the orders listed on the bill
        are completed, and only while the table is still in payment. If
        anything fails the transaction is rolled back, the bill is canceled
        and the table is taken out of payment, so it never stays stuck
        waiting for a payment that cannot be recorded.
        """
        bill = self.get_bill(ctx, bill_id)
        if bill.status != BillStatus.PENDING.value:
            raise BillAlreadyClosed()
        if bill.table_id != table_id:
            raise BillTableMismatch(bill_id, table_id)
        draft = self.drafts.get(ctx, table_id)
        if draft is None or not draft.is_in_payment:
            raise TableNotInPayment(table_id)

        try:
            bill.status = BillStatus.COMPLETED.value
            bill.paid_at = datetime.now(timezone.utc)
            completed = self._complete_table_orders(ctx, table_id, bill.order_ids)
            self.db.delete(draft)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Close-out of bill {bill_id} (tenant {ctx.tenant_id} table {table_id}) failed: {e}")
            self._release_table(ctx, table_id)
            raise CloseOutFailed(bill_id, str(e)) from e

        logger.info(
            f"Bill {bill_id} closed: tenant {ctx.tenant_id} table {table_id}, "
            f"{completed} order(s) completed, total {bill.total_amount}"
        )
        return bill

    def _release_table(self, ctx: TenantContext, table_id: int) -> None:
        try:
            canceled = self._pending_bills(ctx, table_id)
            for bill in canceled:
                bill.status = BillStatus.CANCELED.value
            draft = self.drafts.clear_in_payment(ctx, table_id, commit=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not release table {table_id} (tenant {ctx.tenant_id}) after failed close-out: {e}")
            return
        if draft is not None:
            logger.warning(
                f"Table {table_id} (tenant {ctx.tenant_id}) taken out of payment after failed close-out, "
                f"{len(canceled)} bill(s) canceled"
            )
