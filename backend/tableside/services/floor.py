"""Table views and the floor overview shown to waiters.

A table view is also the snapshot pushed to live-feed subscribers.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from tableside.core.tenancy import TenantContext
from tableside.models.kitchen_order import KitchenOrder
from tableside.models.table_draft import TableDraft
from tableside.schemas.draft import DraftResponse
from tableside.schemas.order import OrderResponse
from tableside.services.draft_store import DraftStore
from tableside.services.live_feed import feed_hub
from tableside.services.order_lifecycle import OrderLifecycle
from tableside.services.pricing import line_total, to_decimal
from tableside.services.table_status import (
    status_counts,
    summarize,
    tables_with_notifications,
)


def unsent_total(draft: Optional[TableDraft]) -> Decimal:
    if draft is None:
        return Decimal("0")
    return sum(
        (line_total(item.get("unit_price"), item.get("quantity", 1)) for item in draft.unsent_items),
        Decimal("0"),
    )


def serialize_order(order: KitchenOrder) -> dict:
    return OrderResponse.model_validate(order).model_dump(mode="json")


def table_view(db: Session, ctx: TenantContext, table_id: int) -> dict:
    """Draft, active orders, totals and projected status of one table."""
    drafts = DraftStore(db)
    persisted = drafts.get(ctx, table_id)
    draft = persisted if persisted is not None else drafts.view(ctx, table_id)
    orders = OrderLifecycle(db).active_orders_for_table(ctx, table_id)

    pending = unsent_total(persisted)
    ordered = sum((to_decimal(o.total_amount) for o in orders), Decimal("0"))
    return {
        "table_id": table_id,
        "draft": DraftResponse.model_validate(draft).model_dump(mode="json"),
        "orders": [serialize_order(o) for o in orders],
        "summary": summarize(table_id, persisted, orders).to_dict(),
        "totals": {
            "unsent": float(pending),
            "ordered": float(ordered),
            "total": float(pending + ordered),
        },
    }


def floor_overview(db: Session, ctx: TenantContext, table_count: int) -> dict:
    """Status of tables 1..table_count plus any other table with a draft or open orders."""
    drafts = {d.table_id: d for d in DraftStore(db).list_drafts(ctx)}
    orders = OrderLifecycle(db).active_waiter_orders(ctx)
    table_ids = sorted(set(range(1, table_count + 1)) | set(drafts) | set(orders))

    summaries = [summarize(t, drafts.get(t), orders.get(t, [])) for t in table_ids]
    return {
        "tables": [s.to_dict() for s in summaries],
        "counts": status_counts(summaries),
        "notifications": tables_with_notifications(summaries),
    }


def publish_table(db: Session, ctx: TenantContext, table_id: Optional[int]) -> None:
    """Push the table's fresh snapshot to its live-feed subscribers."""
    if table_id is None or not feed_hub.subscriber_count(ctx.tenant_id):
        return
    feed_hub.publish(ctx.tenant_id, table_id, table_view(db, ctx, table_id))
