"""Per-table display status derived from the draft and the table's active orders.

Never persisted; recomputed on every read.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from tableside.models.kitchen_order import KitchenOrder, OrderStatus, TERMINAL_STATUSES
from tableside.models.table_draft import TableDraft


class TableStatus(str, Enum):
    FREE = "free"
    ACTIVE = "active"
    UNSENT = "unsent"
    PENDING = "pending"
    READY_TO_SERVE = "ready-to-serve"


@dataclass
class TableSummary:
    table_id: int
    status: TableStatus
    has_unsent_items: bool = False
    unsent_items_count: int = 0
    has_pending_orders: bool = False
    has_ready_orders: bool = False
    has_delivered_orders: bool = False
    active_orders_count: int = 0
    is_in_payment: bool = False
    last_activity: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _open_orders(orders: Iterable[KitchenOrder]) -> List[KitchenOrder]:
    return [o for o in orders if o.status not in TERMINAL_STATUSES]


def project_status(draft: Optional[TableDraft], active_orders: Sequence[KitchenOrder]) -> TableStatus:
    """Highest-priority matching condition wins.

    ready-to-serve > unsent > pending > active > free. A table that is in
    payment, or still has open orders, is at least ``active``.
    """
    orders = _open_orders(active_orders)
    statuses = {o.status for o in orders}

    if OrderStatus.READY_TO_SERVE.value in statuses:
        return TableStatus.READY_TO_SERVE
    if draft is not None and draft.unsent_items:
        return TableStatus.UNSENT
    if OrderStatus.IN_PROGRESS.value in statuses:
        return TableStatus.PENDING
    if orders or (draft is not None and (draft.has_items or draft.is_in_payment)):
        return TableStatus.ACTIVE
    return TableStatus.FREE


def summarize(table_id: int, draft: Optional[TableDraft], orders: Sequence[KitchenOrder]) -> TableSummary:
    open_orders = _open_orders(orders)
    unsent = draft.unsent_items if draft is not None else []
    pending = [o for o in open_orders if o.status == OrderStatus.IN_PROGRESS.value]
    ready = [o for o in open_orders if o.status == OrderStatus.READY_TO_SERVE.value]
    return TableSummary(
        table_id=table_id,
        status=project_status(draft, open_orders),
        has_unsent_items=bool(unsent),
        unsent_items_count=len(unsent),
        has_pending_orders=bool(pending),
        has_ready_orders=bool(ready),
        has_delivered_orders=any(o.status == OrderStatus.DELIVERED.value for o in open_orders),
        active_orders_count=len(pending) + len(ready),
        is_in_payment=bool(draft is not None and draft.is_in_payment),
        last_activity=draft.last_activity if draft is not None else None,
    )


def status_counts(summaries: Iterable[TableSummary]) -> Dict[str, int]:
    counts = {status.value: 0 for status in TableStatus}
    for summary in summaries:
        counts[summary.status.value] += 1
    return counts


def tables_with_notifications(summaries: Iterable[TableSummary]) -> List[int]:
    """Tables with food waiting at the pass."""
    return [s.table_id for s in summaries if s.status == TableStatus.READY_TO_SERVE]
