"""SQLAlchemy models."""

from tableside.models.menu import MenuItem
from tableside.models.table_draft import TableDraft, draft_key
from tableside.models.kitchen_order import (
    KitchenOrder,
    OrderSource,
    OrderStatus,
    TERMINAL_STATUSES,
)
from tableside.models.bill import Bill, BillStatus

__all__ = [
    "MenuItem",
    "TableDraft",
    "draft_key",
    "KitchenOrder",
    "OrderSource",
    "OrderStatus",
    "TERMINAL_STATUSES",
    "Bill",
    "BillStatus",
]
