"""Per-table draft: the live, editable seats-and-items state of a physical table."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import validates

from tableside.db.base import Base
from tableside.models.validators import validate_list

PAYMENT_METHODS = ("together", "separated")


def draft_key(tenant_id: str, table_id: int) -> str:
    """Document key of a table's draft."""
    return f"{tenant_id}_{table_id}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TableDraft(Base):
    """One row per tenant+table; ``seats`` holds the whole seat/item document."""
    __tablename__ = "table_drafts"
    __table_args__ = (UniqueConstraint("tenant_id", "table_id", name="uq_table_drafts_tenant_table"),)

    id = Column(String(160), primary_key=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    table_id = Column(Integer, nullable=False)

    # [{"id": int, "name": str | None, "items": [DraftItem, ...]}, ...]
    seats = Column(JSON, nullable=False, default=list)
    next_seat_id = Column(Integer, nullable=False, default=2)
    payment_method = Column(String(20), nullable=False, default="together")
    is_in_payment = Column(Boolean, nullable=False, default=False)

    # Observability only, never used for business decisions
    last_activity = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @validates('seats')
    def _validate_seats(self, key, value):
        return validate_list(key, value)

    @validates('payment_method')
    def _validate_payment_method(self, key, value):
        if value not in PAYMENT_METHODS:
            raise ValueError(f"{key} must be one of {PAYMENT_METHODS}, got {value}")
        return value

    def iter_items(self):
        """Yield (seat, item) for every item on every seat."""
        for seat in self.seats or []:
            for item in seat.get("items") or []:
                yield seat, item

    @property
    def has_items(self) -> bool:
        return any(True for _ in self.iter_items())

    @property
    def unsent_items(self) -> list:
        return [item for _, item in self.iter_items() if not item.get("submitted")]
