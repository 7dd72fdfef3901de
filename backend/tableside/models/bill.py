"""Bill: payable aggregation of a table's kitchen orders."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON
from sqlalchemy.orm import validates

from tableside.db.base import Base
from tableside.models.validators import non_negative, validate_list


class BillStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "Completed"
    CANCELED = "Canceled"


class Bill(Base):
    """Created once when a waiter starts payment; only its status changes afterwards."""
    __tablename__ = "bills"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    tenant_id = Column(String(128), nullable=False, index=True)
    table_id = Column(Integer, nullable=False, index=True)

    items = Column(JSON, nullable=False, default=list)  # flattened lines, each tagged with seat
    order_ids = Column(JSON, nullable=False, default=list)
    seat_names = Column(JSON, nullable=False, default=dict)  # {"1": "Ana", ...} at bill time
    total_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    payment_method = Column(String(20), nullable=False, default="together")
    source = Column(String(30), nullable=False, default="waiter-bill")
    status = Column(String(20), nullable=False, default=BillStatus.PENDING.value, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    paid_at = Column(DateTime, nullable=True)

    @validates('total_amount')
    def _validate_total(self, key, value):
        return non_negative(key, value)

    @validates('items', 'order_ids')
    def _validate_lists(self, key, value):
        return validate_list(key, value)
