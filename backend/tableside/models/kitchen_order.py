"""Kitchen order: immutable-once-created record of items sent for preparation."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Boolean, Text, JSON
from sqlalchemy.orm import validates

from tableside.db.base import Base
from tableside.models.validators import non_negative, validate_list


class OrderStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    READY_TO_SERVE = "Ready to Serve"
    READY_FOR_DELIVERY = "Ready for Delivery"
    READY_FOR_PICKUP = "Ready for Pickup"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    RETURNED = "Returned"
    CANCELED = "Canceled"


class OrderSource(str, Enum):
    WAITER = "waiter"
    ONLINE = "online"
    WAITER_BILL = "waiter-bill"
    ONLINE_RECOVERY = "online-recovery"


TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED.value,
    OrderStatus.RETURNED.value,
    OrderStatus.CANCELED.value,
})


def new_order_id() -> str:
    return uuid.uuid4().hex


class KitchenOrder(Base):
    """Order created by table submission or by online checkout."""
    __tablename__ = "kitchen_orders"

    id = Column(String(255), primary_key=True, default=new_order_id)
    tenant_id = Column(String(128), nullable=False, index=True)
    table_id = Column(Integer, nullable=True, index=True)  # None for online orders

    # [{"product_id", "name", "price", "quantity", "seat", ...}]
    items = Column(JSON, nullable=False, default=list)
    total_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value, index=True)
    source = Column(String(30), nullable=False, default=OrderSource.ONLINE.value)

    is_delivery = Column(Boolean, nullable=False, default=False)
    delivery_address = Column(Text, nullable=True)
    assigned_driver_id = Column(String(128), nullable=True, index=True)
    assigned_driver_name = Column(String(200), nullable=True)
    confirmation_code = Column(String(8), nullable=True)
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    payment_method = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @validates('total_amount')
    def _validate_total(self, key, value):
        return non_negative(key, value)

    @validates('items')
    def _validate_items(self, key, value):
        return validate_list(key, value)
