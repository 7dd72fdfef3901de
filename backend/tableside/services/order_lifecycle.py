"""Kitchen order state machine and order queries.

Transitions depend only on attributes fixed when the order was created
(``source`` and ``is_delivery``) plus the current status::

    Pending -> Confirmed -> In Progress -> Ready to Serve      (waiter orders)
                                        -> Ready for Delivery  (delivery orders)
                                        -> Ready for Pickup    (pickup orders)
    Ready to Serve     -> Delivered
    Ready for Delivery -> Out for Delivery   (assign_driver only)
    Out for Delivery   -> Delivered          (confirm_delivery only)
    Delivered / Ready for Pickup -> Completed

Side exits: Pending/Confirmed -> Canceled, Out for Delivery -> Returned.
Nothing leaves In Progress or a Ready state except forward. Waiter orders
reach Completed only through bill close-out.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from tableside.core.errors import (
    DriverNotAssigned,
    InvalidConfirmationCode,
    InvalidTransition,
    OrderNotFound,
)
from tableside.core.tenancy import TenantContext
from tableside.db.session import commit_or_fail
from tableside.models.kitchen_order import (
    KitchenOrder,
    OrderSource,
    OrderStatus,
    TERMINAL_STATUSES,
)
from tableside.models.menu import MenuItem

logger = logging.getLogger(__name__)

S = OrderStatus


def ready_status_for(order: KitchenOrder) -> str:
    """The single Ready state an In Progress order moves to."""
    if order.source == OrderSource.WAITER.value:
        return S.READY_TO_SERVE.value
    if order.is_delivery:
        return S.READY_FOR_DELIVERY.value
    return S.READY_FOR_PICKUP.value


def forward_transitions(order: KitchenOrder) -> List[str]:
    """Statuses reachable through a plain staff ``advance``."""
    status = order.status
    if status == S.PENDING.value:
        return [S.CONFIRMED.value, S.IN_PROGRESS.value]
    if status == S.CONFIRMED.value:
        return [S.IN_PROGRESS.value]
    if status == S.IN_PROGRESS.value:
        return [ready_status_for(order)]
    if status == S.READY_TO_SERVE.value:
        targets = [S.DELIVERED.value]
        if order.is_delivery:
            targets += [S.READY_FOR_DELIVERY.value, S.READY_FOR_PICKUP.value]
        return targets
    if status == S.READY_FOR_PICKUP.value:
        return [S.COMPLETED.value]
    if status == S.DELIVERED.value and order.source != OrderSource.WAITER.value:
        return [S.COMPLETED.value]
    return []


def allowed_transitions(order: KitchenOrder) -> List[str]:
    """Every status the order may move to next, including driver and cancel exits."""
    targets = list(forward_transitions(order))
    if order.status == S.READY_FOR_DELIVERY.value:
        targets.append(S.OUT_FOR_DELIVERY.value)
    if order.status == S.OUT_FOR_DELIVERY.value:
        targets += [S.DELIVERED.value, S.RETURNED.value]
    if order.status in (S.PENDING.value, S.CONFIRMED.value):
        targets.append(S.CANCELED.value)
    return targets


def kitchen_card(order: KitchenOrder, known_product_ids: Iterable[int]) -> dict:
    """Order as shown on the kitchen screen.

    Lines whose product no longer exists on the menu are flagged
    ``unresolved`` and keep their stored price.
    """
    known = set(known_product_ids)
    items = []
    for line in order.items or []:
        card_line = dict(line)
        card_line["unresolved"] = line.get("product_id") not in known
        items.append(card_line)
    return {
        "id": order.id,
        "table_id": order.table_id,
        "status": order.status,
        "source": order.source,
        "is_delivery": order.is_delivery,
        "total_amount": float(order.total_amount or 0),
        "next_status": ready_status_for(order),
        "items": items,
        "created_at": order.created_at,
    }


class OrderLifecycle:
    def __init__(self, db: Session):
        self.db = db

    # ==================== QUERIES ====================

    def get(self, ctx: TenantContext, order_id: str) -> KitchenOrder:
        order = (
            self.db.query(KitchenOrder)
            .filter(KitchenOrder.id == order_id, KitchenOrder.tenant_id == ctx.tenant_id)
            .first()
        )
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(
        self,
        ctx: TenantContext,
        status: Optional[str] = None,
        source: Optional[str] = None,
        table_id: Optional[int] = None,
    ) -> List[KitchenOrder]:
        query = self.db.query(KitchenOrder).filter(KitchenOrder.tenant_id == ctx.tenant_id)
        if status:
            query = query.filter(KitchenOrder.status == status)
        if source:
            query = query.filter(KitchenOrder.source == source)
        if table_id is not None:
            query = query.filter(KitchenOrder.table_id == table_id)
        return query.order_by(KitchenOrder.created_at.desc()).all()

    def active_orders_for_table(self, ctx: TenantContext, table_id: int) -> List[KitchenOrder]:
        """Waiter orders of the table that are not yet Completed, Canceled or Returned."""
        return (
            self.db.query(KitchenOrder)
            .filter(
                KitchenOrder.tenant_id == ctx.tenant_id,
                KitchenOrder.table_id == table_id,
                KitchenOrder.source == OrderSource.WAITER.value,
                KitchenOrder.status.notin_(TERMINAL_STATUSES),
            )
            .order_by(KitchenOrder.created_at)
            .all()
        )

    def active_waiter_orders(self, ctx: TenantContext) -> Dict[int, List[KitchenOrder]]:
        """Active waiter orders of the whole floor, grouped by table."""
        orders = (
            self.db.query(KitchenOrder)
            .filter(
                KitchenOrder.tenant_id == ctx.tenant_id,
                KitchenOrder.source == OrderSource.WAITER.value,
                KitchenOrder.table_id.isnot(None),
                KitchenOrder.status.notin_(TERMINAL_STATUSES),
            )
            .order_by(KitchenOrder.created_at)
            .all()
        )
        by_table: Dict[int, List[KitchenOrder]] = {}
        for order in orders:
            by_table.setdefault(order.table_id, []).append(order)
        return by_table

    def kitchen_queue(self, ctx: TenantContext) -> List[dict]:
        orders = (
            self.db.query(KitchenOrder)
            .filter(
                KitchenOrder.tenant_id == ctx.tenant_id,
                KitchenOrder.status == S.IN_PROGRESS.value,
            )
            .order_by(KitchenOrder.created_at)
            .all()
        )
        product_ids = {
            line.get("product_id") for order in orders for line in order.items or []
        }
        known = set()
        if product_ids:
            known = {
                row.id for row in self.db.query(MenuItem.id).filter(
                    MenuItem.tenant_id == ctx.tenant_id,
                    MenuItem.id.in_([p for p in product_ids if isinstance(p, int)]),
                )
            }
        return [kitchen_card(order, known) for order in orders]

    def driver_deliveries(self, ctx: TenantContext, driver_id: str) -> List[KitchenOrder]:
        return (
            self.db.query(KitchenOrder)
            .filter(
                KitchenOrder.tenant_id == ctx.tenant_id,
                KitchenOrder.assigned_driver_id == driver_id,
                KitchenOrder.status == S.OUT_FOR_DELIVERY.value,
            )
            .order_by(KitchenOrder.created_at)
            .all()
        )

    # ==================== TRANSITIONS ====================

    def _write_status(self, order: KitchenOrder, new_status: str, action: str) -> KitchenOrder:
        previous = order.status
        order.status = new_status
        commit_or_fail(self.db, action)
        logger.info(f"Order {order.id} (tenant {order.tenant_id}): {previous} -> {new_status}")
        return order

    def advance(self, ctx: TenantContext, order_id: str, new_status: str) -> KitchenOrder:
        order = self.get(ctx, order_id)
        if new_status not in forward_transitions(order):
            raise InvalidTransition(order.status, new_status)
        return self._write_status(order, new_status, "advance")

    def mark_ready(self, ctx: TenantContext, order_id: str) -> KitchenOrder:
        """Kitchen finished an In Progress order."""
        order = self.get(ctx, order_id)
        if order.status != S.IN_PROGRESS.value:
            raise InvalidTransition(order.status, ready_status_for(order))
        return self._write_status(order, ready_status_for(order), "mark_ready")

    def mark_served(self, ctx: TenantContext, order_id: str) -> KitchenOrder:
        """Waiter took a Ready to Serve order to the table."""
        order = self.get(ctx, order_id)
        if order.status != S.READY_TO_SERVE.value:
            raise InvalidTransition(order.status, S.DELIVERED.value)
        return self._write_status(order, S.DELIVERED.value, "mark_served")

    def assign_driver(self, ctx: TenantContext, order_id: str, driver_id: str, driver_name: str) -> KitchenOrder:
        order = self.get(ctx, order_id)
        if order.status != S.READY_FOR_DELIVERY.value:
            raise InvalidTransition(order.status, S.OUT_FOR_DELIVERY.value)
        order.assigned_driver_id = driver_id
        order.assigned_driver_name = driver_name
        return self._write_status(order, S.OUT_FOR_DELIVERY.value, "assign_driver")

    def cancel(self, ctx: TenantContext, order_id: str) -> KitchenOrder:
        order = self.get(ctx, order_id)
        if order.status in (S.PENDING.value, S.CONFIRMED.value):
            return self._write_status(order, S.CANCELED.value, "cancel")
        if order.status == S.OUT_FOR_DELIVERY.value:
            return self._write_status(order, S.RETURNED.value, "cancel")
        raise InvalidTransition(order.status, S.CANCELED.value)

    def confirm_delivery(self, ctx: TenantContext, order_id: str, driver_id: str, code: str) -> KitchenOrder:
        order = self.get(ctx, order_id)
        if order.status != S.OUT_FOR_DELIVERY.value:
            raise InvalidTransition(order.status, S.DELIVERED.value)
        if order.assigned_driver_id != driver_id:
            raise DriverNotAssigned()
        if not order.confirmation_code or str(code).strip() != order.confirmation_code:
            raise InvalidConfirmationCode()
        return self._write_status(order, S.DELIVERED.value, "confirm_delivery")
