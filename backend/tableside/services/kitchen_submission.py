"""Send a table's unsent draft items to the kitchen as one order."""

import copy
import logging
from decimal import Decimal
from typing import List, Tuple

from sqlalchemy.orm import Session

from tableside.core.errors import NothingToSubmit, TableInPayment
from tableside.core.tenancy import TenantContext
from tableside.db.session import commit_or_fail
from tableside.models.kitchen_order import KitchenOrder, OrderSource, OrderStatus
from tableside.services.draft_store import DraftStore
from tableside.services.pricing import line_total, unit_price_for_item

logger = logging.getLogger(__name__)


def order_line(item: dict, seat_id: int) -> dict:
    """Priced kitchen line for a draft item, attributed to its seat."""
    line = {
        "product_id": item.get("product_id"),
        "name": item.get("name"),
        "price": float(unit_price_for_item(item)),
        "quantity": item.get("quantity", 1),
        "seat": seat_id,
    }
    for field in ("notes", "selected_size", "selected_stuffed_crust", "selected_flavor_combination"):
        if item.get(field):
            line[field] = item[field]
    for field in ("selected_addons", "removed_ingredients", "selected_flavors"):
        if item.get(field):
            line[field] = item[field]
    return line


class KitchenSubmission:
    def __init__(self, db: Session):
        self.db = db
        self.drafts = DraftStore(db)

    @staticmethod
    def collect_unsent(seats: List[dict]) -> Tuple[List[dict], List[dict]]:
        """Return (updated seats with unsent items flagged submitted, priced lines)."""
        seats = copy.deepcopy(seats)
        lines = []
        for seat in seats:
            for item in seat.get("items") or []:
                if item.get("submitted"):
                    continue
                lines.append(order_line(item, seat["id"]))
                item["submitted"] = True
        return seats, lines

    def submit(self, ctx: TenantContext, table_id: int) -> KitchenOrder:
        """Create one In Progress order from every unsent item of the table.

        The new order and the submitted flags commit together. Only items
        still flagged unsent are picked up, so a retry after a failure never
        sends a line twice.

        Raises:
            NothingToSubmit: no unsent items on any seat.
            TableInPayment: the table is waiting for payment.
        """
        draft = self.drafts.get(ctx, table_id)
        if draft is None:
            raise NothingToSubmit()
        if draft.is_in_payment:
            raise TableInPayment(table_id)

        seats, lines = self.collect_unsent(draft.seats or [])
        if not lines:
            raise NothingToSubmit()

        total = sum((line_total(line["price"], line["quantity"]) for line in lines), Decimal("0"))
        order = KitchenOrder(
            tenant_id=ctx.tenant_id,
            table_id=table_id,
            items=lines,
            total_amount=total,
            status=OrderStatus.IN_PROGRESS.value,
            source=OrderSource.WAITER.value,
            is_delivery=False,
            payment_method=draft.payment_method,
        )
        self.db.add(order)
        self.drafts.write_seats(draft, seats)
        commit_or_fail(self.db, "submit")

        logger.info(
            f"Order {order.id} sent to kitchen: tenant {ctx.tenant_id} table {table_id}, "
            f"{len(lines)} line(s), total {total}"
        )
        return order
