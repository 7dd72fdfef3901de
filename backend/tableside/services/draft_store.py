"""Draft table store: the live seats-and-items state of each physical table.

Every write replaces the whole ``seats`` document of the row. Two waiters
editing the same table concurrently race and the last write wins; there is
no per-seat or per-item concurrency token.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from tableside.core.errors import (
    DraftNotFound,
    InvalidOption,
    ItemAlreadySubmitted,
    ItemNotFound,
    MenuItemNotFound,
    SeatNotFound,
    TableInPayment,
)
from tableside.core.tenancy import TenantContext
from tableside.db.session import commit_or_fail
from tableside.models.bill import Bill, BillStatus
from tableside.models.menu import MenuItem
from tableside.models.table_draft import PAYMENT_METHODS, TableDraft, draft_key, utcnow
from tableside.services.pricing import unit_price_for_item, validate_flavor_split

logger = logging.getLogger(__name__)


def default_seats() -> List[dict]:
    return [{"id": 1, "name": None, "items": []}]


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def _snapshot_option(option: Optional[dict]) -> Optional[dict]:
    if option is None:
        return None
    return {"id": option.get("id"), "name": option.get("name"), "price": float(option.get("price") or 0)}


def merge_key(item: Dict[str, Any]) -> tuple:
    """Identity of a draft line for quantity merging.

    Price snapshots are part of the identity, so units added after a menu
    price change start a new line instead of taking the old price.
    """
    size = item.get("selected_size") or {}
    crust = item.get("selected_stuffed_crust") or {}
    combination = item.get("selected_flavor_combination") or {}
    return (
        item.get("product_id"),
        size.get("id"),
        tuple(sorted(str(a.get("id")) for a in item.get("selected_addons") or [])),
        crust.get("id"),
        tuple(sorted(item.get("removed_ingredients") or [])),
        tuple(sorted(
            (str(f.get("flavor_id")), float(f.get("percentage") or 0))
            for f in item.get("selected_flavors") or []
        )),
        combination.get("id"),
        item.get("notes") or "",
        item.get("price"),
        item.get("promo_price"),
        item.get("unit_price"),
    )


def resolve_selection(
    db: Session,
    tenant_id: str,
    menu_item_id: int,
    quantity: int = 1,
    notes: Optional[str] = None,
    size_id: Optional[str] = None,
    addon_ids: Optional[List[str]] = None,
    stuffed_crust_id: Optional[str] = None,
    removed_ingredients: Optional[List[str]] = None,
    flavor_combination_id: Optional[str] = None,
    flavors: Optional[List[dict]] = None,
) -> dict:
    """Resolve option ids against the tenant's current menu into a priced draft line snapshot.

    Raises MenuItemNotFound, InvalidOption or InvalidFlavorSplit.
    """
    menu_item = (
        db.query(MenuItem)
        .filter(MenuItem.id == menu_item_id, MenuItem.tenant_id == tenant_id)
        .first()
    )
    if menu_item is None:
        raise MenuItemNotFound(menu_item_id)
    if not menu_item.in_stock:
        raise InvalidOption(f"{menu_item.name} is out of stock")
    if quantity < 1:
        raise InvalidOption("Quantity must be at least 1")

    size = None
    if size_id is not None:
        size = menu_item.find_option("sizes", size_id)
        if size is None:
            raise InvalidOption(f"Unknown size '{size_id}' for {menu_item.name}")

    addons = []
    for addon_id in sorted(set(str(a) for a in addon_ids or [])):
        addon = menu_item.find_option("addons", addon_id)
        if addon is None:
            raise InvalidOption(f"Unknown add-on '{addon_id}' for {menu_item.name}")
        addons.append(_snapshot_option(addon))

    crust = None
    if stuffed_crust_id is not None:
        crust = menu_item.find_option("stuffed_crust_options", stuffed_crust_id)
        if crust is None:
            raise InvalidOption(f"Unknown stuffed crust '{stuffed_crust_id}' for {menu_item.name}")

    combination = None
    selected_flavors = []
    if (flavor_combination_id is not None or flavors) and not menu_item.allow_multiple_flavors:
        raise InvalidOption(f"{menu_item.name} does not allow multiple flavors")

    if flavor_combination_id is not None:
        combination = menu_item.find_option("flavor_combinations", flavor_combination_id)
        if combination is None:
            raise InvalidOption(f"Unknown flavor combination '{flavor_combination_id}'")
        validate_flavor_split(combination.get("flavors") or [], menu_item.max_flavors or 4)

    if flavors:
        validate_flavor_split(flavors, menu_item.max_flavors or 4)
        for chosen in flavors:
            flavor = menu_item.find_option("flavors", chosen.get("flavor_id"))
            if flavor is None:
                raise InvalidOption(f"Unknown flavor '{chosen.get('flavor_id')}'")
            selected_flavors.append({
                "flavor_id": flavor.get("id"),
                "flavor_name": flavor.get("name"),
                "percentage": float(chosen.get("percentage")),
                "additional_price": float(flavor.get("price") or 0),
            })

    item = {
        "product_id": menu_item.id,
        "name": menu_item.name,
        "quantity": quantity,
        "price": _money(menu_item.base_price),
        "promo_price": _money(menu_item.promo_price),
        "notes": notes or None,
        "selected_size": _snapshot_option(size),
        "selected_addons": addons,
        "selected_stuffed_crust": _snapshot_option(crust),
        "removed_ingredients": sorted(set(removed_ingredients or [])),
        "selected_flavors": selected_flavors,
        "selected_flavor_combination": _snapshot_option(combination),
        "submitted": False,
    }
    item["unit_price"] = float(unit_price_for_item(item))
    return item


class DraftStore:
    """Reads and whole-document writes of per-table drafts."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== READS ====================

    def get(self, ctx: TenantContext, table_id: int) -> Optional[TableDraft]:
        return self.db.get(TableDraft, draft_key(ctx.tenant_id, table_id))

    def view(self, ctx: TenantContext, table_id: int) -> TableDraft:
        """Persisted draft, or an unsaved default with one empty seat."""
        draft = self.get(ctx, table_id)
        if draft is not None:
            return draft
        return TableDraft(
            id=draft_key(ctx.tenant_id, table_id),
            tenant_id=ctx.tenant_id,
            table_id=table_id,
            seats=default_seats(),
            next_seat_id=2,
            payment_method="together",
            is_in_payment=False,
            last_activity=None,
        )

    def list_drafts(self, ctx: TenantContext) -> List[TableDraft]:
        return (
            self.db.query(TableDraft)
            .filter(TableDraft.tenant_id == ctx.tenant_id)
            .order_by(TableDraft.table_id)
            .all()
        )

    # ==================== HELPERS ====================

    def _get_or_create(self, ctx: TenantContext, table_id: int) -> TableDraft:
        draft = self.get(ctx, table_id)
        if draft is None:
            draft = self.view(ctx, table_id)
            self.db.add(draft)
            logger.info(f"Draft created for tenant {ctx.tenant_id} table {table_id}")
        return draft

    def _require(self, ctx: TenantContext, table_id: int) -> TableDraft:
        draft = self.get(ctx, table_id)
        if draft is None:
            raise DraftNotFound(table_id)
        return draft

    @staticmethod
    def _seat(seats: List[dict], seat_id: int) -> dict:
        for seat in seats:
            if seat["id"] == seat_id:
                return seat
        raise SeatNotFound(seat_id)

    @staticmethod
    def _check_not_in_payment(draft: TableDraft) -> None:
        if draft.is_in_payment:
            raise TableInPayment(draft.table_id)

    @staticmethod
    def write_seats(draft: TableDraft, seats: List[dict]) -> None:
        """Replace the seats document and stamp the activity time."""
        draft.seats = seats
        flag_modified(draft, "seats")
        draft.last_activity = utcnow()

    def _commit(self, action: str) -> None:
        commit_or_fail(self.db, action)

    # ==================== ITEMS ====================

    def add_item(
        self,
        ctx: TenantContext,
        table_id: int,
        seat_id: int,
        menu_item_id: int,
        quantity: int = 1,
        notes: Optional[str] = None,
        size_id: Optional[str] = None,
        addon_ids: Optional[List[str]] = None,
        stuffed_crust_id: Optional[str] = None,
        removed_ingredients: Optional[List[str]] = None,
        flavor_combination_id: Optional[str] = None,
        flavors: Optional[List[dict]] = None,
    ) -> TableDraft:
        """Add an item to a seat, merging with an identical unsent line.

        The draft is created with one seat on the first item added to a table.
        """
        existing = self.get(ctx, table_id)
        if existing is not None:
            self._check_not_in_payment(existing)

        new_item = resolve_selection(
            self.db, ctx.tenant_id, menu_item_id, quantity, notes, size_id, addon_ids,
            stuffed_crust_id, removed_ingredients, flavor_combination_id, flavors,
        )

        draft = existing or self._get_or_create(ctx, table_id)
        seats = copy.deepcopy(draft.seats or default_seats())
        seat = self._seat(seats, seat_id)

        key = merge_key(new_item)
        for item in seat["items"]:
            if not item.get("submitted") and merge_key(item) == key:
                item["quantity"] += quantity
                break
        else:
            seat["items"].append(new_item)

        self.write_seats(draft, seats)
        self._commit("add_item")
        logger.info(
            f"Item {menu_item_id} x{quantity} added to seat {seat_id} "
            f"(tenant {ctx.tenant_id} table {table_id})"
        )
        return draft

    def remove_item(self, ctx: TenantContext, table_id: int, seat_id: int, item_index: int) -> TableDraft:
        draft = self._require(ctx, table_id)
        self._check_not_in_payment(draft)

        seats = copy.deepcopy(draft.seats)
        seat = self._seat(seats, seat_id)
        if item_index < 0 or item_index >= len(seat["items"]):
            raise ItemNotFound(seat_id, item_index)
        if seat["items"][item_index].get("submitted"):
            raise ItemAlreadySubmitted()

        removed = seat["items"].pop(item_index)
        self.write_seats(draft, seats)
        self._commit("remove_item")
        logger.info(
            f"Item {removed.get('product_id')} removed from seat {seat_id} "
            f"(tenant {ctx.tenant_id} table {table_id})"
        )
        return draft

    # ==================== SEATS ====================

    def add_seat(self, ctx: TenantContext, table_id: int, name: Optional[str] = None) -> TableDraft:
        """Append a seat; ids are monotonic and never reused within a draft."""
        draft = self._get_or_create(ctx, table_id)
        self._check_not_in_payment(draft)

        seat_id = draft.next_seat_id or 2
        seats = copy.deepcopy(draft.seats or default_seats())
        seats.append({"id": seat_id, "name": name, "items": []})
        draft.next_seat_id = seat_id + 1
        self.write_seats(draft, seats)
        self._commit("add_seat")
        return draft

    def rename_seat(self, ctx: TenantContext, table_id: int, seat_id: int, name: Optional[str]) -> TableDraft:
        draft = self._get_or_create(ctx, table_id)
        seats = copy.deepcopy(draft.seats or default_seats())
        self._seat(seats, seat_id)["name"] = name or None
        self.write_seats(draft, seats)
        self._commit("rename_seat")
        return draft

    # ==================== TABLE ====================

    def set_payment_method(self, ctx: TenantContext, table_id: int, method: str) -> TableDraft:
        if method not in PAYMENT_METHODS:
            raise InvalidOption(f"Payment method must be one of {', '.join(PAYMENT_METHODS)}")
        draft = self._get_or_create(ctx, table_id)
        draft.payment_method = method
        draft.last_activity = utcnow()
        self._commit("set_payment_method")
        return draft

    def reset(self, ctx: TenantContext, table_id: int) -> TableDraft:
        """Back to a single empty seat; a pending bill for the table is canceled."""
        draft = self._get_or_create(ctx, table_id)
        draft.next_seat_id = 2
        draft.payment_method = "together"
        draft.is_in_payment = False
        self.write_seats(draft, default_seats())

        pending = (
            self.db.query(Bill)
            .filter(
                Bill.tenant_id == ctx.tenant_id,
                Bill.table_id == table_id,
                Bill.status == BillStatus.PENDING.value,
            )
            .all()
        )
        for bill in pending:
            bill.status = BillStatus.CANCELED.value

        self._commit("reset")
        logger.info(f"Table {table_id} reset (tenant {ctx.tenant_id}, {len(pending)} pending bill(s) canceled)")
        return draft

    def mark_in_payment(self, ctx: TenantContext, table_id: int, commit: bool = True) -> TableDraft:
        draft = self._get_or_create(ctx, table_id)
        draft.is_in_payment = True
        draft.last_activity = utcnow()
        if commit:
            self._commit("mark_in_payment")
        return draft

    def clear_in_payment(self, ctx: TenantContext, table_id: int, commit: bool = True) -> Optional[TableDraft]:
        draft = self.get(ctx, table_id)
        if draft is None:
            return None
        draft.is_in_payment = False
        draft.last_activity = utcnow()
        if commit:
            self._commit("clear_in_payment")
        return draft
