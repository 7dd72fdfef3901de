"""Tests for the per-table draft store."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from tableside.core.errors import (
    DraftNotFound,
    InvalidFlavorSplit,
    InvalidOption,
    ItemAlreadySubmitted,
    ItemNotFound,
    MenuItemNotFound,
    SeatNotFound,
    TableInPayment,
)
from tableside.models.bill import Bill, BillStatus
from tableside.models.table_draft import TableDraft
from tableside.services.draft_store import DraftStore
from tableside.services.kitchen_submission import KitchenSubmission


class TestDraftItems:

    def test_first_item_creates_draft(self, db_session: Session, ctx, pizza):
        store = DraftStore(db_session)
        assert store.get(ctx, 3) is None

        draft = store.add_item(ctx, 3, seat_id=1, menu_item_id=pizza.id)

        assert draft.id == f"{ctx.tenant_id}_3"
        assert len(draft.seats) == 1
        item = draft.seats[0]["items"][0]
        assert item["name"] == "Pizza"
        assert item["submitted"] is False
        assert item["unit_price"] == 30.0
        assert draft.last_activity is not None

    def test_identical_items_merge_quantity(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        draft = store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id, quantity=2)

        items = draft.seats[0]["items"]
        assert len(items) == 1
        assert items[0]["quantity"] == 3

    def test_repriced_item_starts_new_line(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        soda.base_price = Decimal("10.00")
        db_session.commit()

        draft = store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)

        items = draft.seats[0]["items"]
        assert [(i["quantity"], i["unit_price"]) for i in items] == [(1, 8.0), (1, 10.0)]

    def test_different_options_do_not_merge(self, db_session: Session, ctx, pizza):
        store = DraftStore(db_session)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=pizza.id, size_id="m")
        draft = store.add_item(ctx, 1, seat_id=1, menu_item_id=pizza.id, size_id="l")
        assert len(draft.seats[0]["items"]) == 2

    def test_submitted_item_is_not_merged(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        KitchenSubmission(db_session).submit(ctx, 1)

        draft = store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        items = draft.seats[0]["items"]
        assert [i["submitted"] for i in items] == [True, False]

    def test_options_are_snapshotted(self, db_session: Session, ctx, pizza):
        store = DraftStore(db_session)
        draft = store.add_item(
            ctx, 1, seat_id=1, menu_item_id=pizza.id,
            size_id="l", addon_ids=["bacon"], stuffed_crust_id="cheddar",
            removed_ingredients=["onion"],
        )
        item = draft.seats[0]["items"][0]
        assert item["selected_size"] == {"id": "l", "name": "Large", "price": 42.0}
        assert item["selected_addons"][0]["id"] == "bacon"
        assert item["removed_ingredients"] == ["onion"]
        assert item["unit_price"] == 52.0

        # Later menu edits don't reprice the line
        pizza.sizes = [{"id": "l", "name": "Large", "price": 99.0}]
        db_session.commit()
        assert store.get(ctx, 1).seats[0]["items"][0]["unit_price"] == 52.0

    def test_flavor_combination_price(self, db_session: Session, ctx, pizza):
        draft = DraftStore(db_session).add_item(
            ctx, 1, seat_id=1, menu_item_id=pizza.id, flavor_combination_id="half-half",
        )
        assert draft.seats[0]["items"][0]["unit_price"] == 45.0

    def test_invalid_flavor_split_rejected(self, db_session: Session, ctx, pizza):
        with pytest.raises(InvalidFlavorSplit):
            DraftStore(db_session).add_item(
                ctx, 1, seat_id=1, menu_item_id=pizza.id,
                flavors=[{"flavor_id": "marg", "percentage": 60}, {"flavor_id": "pep", "percentage": 60}],
            )

    def test_unknown_option_rejected(self, db_session: Session, ctx, pizza):
        with pytest.raises(InvalidOption):
            DraftStore(db_session).add_item(ctx, 1, seat_id=1, menu_item_id=pizza.id, size_id="xl")

    def test_flavors_on_single_flavor_item_rejected(self, db_session: Session, ctx, soda):
        with pytest.raises(InvalidOption):
            DraftStore(db_session).add_item(
                ctx, 1, seat_id=1, menu_item_id=soda.id,
                flavors=[{"flavor_id": "marg", "percentage": 100}],
            )

    def test_out_of_stock_rejected(self, db_session: Session, ctx, make_menu_item):
        item = make_menu_item("Calzone", "28.00", in_stock=False)
        with pytest.raises(InvalidOption):
            DraftStore(db_session).add_item(ctx, 1, seat_id=1, menu_item_id=item.id)

    def test_other_tenant_menu_item_not_found(self, db_session: Session, ctx, make_menu_item):
        foreign = make_menu_item("Sushi", "50.00", tenant_id="bistro-2")
        with pytest.raises(MenuItemNotFound):
            DraftStore(db_session).add_item(ctx, 1, seat_id=1, menu_item_id=foreign.id)

    def test_unknown_seat(self, db_session: Session, ctx, soda):
        with pytest.raises(SeatNotFound):
            DraftStore(db_session).add_item(ctx, 1, seat_id=7, menu_item_id=soda.id)

    def test_remove_unsent_item(self, db_session: Session, ctx, soda, pizza):
        store = DraftStore(db_session)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=pizza.id)

        draft = store.remove_item(ctx, 1, seat_id=1, item_index=0)
        assert [i["name"] for i in draft.seats[0]["items"]] == ["Pizza"]

    def test_remove_submitted_item_rejected(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        KitchenSubmission(db_session).submit(ctx, 1)

        with pytest.raises(ItemAlreadySubmitted):
            store.remove_item(ctx, 1, seat_id=1, item_index=0)

    def test_remove_missing_item(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        with pytest.raises(DraftNotFound):
            store.remove_item(ctx, 1, seat_id=1, item_index=0)
        store.add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)
        with pytest.raises(ItemNotFound):
            store.remove_item(ctx, 1, seat_id=1, item_index=4)


class TestSeats:

    def test_seat_ids_are_monotonic(self, db_session: Session, ctx):
        store = DraftStore(db_session)
        store.add_seat(ctx, 2)
        draft = store.add_seat(ctx, 2, name="Bruno")
        assert [s["id"] for s in draft.seats] == [1, 2, 3]
        assert draft.seats[2]["name"] == "Bruno"
        assert draft.next_seat_id == 4

    def test_rename_seat(self, db_session: Session, ctx):
        draft = DraftStore(db_session).rename_seat(ctx, 2, 1, "Ana")
        assert draft.seats[0]["name"] == "Ana"

    def test_reset_restores_single_seat(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        store.add_seat(ctx, 2)
        store.add_item(ctx, 2, seat_id=2, menu_item_id=soda.id)
        store.set_payment_method(ctx, 2, "separated")

        draft = store.reset(ctx, 2)
        assert draft.seats == [{"id": 1, "name": None, "items": []}]
        assert draft.next_seat_id == 2
        assert draft.payment_method == "together"
        assert draft.is_in_payment is False

    def test_reset_cancels_pending_bill(self, db_session: Session, ctx):
        bill = Bill(tenant_id=ctx.tenant_id, table_id=2, items=[], order_ids=[], total_amount=0)
        db_session.add(bill)
        db_session.commit()

        DraftStore(db_session).reset(ctx, 2)
        db_session.refresh(bill)
        assert bill.status == BillStatus.CANCELED.value

    def test_invalid_payment_method(self, db_session: Session, ctx):
        with pytest.raises(InvalidOption):
            DraftStore(db_session).set_payment_method(ctx, 2, "split")


class TestInPayment:

    def test_edits_rejected_while_in_payment(self, db_session: Session, ctx, soda):
        store = DraftStore(db_session)
        store.add_item(ctx, 4, seat_id=1, menu_item_id=soda.id)
        store.mark_in_payment(ctx, 4)

        with pytest.raises(TableInPayment):
            store.add_item(ctx, 4, seat_id=1, menu_item_id=soda.id)
        with pytest.raises(TableInPayment):
            store.add_seat(ctx, 4)
        with pytest.raises(TableInPayment):
            store.remove_item(ctx, 4, seat_id=1, item_index=0)

    def test_clear_in_payment(self, db_session: Session, ctx):
        store = DraftStore(db_session)
        store.mark_in_payment(ctx, 4)
        draft = store.clear_in_payment(ctx, 4)
        assert draft.is_in_payment is False
        assert store.clear_in_payment(ctx, 99) is None


class TestTenantIsolation:

    def test_drafts_are_keyed_by_tenant(self, db_session: Session, ctx, soda):
        from tableside.core.tenancy import TenantContext, UserRole

        other = TenantContext(tenant_id="bistro-2", user_id="w-9", role=UserRole.WAITER)
        DraftStore(db_session).add_item(ctx, 1, seat_id=1, menu_item_id=soda.id)

        assert DraftStore(db_session).get(other, 1) is None
        assert db_session.query(TableDraft).count() == 1
        assert DraftStore(db_session).list_drafts(other) == []
