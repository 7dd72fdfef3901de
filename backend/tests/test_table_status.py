"""Tests for table status projection."""

import itertools

from tableside.models.kitchen_order import KitchenOrder, OrderStatus
from tableside.models.table_draft import TableDraft
from tableside.services.table_status import (
    TableStatus,
    project_status,
    status_counts,
    summarize,
    tables_with_notifications,
)

S = OrderStatus


def _draft(unsent=0, sent=0, in_payment=False) -> TableDraft:
    items = [{"name": "Soda", "quantity": 1, "submitted": False} for _ in range(unsent)]
    items += [{"name": "Pizza", "quantity": 1, "submitted": True} for _ in range(sent)]
    return TableDraft(
        id="t_1", tenant_id="t", table_id=1,
        seats=[{"id": 1, "name": None, "items": items}],
        next_seat_id=2, payment_method="together", is_in_payment=in_payment,
    )


def _order(status: OrderStatus) -> KitchenOrder:
    return KitchenOrder(tenant_id="t", table_id=1, items=[], status=status.value, source="waiter")


class TestProjectStatus:

    def test_free_without_draft_or_orders(self):
        assert project_status(None, []) == TableStatus.FREE
        assert project_status(_draft(), []) == TableStatus.FREE

    def test_unsent(self):
        assert project_status(_draft(unsent=1), []) == TableStatus.UNSENT

    def test_pending(self):
        assert project_status(_draft(sent=1), [_order(S.IN_PROGRESS)]) == TableStatus.PENDING

    def test_ready_beats_unsent(self):
        status = project_status(_draft(unsent=2), [_order(S.READY_TO_SERVE), _order(S.IN_PROGRESS)])
        assert status == TableStatus.READY_TO_SERVE

    def test_unsent_beats_pending(self):
        assert project_status(_draft(unsent=1), [_order(S.IN_PROGRESS)]) == TableStatus.UNSENT

    def test_active_when_only_delivered_orders(self):
        assert project_status(_draft(sent=1), [_order(S.DELIVERED)]) == TableStatus.ACTIVE

    def test_active_while_in_payment(self):
        assert project_status(_draft(in_payment=True), []) == TableStatus.ACTIVE

    def test_terminal_orders_are_ignored(self):
        orders = [_order(S.COMPLETED), _order(S.CANCELED), _order(S.RETURNED)]
        assert project_status(None, orders) == TableStatus.FREE

    def test_priority_over_all_combinations(self):
        open_statuses = [S.IN_PROGRESS, S.READY_TO_SERVE, S.DELIVERED]
        for unsent, combo in itertools.product(
            (0, 1), itertools.chain.from_iterable(
                itertools.combinations(open_statuses, n) for n in range(4)
            )
        ):
            orders = [_order(s) for s in combo]
            draft = _draft(unsent=unsent, sent=1)
            if S.READY_TO_SERVE in combo:
                expected = TableStatus.READY_TO_SERVE
            elif unsent:
                expected = TableStatus.UNSENT
            elif S.IN_PROGRESS in combo:
                expected = TableStatus.PENDING
            else:
                expected = TableStatus.ACTIVE
            assert project_status(draft, orders) == expected, (unsent, combo)


class TestSummaries:

    def test_summary_counts(self):
        orders = [_order(S.IN_PROGRESS), _order(S.READY_TO_SERVE), _order(S.DELIVERED)]
        summary = summarize(1, _draft(unsent=2, sent=1), orders)

        assert summary.status == TableStatus.READY_TO_SERVE
        assert summary.unsent_items_count == 2
        assert summary.has_pending_orders is True
        assert summary.has_ready_orders is True
        assert summary.has_delivered_orders is True
        assert summary.active_orders_count == 2
        assert summary.to_dict()["status"] == "ready-to-serve"

    def test_floor_counts_and_notifications(self):
        summaries = [
            summarize(1, None, []),
            summarize(2, _draft(unsent=1), []),
            summarize(3, None, [_order(S.READY_TO_SERVE)]),
            summarize(4, None, [_order(S.READY_TO_SERVE)]),
        ]
        counts = status_counts(summaries)
        assert counts["free"] == 1
        assert counts["unsent"] == 1
        assert counts["ready-to-serve"] == 2
        assert counts["pending"] == 0
        assert tables_with_notifications(summaries) == [3, 4]
