"""Domain error taxonomy.

Services raise these; ``tableside.main`` maps them to JSON responses of the
form ``{"detail": <message>, "code": <class name>}`` so every failed action
reaches the client as a distinguishable outcome.
"""

from typing import Optional


class TablesideError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__

    def default_message(self) -> str:
        return "Operation failed"


# ============== Validation rejections ==============
# Nothing was written; safe to retry once the precondition holds.

class Rejection(TablesideError):
    status_code = 409


class NothingToSubmit(Rejection):
    def default_message(self) -> str:
        return "No new items to send to the kitchen"


class UnsentItemsExist(Rejection):
    def default_message(self) -> str:
        return "There are items that have not been sent to the kitchen yet"


class UndeliveredOrdersExist(Rejection):
    def __init__(self, statuses: Optional[list] = None):
        self.statuses = sorted(set(statuses or []))
        detail = "All kitchen orders must be delivered before the bill can be prepared"
        if self.statuses:
            detail = f"{detail} (still {', '.join(self.statuses)})"
        super().__init__(detail)


class EmptyTable(Rejection):
    def default_message(self) -> str:
        return "Cannot create a bill for an empty table"


class TableInPayment(Rejection):
    def __init__(self, table_id: int):
        self.table_id = table_id
        super().__init__(f"Table {table_id} is waiting for payment")


class TableNotInPayment(Rejection):
    def __init__(self, table_id: int):
        self.table_id = table_id
        super().__init__(f"Table {table_id} has no payment in progress")


class ItemAlreadySubmitted(Rejection):
    def default_message(self) -> str:
        return "Item was already sent to the kitchen and can no longer be changed"


class InvalidTransition(Rejection):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")


class BillAlreadyClosed(Rejection):
    def default_message(self) -> str:
        return "Bill is already closed"


class BillTableMismatch(Rejection):
    def __init__(self, bill_id: str, table_id: int):
        super().__init__(f"Bill {bill_id} does not belong to table {table_id}")


class DriverNotAssigned(Rejection):
    status_code = 403

    def default_message(self) -> str:
        return "You are not the driver assigned to this order"


class InputRejection(Rejection):
    status_code = 422


class InvalidFlavorSplit(InputRejection):
    def default_message(self) -> str:
        return "Flavor percentages must add up to 100"


class InvalidOption(InputRejection):
    pass


class InvalidConfirmationCode(InputRejection):
    def default_message(self) -> str:
        return "Invalid confirmation code"


# ============== Unknown references ==============

class NotFound(TablesideError):
    status_code = 404


class DraftNotFound(NotFound):
    def __init__(self, table_id: int):
        super().__init__(f"Table {table_id} has no open draft")


class SeatNotFound(NotFound):
    def __init__(self, seat_id: int):
        super().__init__(f"Seat {seat_id} not found")


class ItemNotFound(NotFound):
    def __init__(self, seat_id: int, index: int):
        super().__init__(f"Seat {seat_id} has no item at position {index}")


class MenuItemNotFound(NotFound):
    def __init__(self, menu_item_id):
        super().__init__(f"Menu item {menu_item_id} not found")


class OrderNotFound(NotFound):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")


class BillNotFound(NotFound):
    def __init__(self, bill_id: str):
        super().__init__(f"Bill {bill_id} not found")


# ============== Write failures ==============
# The actor has to retry the whole action.

class StoreWriteFailed(TablesideError):
    status_code = 503

    def default_message(self) -> str:
        return "Could not save changes, please try again"


class CloseOutFailed(StoreWriteFailed):
    def __init__(self, bill_id: str, reason: str):
        self.bill_id = bill_id
        super().__init__(f"Failed to close bill {bill_id}: {reason}")


class PaymentProviderError(TablesideError):
    status_code = 502


class InvalidWebhook(TablesideError):
    status_code = 400
