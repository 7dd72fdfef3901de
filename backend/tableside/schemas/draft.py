"""Table draft schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class FlavorSelection(BaseModel):
    """One flavor of a custom split."""

    flavor_id: str
    percentage: float = Field(ge=0, le=100)


class AddItemRequest(BaseModel):
    """Add a menu item to a seat."""

    seat_id: int = 1
    menu_item_id: int
    quantity: int = Field(default=1, ge=1, le=100)
    notes: Optional[str] = Field(default=None, max_length=500)
    size_id: Optional[str] = None
    addon_ids: List[str] = []
    stuffed_crust_id: Optional[str] = None
    removed_ingredients: List[str] = []
    flavor_combination_id: Optional[str] = None
    flavors: List[FlavorSelection] = []


class AddSeatRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)


class RenameSeatRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)


class PaymentMethodRequest(BaseModel):
    payment_method: Literal["together", "separated"]


class SeatResponse(BaseModel):
    id: int
    name: Optional[str] = None
    items: List[dict] = []


class DraftResponse(BaseModel):
    """Table draft as shown to waiters."""

    table_id: int
    seats: List[SeatResponse]
    next_seat_id: int
    payment_method: str
    is_in_payment: bool
    last_activity: Optional[datetime] = None

    model_config = {"from_attributes": True}
