"""Online checkout schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from tableside.schemas.draft import FlavorSelection


class CartEntry(BaseModel):
    menu_item_id: int
    quantity: int = Field(default=1, ge=1, le=100)
    notes: Optional[str] = None
    size_id: Optional[str] = None
    addon_ids: List[str] = []
    stuffed_crust_id: Optional[str] = None
    removed_ingredients: List[str] = []
    flavor_combination_id: Optional[str] = None
    flavors: List[FlavorSelection] = []


class CheckoutRequest(BaseModel):
    """Customer cart sent from the public menu."""

    tenant_id: str = Field(min_length=1)
    cart: List[CartEntry] = Field(min_length=1)
    is_delivery: bool = False
    delivery_address: Optional[str] = Field(default=None, max_length=500)
    success_url: str
    cancel_url: str

    @model_validator(mode="after")
    def require_address_for_delivery(self):
        if self.is_delivery and not (self.delivery_address or "").strip():
            raise ValueError("delivery_address is required for delivery orders")
        return self


class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None
