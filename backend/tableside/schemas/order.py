"""Kitchen order schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderResponse(BaseModel):
    """Kitchen order response schema."""

    id: str
    table_id: Optional[int] = None
    items: List[dict]
    total_amount: float
    status: str
    source: str
    is_delivery: bool = False
    delivery_address: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    assigned_driver_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StatusUpdate(BaseModel):
    status: str


class AssignDriverRequest(BaseModel):
    driver_id: str = Field(min_length=1)
    driver_name: str = Field(min_length=1, max_length=200)


class ConfirmDeliveryRequest(BaseModel):
    confirmation_code: str = Field(min_length=4, max_length=8)
