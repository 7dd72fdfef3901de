"""Bill schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class BillResponse(BaseModel):
    """Stored bill."""

    id: str
    table_id: int
    items: List[dict]
    order_ids: List[str]
    seat_names: Dict[str, Optional[str]] = {}
    total_amount: float
    payment_method: str
    source: str
    status: str
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CloseBillRequest(BaseModel):
    table_id: int
