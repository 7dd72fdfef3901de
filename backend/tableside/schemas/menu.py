"""Menu item schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class PricedOption(BaseModel):
    """Size, add-on, stuffed crust or flavor."""

    id: str
    name: str
    price: float = Field(default=0, ge=0)


class CombinationFlavor(BaseModel):
    flavor_id: str
    percentage: float = Field(ge=0, le=100)


class FlavorCombination(PricedOption):
    flavors: List[CombinationFlavor] = []

    @model_validator(mode="after")
    def check_percentages(self):
        if self.flavors and abs(sum(f.percentage for f in self.flavors) - 100) > 1e-9:
            raise ValueError("Flavor combination percentages must add up to 100")
        return self


class MenuItemBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = ""
    base_price: Decimal = Field(ge=0)
    promo_price: Optional[Decimal] = Field(default=None, ge=0)
    sizes: List[PricedOption] = []
    addons: List[PricedOption] = []
    stuffed_crust_options: List[PricedOption] = []
    allow_multiple_flavors: bool = False
    max_flavors: int = Field(default=4, ge=1, le=4)
    flavors: List[PricedOption] = []
    flavor_combinations: List[FlavorCombination] = []
    removable_ingredients: List[str] = []
    in_stock: bool = True


class MenuItemCreate(MenuItemBase):
    """Menu item creation schema."""


class MenuItemUpdate(BaseModel):
    """Partial menu item update."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    promo_price: Optional[Decimal] = Field(default=None, ge=0)
    sizes: Optional[List[PricedOption]] = None
    addons: Optional[List[PricedOption]] = None
    stuffed_crust_options: Optional[List[PricedOption]] = None
    allow_multiple_flavors: Optional[bool] = None
    max_flavors: Optional[int] = Field(default=None, ge=1, le=4)
    flavors: Optional[List[PricedOption]] = None
    flavor_combinations: Optional[List[FlavorCombination]] = None
    removable_ingredients: Optional[List[str]] = None
    in_stock: Optional[bool] = None


class MenuItemResponse(BaseModel):
    """Menu item response schema."""

    id: int
    name: str
    description: Optional[str] = None
    category: str = ""
    base_price: float
    promo_price: Optional[float] = None
    sizes: List[dict] = []
    addons: List[dict] = []
    stuffed_crust_options: List[dict] = []
    allow_multiple_flavors: bool = False
    max_flavors: int = 4
    flavors: List[dict] = []
    flavor_combinations: List[dict] = []
    removable_ingredients: List[str] = []
    in_stock: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
