"""Menu item model: the source of option prices at the moment an item is added."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Boolean, Text, JSON
from sqlalchemy.orm import validates

from tableside.db.base import Base
from tableside.models.validators import non_negative, validate_list


class MenuItem(Base):
    """Menu item for ordering."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, default="")

    base_price = Column(Numeric(10, 2), nullable=False)
    promo_price = Column(Numeric(10, 2), nullable=True)

    # Option lists, each entry {"id", "name", "price"}
    sizes = Column(JSON, nullable=False, default=list)
    addons = Column(JSON, nullable=False, default=list)
    stuffed_crust_options = Column(JSON, nullable=False, default=list)

    allow_multiple_flavors = Column(Boolean, default=False)
    max_flavors = Column(Integer, default=4)
    flavors = Column(JSON, nullable=False, default=list)  # price = additional price
    flavor_combinations = Column(JSON, nullable=False, default=list)  # {"id", "name", "price", "flavors"}

    removable_ingredients = Column(JSON, nullable=False, default=list)
    in_stock = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @validates('base_price', 'promo_price')
    def _validate_price(self, key, value):
        return non_negative(key, value)

    @validates('sizes', 'addons', 'stuffed_crust_options', 'flavors',
               'flavor_combinations', 'removable_ingredients')
    def _validate_lists(self, key, value):
        return validate_list(key, value)

    def find_option(self, group: str, option_id: str):
        """Return the option dict with ``option_id`` from an option list, or None."""
        for option in getattr(self, group) or []:
            if str(option.get("id")) == str(option_id):
                return option
        return None
