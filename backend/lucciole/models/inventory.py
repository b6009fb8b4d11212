from __future__ import annotations

from datetime import date, timedelta

from ..extensions import db
from ..catalog import MENU_ITEM, FRACTIONAL_UNITS
from lucciole.time_utils import to_utc_z

EXPIRY_WARNING_DAYS = 10

KIND_STOCK = "stock"
KIND_MENU_DIRECT = "menu_direct"
KIND_MENU_DISH = "menu_dish"

MENU_TYPE_DIRECT = "direct"
MENU_TYPE_DISH = "dish"


class Item(db.Model):
    """
    One inventory or menu record.

    VARIANTS (single-table inheritance, discriminated by `kind`):
    - StockItem: warehouse stock in one department, quantity tracked
    - MenuDirectItem: sellable entry tied 1:1 to a StockItem via linked_product_id
    - MenuDishItem: sellable entry with no live stock, only a food-cost estimate

    QUANTITY:
    Never negative. Only changed through relative UPDATEs issued by
    inventory_service (quantity = quantity + delta), never by writing a value
    computed from a possibly stale in-memory copy.

    NAME MATCHING:
    Merge and search compare trim().lower() of name; category must match exactly.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.Index("ix_inventory_category_name", "category", "name"),
        db.Index("ix_inventory_archived", "is_archived"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    subcategory = db.Column(db.String(120), nullable=True)

    quantity = db.Column(db.Float, nullable=False, default=0.0)

    # Visible and editable only by manager-level roles
    cost_price = db.Column(db.Float, nullable=True)
    sell_price = db.Column(db.Float, nullable=True)

    is_archived = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"polymorphic_on": kind}

    @property
    def is_menu(self) -> bool:
        return self.category == MENU_ITEM

    @property
    def tracks_quantity(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} name={self.name!r} category={self.category!r}>"

    def to_dict(self, *, include_prices: bool = False) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "category": self.category,
            "subcategory": self.subcategory,
            "quantity": self.quantity,
            "is_archived": self.is_archived,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_prices:
            data["cost_price"] = self.cost_price
            data["sell_price"] = self.sell_price
        return data


class StockItem(Item):
    """Warehouse stock, one department per record."""

    min_threshold = db.Column(db.Float, nullable=True, default=0.0)
    unit = db.Column(db.String(16), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    # Container volume and single-serving volume; both > 0 enables pouring
    capacity = db.Column(db.Float, nullable=True)
    dose = db.Column(db.Float, nullable=True)

    __mapper_args__ = {"polymorphic_identity": KIND_STOCK}

    @property
    def is_low_stock(self) -> bool:
        return (self.quantity or 0) <= (self.min_threshold or 0)

    def is_expiring_soon(self, today: date | None = None) -> bool:
        if self.expiry_date is None:
            return False
        today = today or date.today()
        return self.expiry_date <= today + timedelta(days=EXPIRY_WARNING_DAYS)

    @property
    def can_pour(self) -> bool:
        return bool(self.capacity and self.capacity > 0 and self.dose and self.dose > 0)

    @property
    def pour_fraction(self) -> float | None:
        if not self.can_pour:
            return None
        return self.dose / self.capacity

    @property
    def adjustment_step(self) -> float:
        if self.unit in FRACTIONAL_UNITS or self.capacity or self.dose:
            return 0.1
        return 1.0

    def to_dict(self, *, include_prices: bool = False, today: date | None = None) -> dict:
        data = super().to_dict(include_prices=include_prices)
        data.update({
            "min_threshold": self.min_threshold,
            "unit": self.unit,
            "supplier": self.supplier,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "capacity": self.capacity,
            "dose": self.dose,
            "adjustment_step": self.adjustment_step,
            "is_low_stock": self.is_low_stock,
            "is_expiring_soon": self.is_expiring_soon(today),
        })
        return data


class MenuDirectItem(Item):
    """
    Menu entry sold 1:1 from a warehouse item (a canned drink, a bottled water).

    linked_product_id is a soft reference: no foreign key, resolved at sale time.
    """

    linked_product_id = db.Column(db.Integer, nullable=True, index=True)

    __mapper_args__ = {"polymorphic_identity": KIND_MENU_DIRECT}

    menu_type = MENU_TYPE_DIRECT

    def to_dict(self, *, include_prices: bool = False, **_) -> dict:
        data = super().to_dict(include_prices=include_prices)
        data["menu_type"] = self.menu_type
        data["linked_product_id"] = self.linked_product_id
        return data


class MenuDishItem(Item):
    """Menu entry without live stock; cost_price is the food-cost estimate."""

    __mapper_args__ = {"polymorphic_identity": KIND_MENU_DISH}

    menu_type = MENU_TYPE_DISH

    @property
    def tracks_quantity(self) -> bool:
        return False

    def to_dict(self, *, include_prices: bool = False, **_) -> dict:
        data = super().to_dict(include_prices=include_prices)
        data["menu_type"] = self.menu_type
        return data
