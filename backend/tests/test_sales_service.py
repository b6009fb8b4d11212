"""
Menu sale tests.

The sale entry is always written; the linked warehouse decrement is best effort.
"""

import pytest

from lucciole.extensions import db
from lucciole.models import LogEntry, StockItem
from lucciole.catalog import ROLE_STAFF_BAR, ROLE_MANAGER, SALE_TAG
from lucciole.services import inventory_service, sales_service
from lucciole.services.sales_service import SaleError, LinkResolutionFailure
from lucciole.services.concurrency import WriteFailure
from lucciole.services.inventory_service import DeltaResult
from lucciole.services.reporting_service import sales_report
from lucciole.time_utils import business_today
from lucciole.validation import ConflictError


@pytest.fixture
def canned_coke(db_session):
    stock = inventory_service.add_item_or_merge(
        {"name": "Coca Cola lattina", "category": "Bar", "quantity": 5, "unit": "Pz"},
        user_role=ROLE_MANAGER,
    ).item
    menu = inventory_service.create_menu_item({
        "menu_type": "direct",
        "name": "Canned Coke",
        "sell_price": 3.5,
        "cost_price": 0.8,
        "linked_product_id": stock.id,
    })
    return stock, menu


def _sales(name):
    return (
        db.session.query(LogEntry)
        .filter(LogEntry.item_name == name, LogEntry.category == SALE_TAG)
        .all()
    )


class TestDirectSales:

    def test_sale_logs_revenue_and_decrements_link(self, canned_coke):
        stock, menu = canned_coke

        result = sales_service.sell_menu_item(menu.id, user_role=ROLE_STAFF_BAR)

        assert result.stock_decremented is True
        assert result.warehouse_item.quantity == 4
        assert result.sale_entry.category == SALE_TAG
        assert result.sale_entry.quantity_change == -1
        assert result.sale_entry.revenue == 3.5
        assert result.sale_entry.cost == 0.8
        assert result.sale_entry.user_role == ROLE_STAFF_BAR

    def test_sixth_sale_still_recorded_and_stock_stays_at_zero(self, canned_coke):
        stock, menu = canned_coke

        for _ in range(5):
            sales_service.sell_menu_item(menu.id)
        assert db.session.get(StockItem, stock.id).quantity == 0

        result = sales_service.sell_menu_item(menu.id)

        assert len(_sales("Canned Coke")) == 6
        assert db.session.get(StockItem, stock.id).quantity == 0
        assert result.stock_decremented is True

    def test_decrement_is_one_unit_even_for_fractional_stock(self, db_session):
        stock = inventory_service.add_item_or_merge(
            {"name": "Vino sfuso", "category": "Bar", "quantity": 3, "unit": "Lt"}
        ).item
        menu = inventory_service.create_menu_item(
            {"menu_type": "direct", "name": "Caraffa", "sell_price": 10, "linked_product_id": stock.id}
        )

        sales_service.sell_menu_item(menu.id)

        assert db.session.get(StockItem, stock.id).quantity == 2

    def test_deleted_link_keeps_the_sale(self, canned_coke):
        stock, menu = canned_coke
        inventory_service.delete_item(stock.id)

        result = sales_service.sell_menu_item(menu.id)

        assert result.stock_decremented is False
        assert result.warehouse_item is None
        assert len(_sales("Canned Coke")) == 1

    def test_archived_link_still_decrements(self, canned_coke):
        stock, menu = canned_coke
        inventory_service.set_archived(stock.id, True)

        result = sales_service.sell_menu_item(menu.id)

        assert result.stock_decremented is True
        assert db.session.get(StockItem, stock.id).quantity == 4

    def test_failed_decrement_keeps_the_sale(self, canned_coke, monkeypatch):
        stock, menu = canned_coke

        def failing_delta(*args, **kwargs):
            raise WriteFailure("Could not update the quantity")

        monkeypatch.setattr(sales_service, "apply_delta", failing_delta)

        result = sales_service.sell_menu_item(menu.id)

        assert result.stock_decremented is False
        assert result.sale_entry.revenue == 3.5
        assert len(_sales("Canned Coke")) == 1
        assert db.session.get(StockItem, stock.id).quantity == 5

    def test_decrement_matching_no_row_is_not_reported(self, canned_coke, monkeypatch):
        stock, menu = canned_coke
        monkeypatch.setattr(
            sales_service,
            "apply_delta",
            lambda *args, **kwargs: DeltaResult(item=None, log_entry=None, clamped=False),
        )

        result = sales_service.sell_menu_item(menu.id)

        assert result.stock_decremented is False
        assert len(_sales("Canned Coke")) == 1

    def test_sale_shows_up_in_cached_report(self, canned_coke):
        stock, menu = canned_coke
        today = business_today("UTC")

        before = sales_report(start=today, end=today)
        sales_service.sell_menu_item(menu.id)
        after = sales_report(start=today, end=today)

        assert before["totals"]["revenue"] == 0
        assert after["totals"]["revenue"] == 3.5

    def test_unlinked_direct_item_only_logs(self, db_session):
        menu = inventory_service.create_menu_item({"menu_type": "direct", "name": "Acqua 50cl", "sell_price": 1.5})

        result = sales_service.sell_menu_item(menu.id)

        assert result.stock_decremented is False
        assert len(_sales("Acqua 50cl")) == 1


class TestDishSales:

    def test_dish_sale_has_no_stock_effect(self, db_session):
        dish = inventory_service.create_menu_item(
            {"menu_type": "dish", "name": "Lasagna", "sell_price": 14, "cost_price": 4.2}
        )

        result = sales_service.sell_menu_item(dish.id)

        assert result.stock_decremented is False
        assert result.sale_entry.revenue == 14
        assert db_session.query(StockItem).count() == 0

    def test_missing_prices_count_as_zero(self, db_session):
        dish = inventory_service.create_menu_item({"menu_type": "dish", "name": "Fuori menu"})
        result = sales_service.sell_menu_item(dish.id)
        assert result.sale_entry.revenue == 0
        assert result.sale_entry.cost == 0


class TestSaleErrors:

    def test_selling_warehouse_item_is_refused(self, canned_coke):
        stock, _ = canned_coke
        with pytest.raises(SaleError):
            sales_service.sell_menu_item(stock.id)

    def test_unknown_menu_item(self, db_session):
        with pytest.raises(SaleError):
            sales_service.sell_menu_item(424242)

    def test_link_to_menu_item_does_not_resolve(self, db_session):
        dish = inventory_service.create_menu_item({"menu_type": "dish", "name": "Panino"})
        direct = inventory_service.create_menu_item({"menu_type": "direct", "name": "Panino da asporto"})
        direct.linked_product_id = dish.id
        db_session.commit()

        with pytest.raises(LinkResolutionFailure):
            sales_service.resolve_linked_item(direct)

    def test_create_with_unknown_link_is_conflict(self, db_session):
        with pytest.raises(ConflictError):
            inventory_service.create_menu_item(
                {"menu_type": "direct", "name": "Fantasma", "linked_product_id": 999}
            )
