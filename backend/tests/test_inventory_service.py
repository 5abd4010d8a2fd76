# Overview: Pytest coverage for the guarded stock writes.

from decimal import Decimal

import pytest

from shoppos.errors import InsufficientStock, NotFound, ValidationError
from shoppos.extensions import db
from shoppos.services.inventory_service import (
    adjust_stock,
    aggregate_quantities,
    decrement_stock,
    get_stock_level,
    restore_stock,
)


class TestAggregateQuantities:

    def test_sums_duplicate_products(self):
        totals = aggregate_quantities([(1, Decimal("2")), (2, Decimal("1")), (1, Decimal("0.5"))])
        assert totals == {1: Decimal("2.50"), 2: Decimal("1.00")}


class TestGuardedWrites:

    def test_decrement_within_stock(self, shop, make_product):
        rice = make_product(shop, stock_qty="5")
        assert decrement_stock(rice, Decimal("3")) is True
        db.session.commit()
        assert get_stock_level(rice.id) == Decimal("2.00")

    def test_decrement_beyond_stock_writes_nothing(self, shop, make_product):
        rice = make_product(shop, name="Rice", stock_qty="2")
        with pytest.raises(InsufficientStock) as exc_info:
            decrement_stock(rice, Decimal("3"))
        db.session.rollback()

        assert exc_info.value.details["available_quantity"] == "2.00"
        assert get_stock_level(rice.id) == Decimal("2.00")

    def test_untracked_product_is_left_alone(self, shop, make_product):
        service = make_product(shop, name="Delivery", stock_qty="0", track_stock=False)
        assert decrement_stock(service, Decimal("4")) is False
        assert restore_stock(service, Decimal("4")) is False
        assert get_stock_level(service.id) == Decimal("0.00")


class TestAdjustStock:

    def test_receive_and_write_off(self, shop, make_product):
        rice = make_product(shop, stock_qty="1")
        adjust_stock(shop_id=shop.id, product_id=rice.id, delta="4")
        adjust_stock(shop_id=shop.id, product_id=rice.id, delta="-2")
        assert get_stock_level(rice.id) == Decimal("3.00")

    def test_write_off_cannot_go_negative(self, shop, make_product):
        rice = make_product(shop, stock_qty="1")
        with pytest.raises(InsufficientStock):
            adjust_stock(shop_id=shop.id, product_id=rice.id, delta="-2")
        assert get_stock_level(rice.id) == Decimal("1.00")

    def test_zero_delta_rejected(self, shop, make_product):
        rice = make_product(shop)
        with pytest.raises(ValidationError):
            adjust_stock(shop_id=shop.id, product_id=rice.id, delta="0")

    def test_other_shop_product_not_found(self, shop, other_shop, make_product):
        rice = make_product(other_shop)
        with pytest.raises(NotFound):
            adjust_stock(shop_id=shop.id, product_id=rice.id, delta="1")
