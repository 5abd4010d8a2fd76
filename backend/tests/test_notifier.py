# Overview: Pytest coverage for post-commit event delivery.

from decimal import Decimal

import pytest

from shoppos.models import Sale
from shoppos.services import sales_service
from shoppos.services.inventory_service import get_stock_level
from shoppos.services.notifier import EventNotifier, PendingEvents, get_notifier, publish_pending


class TestEventNotifier:

    def test_subscribers_receive_events(self, app):
        notifier = EventNotifier()
        seen = []
        notifier.subscribe(lambda kind, shop_id, payload: seen.append((kind, shop_id, payload)))

        notifier.notify("sale:committed", 1, {"saleId": 7})

        assert seen == [("sale:committed", 1, {"saleId": 7})]

    def test_unknown_kind_is_rejected(self, app):
        with pytest.raises(ValueError):
            EventNotifier().notify("sale:exploded", 1, {})

    def test_failing_subscriber_does_not_stop_others(self, app):
        notifier = EventNotifier()
        seen = []

        def broken(kind, shop_id, payload):
            raise RuntimeError("socket closed")

        notifier.subscribe(broken)
        notifier.subscribe(lambda kind, shop_id, payload: seen.append(kind))
        notifier.notify("stock:updated", 1, {})

        assert seen == ["stock:updated"]

    def test_pending_events_publish_in_order(self, app, events):
        pending = PendingEvents(shop_id=3)
        pending.add("cash:updated", {"amount": "1.00"})
        pending.add("ledger:updated")
        publish_pending(pending)
        assert events == [("cash:updated", 3, {"amount": "1.00"}), ("ledger:updated", 3, {})]


class TestCommittedStateSurvivesNotifier:

    def test_broken_subscriber_after_commit(self, db_session, shop, make_product, cart_line):
        """A subscriber failure is logged; the sale stays committed."""
        rice = make_product(shop, stock_qty="5")

        def broken(kind, shop_id, payload):
            raise RuntimeError("push service down")

        notifier = get_notifier()
        notifier.subscribe(broken)
        try:
            sale = sales_service.create_sale(shop_id=shop.id, items=[cart_line(rice, 1)])
        finally:
            notifier.unsubscribe(broken)

        assert db_session.get(Sale, sale.id) is not None
        assert get_stock_level(rice.id) == Decimal("4.00")
