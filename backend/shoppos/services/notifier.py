"""
Post-commit event notification.

Services collect events while they work and publish them only after their
transaction commits. Delivery is best-effort: a subscriber that raises is
logged and skipped, and can never undo committed financial state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from flask import current_app


SALE_COMMITTED = "sale:committed"
SALE_VOIDED = "sale:voided"
SALE_RETURNED = "sale:returned"
CASH_UPDATED = "cash:updated"
STOCK_UPDATED = "stock:updated"
LEDGER_UPDATED = "ledger:updated"

EVENT_KINDS = (
    SALE_COMMITTED,
    SALE_VOIDED,
    SALE_RETURNED,
    CASH_UPDATED,
    STOCK_UPDATED,
    LEDGER_UPDATED,
)

Subscriber = Callable[[str, int, dict], Any]


class EventNotifier:
    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Subscriber:
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def notify(self, kind: str, shop_id: int, payload: dict | None = None) -> None:
        if kind not in EVENT_KINDS:
            raise ValueError(f"unknown event kind {kind!r}")
        for callback in list(self._subscribers):
            try:
                callback(kind, shop_id, dict(payload or {}))
            except Exception:
                current_app.logger.warning(
                    "Event subscriber failed for %s (shop %s)", kind, shop_id, exc_info=True,
                )


@dataclass
class PendingEvents:
    """Events recorded inside a unit of work, published after commit."""

    shop_id: int
    events: list[tuple[str, dict]] = field(default_factory=list)

    def add(self, kind: str, payload: dict | None = None) -> None:
        self.events.append((kind, payload or {}))


def get_notifier() -> EventNotifier:
    return current_app.extensions["shoppos"]["notifier"]


def publish_pending(pending: PendingEvents) -> None:
    """Fire-and-forget; never raises into the committed operation."""
    notifier = current_app.extensions.get("shoppos", {}).get("notifier")
    if notifier is None:
        current_app.logger.warning("No event notifier configured; dropping %s events", len(pending.events))
        return
    for kind, payload in pending.events:
        notifier.notify(kind, pending.shop_id, payload)


def log_event(kind: str, shop_id: int, payload: dict) -> None:
    """Default subscriber."""
    current_app.logger.debug("event %s shop=%s payload=%s", kind, shop_id, payload)
