"""
Subscriber entitlement state machine.

Effective tier is derived on every read from the grant dates:
Premium (unexpired premium grant) > Normal (unexpired normal grant) > Free.
Grants are never deleted; expiry is only how a grant is read.

Both entry points (chat webhook and payment callback) mutate records only
through EntitlementService, which holds the store's per-key lock for the
whole fetch-mutate-store sequence.
"""
import logging
from datetime import date, datetime
from typing import Callable, Optional

from ..models import EntitlementRecord, Grant, PAID_TIERS, Tier
from ..memory.entitlement_store import EntitlementStore
from ..utils import timez
from .expiry import is_expired

logger = logging.getLogger(__name__)


def _grant_date(grant: Optional[Grant]) -> Optional[date]:
    return grant.granted_on if grant is not None else None


def derive_effective_tier(record: EntitlementRecord, now: datetime,
                          window_days: Optional[int] = None) -> Tier:
    """Premium first, then Normal, else Free."""
    if not is_expired(_grant_date(record.premium), now, window_days):
        return Tier.PREMIUM
    if not is_expired(_grant_date(record.normal), now, window_days):
        return Tier.NORMAL
    return Tier.FREE


def _later(current: Optional[Grant], granted_on: date) -> Grant:
    """Grant dates only move forward: replays and late callbacks are no-ops."""
    if current is not None and current.granted_on >= granted_on:
        return current
    return Grant(granted_on=granted_on)


def apply_payment(record: EntitlementRecord, tier: Tier, granted_on: date) -> EntitlementRecord:
    """
    Pure transition for a confirmed payment.
    A Premium purchase refreshes Normal too.
    """
    if tier not in PAID_TIERS:
        raise ValueError(f"Tier {tier!r} cannot be purchased")

    updates = {"normal": _later(record.normal, granted_on)}
    if tier == Tier.PREMIUM:
        updates["premium"] = _later(record.premium, granted_on)
    return record.model_copy(update=updates)


class EntitlementService:
    """
    Applies transitions against the store.
    `clock` returns a timezone-aware datetime; injected in tests.
    """

    def __init__(self, store: EntitlementStore, clock: Callable[[], datetime] = timez.now,
                 window_days: Optional[int] = None):
        self.store = store
        self.clock = clock
        self.window_days = window_days

    def evaluate(self, identity: str, now: Optional[datetime] = None) -> EntitlementRecord:
        """Record with `tier` freshly derived. Valid for this request only."""
        now = now or self.clock()
        record = self.store.get(identity)
        return record.model_copy(update={"tier": derive_effective_tier(record, now, self.window_days)})

    def derive_tier(self, record: EntitlementRecord, now: Optional[datetime] = None) -> Tier:
        return derive_effective_tier(record, now or self.clock(), self.window_days)

    def on_payment_confirmed(self, identity: str, tier: Tier, granted_on: Optional[date] = None) -> EntitlementRecord:
        granted_on = granted_on or self.clock().date()
        with self.store.lock(identity):
            before = self.store.get(identity)
            after = apply_payment(before, tier, granted_on)
            if after.to_store() != before.to_store():
                self.store.put(identity, after)
                logger.info("[%s] %s grant on %s", identity, tier.value, granted_on.isoformat())
            else:
                logger.info("[%s] %s grant on %s already applied", identity, tier.value, granted_on.isoformat())
        return after

    def on_accept_rules(self, identity: str) -> EntitlementRecord:
        """One-way: once accepted, never reverts."""
        with self.store.lock(identity):
            record = self.store.get(identity)
            if record.rules_accepted:
                return record
            record = record.model_copy(update={"rules_accepted": True})
            self.store.put(identity, record)
        logger.info("[%s] accepted the rules", identity)
        return record
