"""
Pydantic v2 models for subscriber entitlements and payment events.
"""
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Tier(str, Enum):
    """Entitlement level. Ordered FREE < NORMAL < PREMIUM."""
    FREE = "free"
    NORMAL = "normal"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def covers(self, other: "Tier") -> bool:
        """True if this tier grants at least the benefits of `other`."""
        return self.rank >= other.rank


_RANKS = {Tier.FREE: 0, Tier.NORMAL: 1, Tier.PREMIUM: 2}

# tiers that can be bought
PAID_TIERS = (Tier.NORMAL, Tier.PREMIUM)


class Grant(BaseModel):
    """A purchase of a tier, starting a 7-day window on `granted_on`."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # on disk as "purchaseDate" (same layout as the first users.json)
    granted_on: date = Field(alias="purchaseDate")


class EntitlementRecord(BaseModel):
    """
    Per-subscriber state.

    `tier` is only a snapshot stamped by the state machine for the current
    request; it is excluded from serialization and always re-derived from
    the grant dates.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tier: Tier = Field(default=Tier.FREE, exclude=True)
    normal: Optional[Grant] = None
    premium: Optional[Grant] = None
    rules_accepted: bool = Field(default=False, alias="rulesAccepted")

    def to_store(self) -> dict:
        """Serialize to the persisted JSON layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_store(cls, data: dict) -> "EntitlementRecord":
        return cls.model_validate(data or {})


class PaymentEvent(BaseModel):
    """Confirmed payment parsed from a provider callback. Never persisted."""
    subscriber_phone: str
    tier: Tier
    amount: Optional[float] = None
    confirmed_on: date
    receipt: Optional[str] = None
