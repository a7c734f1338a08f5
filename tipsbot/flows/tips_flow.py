"""
Tips replies, gated by the derived tier.
The content generator is only called once the tier check has passed.
"""

from ..models import EntitlementRecord, Tier
from ..settings import settings
from ..templates import t


class TipsContent:
    """Slip content. Today: fixed templates; swap in a real generator here."""

    def free_tips(self) -> str:
        return t("free_tips")

    def paid_tips(self) -> str:
        return t("paid_tips")

    def premium_tips(self) -> str:
        return t("premium_tips")


def handle_free(content: TipsContent) -> str:
    return content.free_tips()


def handle_paid(record: EntitlementRecord, content: TipsContent) -> str:
    if record.tier.covers(Tier.NORMAL):
        return content.paid_tips()
    return t("paid_upsell", normal_price=settings.NORMAL_PRICE)


def handle_premium(record: EntitlementRecord, content: TipsContent) -> str:
    if record.tier.covers(Tier.PREMIUM):
        return content.premium_tips()
    return t("premium_upsell", premium_price=settings.PREMIUM_PRICE)
