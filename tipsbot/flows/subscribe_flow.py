import logging

from ..models import Tier
from ..templates import t
from ..utils.ids import phone_for_identity

logger = logging.getLogger(__name__)


def handle(identity: str, tier: Tier, gateway) -> str:
    """
    Start an M-Pesa payment for `tier`. Entitlement only changes later, when
    the payment callback confirms it.
    """
    phone = phone_for_identity(identity)
    try:
        accepted = gateway.initiate(phone, tier)
    except Exception:
        logger.exception("[%s] payment initiation crashed", identity)
        accepted = False

    if not accepted:
        return t("subscribe_failed")
    return t("subscribe_initiated", tier=tier.value.upper())
