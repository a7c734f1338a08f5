"""
M-Pesa Daraja client (PaymentGateway).

initiate(phone, tier) asks Safaricom to push a payment prompt (STK push) to
the subscriber's phone. The result of the payment itself arrives later, on
the /mpesa-callback endpoint.
"""
import base64
import logging
from datetime import datetime
from typing import Optional

import requests

from ..models import PAID_TIERS, Tier
from ..settings import settings
from ..utils import timez
from ..utils.errors import RetryExhaustedError, UpstreamProviderFailure
from .retry import retry

logger = logging.getLogger(__name__)


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """Password = base64(shortcode + passkey + timestamp)."""
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


def stk_timestamp(now: Optional[datetime] = None) -> str:
    return (now or timez.now()).strftime("%Y%m%d%H%M%S")


class MpesaGateway:
    """PaymentGateway over the Daraja REST API."""

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    # ----------------- intern -----------------

    @retry(exceptions=(requests.RequestException,), tries=3, delay=0.5, backoff=2.0)
    def _access_token(self) -> str:
        """OAuth client_credentials token. Idempotent, so it is retried."""
        res = self.session.get(
            f"{settings.MPESA_BASE_URL}/oauth/v1/generate",
            params={"grant_type": "client_credentials"},
            auth=(settings.MPESA_CONSUMER_KEY or "", settings.MPESA_CONSUMER_SECRET or ""),
            timeout=settings.MPESA_TIMEOUT_SECONDS,
        )
        res.raise_for_status()
        token = (res.json() or {}).get("access_token")
        if not token:
            raise requests.RequestException("Token response without access_token")
        return token

    def _stk_push(self, phone: str, tier: Tier) -> dict:
        try:
            token = self._access_token()
        except RetryExhaustedError as e:
            raise UpstreamProviderFailure(f"M-Pesa token: {e.__cause__ or e}") from e

        shortcode = settings.MPESA_SHORTCODE
        timestamp = stk_timestamp()
        payload = {
            "BusinessShortCode": shortcode,
            "Password": stk_password(shortcode, settings.MPESA_PASSKEY, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": settings.price_for(tier),
            "PartyA": phone,
            "PartyB": shortcode,
            "PhoneNumber": phone,
            "CallBackURL": settings.MPESA_CALLBACK_URL,
            "AccountReference": tier.value,
            "TransactionDesc": f"{tier.value} Subscription",
        }
        try:
            res = self.session.post(
                f"{settings.MPESA_BASE_URL}/mpesa/stkpush/v1/processrequest",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
                timeout=settings.MPESA_TIMEOUT_SECONDS,
            )
            res.raise_for_status()
            return res.json() or {}
        except (requests.RequestException, ValueError) as e:
            raise UpstreamProviderFailure(f"M-Pesa STK push: {e}") from e

    # ----------------- API public -----------------

    def initiate(self, phone: str, tier: Tier) -> bool:
        """True if Safaricom accepted the STK push request."""
        if tier not in PAID_TIERS:
            raise ValueError(f"Tier {tier!r} cannot be purchased")
        try:
            data = self._stk_push(phone, tier)
        except UpstreamProviderFailure as e:
            logger.error("M-Pesa Error: %s", e)
            return False

        # Daraja answers ResponseCode "0" when the request was accepted
        code = str(data.get("ResponseCode", "0"))
        if code != "0":
            logger.error("M-Pesa rejected STK push for %s: %s", phone, data.get("ResponseDescription"))
            return False
        logger.info("STK push sent to %s for %s (%s)", phone, tier.value, data.get("CheckoutRequestID"))
        return True
