"""
M-Pesa payment callbacks.

Payload (STK push result):
    {"Body": {"stkCallback": {
        "ResultCode": 0,
        "AccountReference": "premium",
        "CallbackMetadata": {"Item": [
            {"Name": "Amount", "Value": 300},
            {"Name": "MpesaReceiptNumber", "Value": "QJ12ABC"},
            {"Name": "PhoneNumber", "Value": 254700000000}]}}}}

Callbacks arrive at least once, in any order, possibly long after the chat
message that started them. Anything we cannot use is logged and
acknowledged; nothing here may fail the HTTP transaction.
"""
import logging
import threading
import time
from datetime import date
from typing import Any, Callable, Dict, Optional

from ..models import PaymentEvent, Tier
from ..templates import t
from ..utils import timez
from ..utils.errors import MalformedCallback, StoreUnavailable
from ..utils.ids import identity_for_phone

logger = logging.getLogger(__name__)

# account reference -> tier; case-sensitive per the gateway contract
ACCOUNT_TIERS = {"normal": Tier.NORMAL, "premium": Tier.PREMIUM}

RECEIPT_TTL_SEC = 24 * 3600


def _items(stk: Dict[str, Any]) -> Dict[str, Any]:
    metadata = stk.get("CallbackMetadata") or {}
    items = metadata.get("Item") if isinstance(metadata, dict) else None
    if not isinstance(items, list) or not items:
        raise MalformedCallback("no CallbackMetadata.Item")
    found = {}
    for item in items:
        if isinstance(item, dict) and item.get("Name"):
            found[item["Name"]] = item.get("Value")
    return found


def parse_callback(payload: Any, confirmed_on: date) -> PaymentEvent:
    """Extract a PaymentEvent or raise MalformedCallback."""
    if not isinstance(payload, dict):
        raise MalformedCallback("payload is not a JSON object")
    body = payload.get("Body")
    stk = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk, dict):
        raise MalformedCallback("no Body.stkCallback")

    result_code = stk.get("ResultCode", 0)
    if str(result_code) != "0":
        raise MalformedCallback(f"payment not completed (ResultCode={result_code}: {stk.get('ResultDesc')})")

    items = _items(stk)
    phone = items.get("PhoneNumber")
    if phone in (None, ""):
        raise MalformedCallback("no PhoneNumber")

    account = stk.get("AccountReference") or items.get("AccountReference")
    tier = ACCOUNT_TIERS.get(account) if isinstance(account, str) else None
    if tier is None:
        raise MalformedCallback(f"unknown account reference {account!r}")

    receipt = items.get("MpesaReceiptNumber")
    receipt = str(receipt) if receipt not in (None, "") else None

    amount = items.get("Amount")
    try:
        amount = float(amount) if amount is not None else None
    except (TypeError, ValueError):
        amount = None

    return PaymentEvent(
        subscriber_phone=str(phone),
        tier=tier,
        amount=amount,
        confirmed_on=confirmed_on,
        receipt=receipt,
    )


class PaymentCallbackHandler:
    """Feeds confirmed payments into the state machine, exactly-once in effect."""

    def __init__(self, service, channel=None, admin_number: Optional[str] = None,
                 today: Callable[[], date] = timez.today):
        self.service = service
        self.channel = channel
        self.admin_number = admin_number
        self.today = today
        self._seen_receipts: Dict[str, float] = {}
        self._seen_lock = threading.Lock()

    def _first_delivery(self, receipt: Optional[str]) -> bool:
        """False if this receipt was already processed recently."""
        if not receipt:
            return True
        now = time.time()
        with self._seen_lock:
            for k, ts in list(self._seen_receipts.items()):
                if now - ts > RECEIPT_TTL_SEC:
                    self._seen_receipts.pop(k, None)
            if receipt in self._seen_receipts:
                return False
            self._seen_receipts[receipt] = now
            return True

    def _notify_admin(self, event: PaymentEvent) -> None:
        if not (self.channel and self.admin_number):
            return
        amount = event.amount if event.amount is not None else "?"
        if isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        body = t("admin_payment", phone=event.subscriber_phone, amount=amount, tier=event.tier.value)
        try:
            self.channel.send(self.admin_number, body)
        except Exception:
            logger.exception("Admin notification failed")

    def handle(self, payload: Any) -> Optional[PaymentEvent]:
        """
        Apply a callback. Returns the event if it was applied, None if the
        callback was ignored. Raises only StoreUnavailable.
        """
        try:
            event = parse_callback(payload, self.today())
        except MalformedCallback as e:
            logger.info("Ignoring payment callback: %s", e)
            return None

        identity = identity_for_phone(event.subscriber_phone)
        if identity is None:
            logger.info("Ignoring payment callback: unusable phone %r", event.subscriber_phone)
            return None

        try:
            self.service.on_payment_confirmed(identity, event.tier, event.confirmed_on)
        except StoreUnavailable:
            logger.exception("[%s] payment %s could not be stored", identity, event.receipt)
            raise

        if self._first_delivery(event.receipt):
            self._notify_admin(event)
        else:
            logger.info("[%s] replayed callback for receipt %s", identity, event.receipt)
        return event
