"""
Subscriber identities.
Twilio delivers `From` as `whatsapp:+2547...`, M-Pesa delivers the payer as
`2547...`. Both must land on the same store key.
"""

import re
from typing import Optional

CHANNEL_PREFIX = "whatsapp:"

_NON_DIGITS = re.compile(r"\D+")


def identity_for_phone(phone) -> Optional[str]:
    """
    Build the store key for an M-Pesa phone number (int or str).
    Returns None when there are no digits at all.
    """
    digits = _NON_DIGITS.sub("", str(phone or ""))
    if not digits:
        return None
    return f"{CHANNEL_PREFIX}+{digits}"


def phone_for_identity(identity: str) -> str:
    """`whatsapp:+254700000000` -> `254700000000` (format expected by STK push)."""
    return _NON_DIGITS.sub("", (identity or "").replace(CHANNEL_PREFIX, ""))
