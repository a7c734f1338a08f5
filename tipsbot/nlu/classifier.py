"""
Rules-based classifier for the fixed command grammar.
Exact commands first, then the `subscribe` family, else Fallback.
"""

from ..app.intents import Intents

ACCEPT_COMMAND = "accept"

EXACT_COMMANDS = {
    ACCEPT_COMMAND: Intents.ACCEPT_RULES,
    "todays safe tips": Intents.QUERY_FREE_TIPS,
    "todays paid tips": Intents.QUERY_PAID_TIPS,
    "todays premium tips": Intents.QUERY_PREMIUM_TIPS,
    "menu": Intents.MENU,
}


def normalize_text(text: str) -> str:
    """strip + casefold + collapse whitespace"""
    return " ".join((text or "").strip().casefold().split())


def classify_text(text: str) -> Intents:
    """
    Return the intent for an inbound message.

    Anything containing "subscribe" is a subscription request: Normal if it
    also says "normal", otherwise Premium.
    """
    low = normalize_text(text)
    if not low:
        return Intents.FALLBACK

    exact = EXACT_COMMANDS.get(low)
    if exact is not None:
        return exact

    # -------------------------
    # Subscribe family
    # -------------------------
    if "subscribe" in low:
        if "normal" in low:
            return Intents.SUBSCRIBE_NORMAL
        return Intents.SUBSCRIBE_PREMIUM

    return Intents.FALLBACK
