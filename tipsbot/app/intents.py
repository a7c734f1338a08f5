from enum import Enum


class Intents(str, Enum):
    """Closed set of supported commands."""

    ACCEPT_RULES = "ACCEPT_RULES"              # literal acceptance command
    QUERY_FREE_TIPS = "QUERY_FREE_TIPS"        # todays safe tips
    QUERY_PAID_TIPS = "QUERY_PAID_TIPS"        # todays paid tips (Normal+)
    QUERY_PREMIUM_TIPS = "QUERY_PREMIUM_TIPS"  # todays premium tips (Premium)
    SUBSCRIBE_NORMAL = "SUBSCRIBE_NORMAL"
    SUBSCRIBE_PREMIUM = "SUBSCRIBE_PREMIUM"
    MENU = "MENU"
    FALLBACK = "FALLBACK"                      # anything else -> AnswerProvider
