"""
Custom errors for the bot.
Raised by the store, the integrations and the callback parser; the webhook
layer turns all of them into a reply or a silent acknowledgment.
"""

class BotError(Exception):
    """Generic bot error."""
    pass


# ---------------- Storage ----------------

class StoreUnavailable(BotError):
    """The entitlement store could not be read or written."""
    pass


# ---------------- Inbound ----------------

class MalformedCallback(BotError):
    """Payment callback without the fields we need (or not a success)."""
    pass


# ---------------- Integrations ----------------

class UpstreamProviderFailure(BotError):
    """An AnswerProvider or the payment gateway failed."""
    pass


class RetryExhaustedError(BotError):
    """All retry attempts failed."""
    pass
