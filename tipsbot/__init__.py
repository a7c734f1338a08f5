"""WhatsApp betting-tips bot with M-Pesa weekly subscriptions."""

__version__ = "1.0.0"
