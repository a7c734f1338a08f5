"""
Environment-driven configuration for the tips bot.
Every property reads the environment on access, so a value changed at
runtime (or monkeypatched in tests) is picked up immediately.
"""
import os
from typing import Optional


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
    """Configuration loaded from environment variables."""

    # ---------------- storage ----------------

    @property
    def USERS_FILE(self) -> str:
        return os.getenv("USERS_FILE", "users.json")

    @property
    def REDIS_URL(self) -> Optional[str]:
        return os.getenv("REDIS_URL")

    @property
    def STORE_BACKEND(self) -> str:
        # redis wins when REDIS_URL is set and no backend was asked for explicitly
        explicit = os.getenv("STORE_BACKEND")
        if explicit:
            return explicit.strip().lower()
        return "redis" if self.REDIS_URL else "file"

    # ---------------- entitlements ----------------

    @property
    def BOT_TIMEZONE(self) -> str:
        return os.getenv("BOT_TIMEZONE", "Africa/Nairobi")

    @property
    def ENTITLEMENT_WINDOW_DAYS(self) -> int:
        return int(os.getenv("ENTITLEMENT_WINDOW_DAYS", "7"))

    @property
    def NORMAL_PRICE(self) -> int:
        return int(os.getenv("NORMAL_PRICE", "150"))

    @property
    def PREMIUM_PRICE(self) -> int:
        return int(os.getenv("PREMIUM_PRICE", "300"))

    def price_for(self, tier) -> int:
        return self.PREMIUM_PRICE if getattr(tier, "value", tier) == "premium" else self.NORMAL_PRICE

    # ---------------- twilio ----------------

    @property
    def TWILIO_SID(self) -> Optional[str]:
        return os.getenv("TWILIO_SID")

    @property
    def TWILIO_AUTH(self) -> Optional[str]:
        return os.getenv("TWILIO_AUTH")

    @property
    def TWILIO_WHATSAPP_NUMBER(self) -> Optional[str]:
        return os.getenv("TWILIO_WHATSAPP_NUMBER")

    @property
    def TWILIO_VALIDATE_SIGNATURE(self) -> bool:
        return _flag("TWILIO_VALIDATE_SIGNATURE")

    @property
    def ADMIN_NUMBER(self) -> Optional[str]:
        return os.getenv("ADMIN_NUMBER")

    # ---------------- answer providers ----------------

    @property
    def OPENAI_API_KEY(self) -> str:
        return os.getenv("OPENAI_API_KEY", "").strip()

    @property
    def OPENAI_MODEL(self) -> str:
        return os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    @property
    def XAI_API_KEY(self) -> str:
        return os.getenv("XAI_API_KEY", "").strip()

    @property
    def XAI_MODEL(self) -> str:
        return os.getenv("XAI_MODEL", "grok-2-latest")

    @property
    def XAI_BASE_URL(self) -> str:
        return os.getenv("XAI_BASE_URL", "https://api.x.ai/v1")

    @property
    def LLM_TIMEOUT_SECONDS(self) -> float:
        return float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))

    # ---------------- m-pesa ----------------

    @property
    def MPESA_CONSUMER_KEY(self) -> Optional[str]:
        return os.getenv("MPESA_CONSUMER_KEY")

    @property
    def MPESA_CONSUMER_SECRET(self) -> Optional[str]:
        return os.getenv("MPESA_CONSUMER_SECRET")

    @property
    def MPESA_SHORTCODE(self) -> str:
        return os.getenv("MPESA_SHORTCODE", "")

    @property
    def MPESA_PASSKEY(self) -> str:
        return os.getenv("MPESA_PASSKEY", "")

    @property
    def MPESA_CALLBACK_URL(self) -> str:
        return os.getenv("MPESA_CALLBACK_URL", "")

    @property
    def MPESA_BASE_URL(self) -> str:
        return os.getenv("MPESA_BASE_URL", "https://sandbox.safaricom.co.ke").rstrip("/")

    @property
    def MPESA_TIMEOUT_SECONDS(self) -> float:
        return float(os.getenv("MPESA_TIMEOUT_SECONDS", "30"))

    # ---------------- server ----------------

    @property
    def PORT(self) -> int:
        return int(os.getenv("PORT", "3000"))

    def validate(self) -> None:
        """Validate settings required to actually answer users."""
        if not self.TWILIO_WHATSAPP_NUMBER:
            raise ValueError("TWILIO_WHATSAPP_NUMBER is required to send replies")
        if self.STORE_BACKEND == "redis" and not self.REDIS_URL:
            raise ValueError("STORE_BACKEND=redis requires REDIS_URL")


settings = Settings()
