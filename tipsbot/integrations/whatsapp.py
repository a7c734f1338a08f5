"""
NotificationChannel over Twilio's WhatsApp API.
send() never blocks the webhook: the Twilio call runs on a daemon thread and
failures are only logged.
"""
import logging
import threading
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ..settings import settings
from ..utils.ids import CHANNEL_PREFIX

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 1600  # Twilio WhatsApp body limit


def as_whatsapp_address(number: str) -> str:
    number = (number or "").strip()
    return number if number.startswith(CHANNEL_PREFIX) else f"{CHANNEL_PREFIX}{number}"


class TwilioWhatsAppChannel:
    def __init__(self, client: Optional[Client] = None, from_number: Optional[str] = None):
        self.client = client or Client(settings.TWILIO_SID, settings.TWILIO_AUTH)
        self.from_address = as_whatsapp_address(from_number or settings.TWILIO_WHATSAPP_NUMBER or "")

    def send_now(self, to: str, body: str) -> None:
        """Blocking send; raises TwilioException on failure."""
        self.client.messages.create(
            from_=self.from_address,
            to=as_whatsapp_address(to),
            body=body[:MAX_BODY_CHARS],
        )

    def send(self, to: str, body: str) -> None:
        """Fire-and-forget."""
        def _job():
            try:
                self.send_now(to, body)
            except TwilioException as e:
                logger.error("WhatsApp send to %s failed: %s", to, e)
            except Exception:
                logger.exception("WhatsApp send to %s failed", to)

        t = threading.Thread(target=_job, name="whatsapp-send")
        t.daemon = True  # does not keep the process alive on shutdown
        t.start()


class DryRunChannel:
    """Used when Twilio credentials are missing: logs instead of sending."""

    def send(self, to: str, body: str) -> None:
        logger.info("DRY_RUN WhatsApp to %s: %s", to, body)


def build_channel():
    if settings.TWILIO_SID and settings.TWILIO_AUTH:
        return TwilioWhatsAppChannel()
    logger.warning("Twilio credentials missing, replies are only logged")
    return DryRunChannel()
