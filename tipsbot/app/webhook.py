"""
HTTP endpoints.

Both inbound endpoints acknowledge with 200 whatever happens inside: the
chat platform and the payment gateway retry failed deliveries, and a retry
would repeat side effects. Chat replies are produced off the request
thread, since answering can wait on the LLM chain and on M-Pesa.
"""
import json
import logging
import threading

from flask import Blueprint, abort, current_app, jsonify, request
from twilio.request_validator import RequestValidator

from ..settings import settings
from ..utils.errors import StoreUnavailable

logger = logging.getLogger(__name__)

bp = Blueprint("tipsbot", __name__)


def _collaborators():
    return current_app.extensions["tipsbot"]


# --- helpers ---

def _verify_signature() -> bool:
    """Optional: verify X-Twilio-Signature when TWILIO_VALIDATE_SIGNATURE=1."""
    if not settings.TWILIO_VALIDATE_SIGNATURE:
        return True  # in dev we don't verify
    signature = request.headers.get("X-Twilio-Signature", "")
    if not signature or not settings.TWILIO_AUTH:
        return False
    validator = RequestValidator(settings.TWILIO_AUTH)
    return validator.validate(request.url, request.form.to_dict(), signature)


def run_in_background(fn, *args) -> threading.Thread:
    """Run `fn` on a daemon thread so the webhook can ack right away."""
    th = threading.Thread(target=fn, args=args, daemon=True)
    th.start()
    return th


def _reply(router, channel, sender: str, text: str) -> None:
    """Route one inbound message and send the reply. Never raises."""
    try:
        reply = router.handle(sender, text)
        if reply:
            channel.send(sender, reply)
    except Exception:
        logger.exception("Message handling failed for %s", sender)


# --- routes ---

@bp.get("/health")
def health():
    return {"ok": True}, 200


@bp.post("/webhook")
def webhook():
    """Inbound WhatsApp message (Twilio form post: From, Body)."""
    if not _verify_signature():
        logger.error("Invalid X-Twilio-Signature")
        abort(403)

    sender = (request.form.get("From") or "").strip()
    text = request.form.get("Body") or ""
    if not sender:
        logger.info("Webhook without From, ignored")
        return "OK", 200

    c = _collaborators()
    try:
        c.dispatch(_reply, c.router, c.channel, sender, text)
    except Exception:
        logger.exception("Could not dispatch message from %s", sender)

    return "OK", 200


@bp.post("/mpesa-callback")
def mpesa_callback():
    """STK push result from Safaricom."""
    data = request.get_json(force=True, silent=True)
    logger.info("M-Pesa callback: %s", json.dumps(data, ensure_ascii=False))

    try:
        _collaborators().payments.handle(data)
    except StoreUnavailable:
        # already logged; the gateway still gets its ack
        pass
    except Exception:
        logger.exception("Callback Error")

    return jsonify({"ResultCode": 0, "ResultDesc": "Accepted"}), 200
