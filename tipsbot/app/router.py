"""
MessageRouter: inbound chat text -> reply text.

Order of checks:
1. classify the text
2. rules gate (before any tier derivation)
3. derive the effective tier, then dispatch to the flow

Slow collaborators (payment gateway, answer providers) are called without
holding the subscriber's store lock.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from ..business.entitlements import EntitlementService
from ..flows import fallback_flow, subscribe_flow, tips_flow
from ..models import Tier
from ..nlu.classifier import ACCEPT_COMMAND, classify_text
from ..settings import settings
from ..templates import t
from ..utils.errors import StoreUnavailable
from .intents import Intents

logger = logging.getLogger(__name__)


def menu_text() -> str:
    return t("menu", normal_price=settings.NORMAL_PRICE, premium_price=settings.PREMIUM_PRICE)


class MessageRouter:
    def __init__(self, service: EntitlementService, answers: fallback_flow.AnswerChain,
                 gateway, content: Optional[tips_flow.TipsContent] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.service = service
        self.answers = answers
        self.gateway = gateway
        self.content = content or tips_flow.TipsContent()
        self.clock = clock or service.clock

    def route(self, identity: str, text: str) -> str:
        """
        Route the incoming message to the right flow.
        Raises StoreUnavailable; everything else becomes a reply.
        """
        intent = classify_text(text)
        logger.info("[%s] intent=%s", identity, intent.value)

        if intent == Intents.ACCEPT_RULES:
            self.service.on_accept_rules(identity)
            return t("rules_accepted", menu=menu_text())

        record = self.service.store.get(identity)
        if not record.rules_accepted:
            return t("rules_reminder", accept_command=ACCEPT_COMMAND)

        if intent == Intents.MENU:
            return menu_text()

        if intent == Intents.QUERY_FREE_TIPS:
            return tips_flow.handle_free(self.content)

        if intent in (Intents.QUERY_PAID_TIPS, Intents.QUERY_PREMIUM_TIPS):
            record = record.model_copy(update={"tier": self.service.derive_tier(record, self.clock())})
            if intent == Intents.QUERY_PAID_TIPS:
                return tips_flow.handle_paid(record, self.content)
            return tips_flow.handle_premium(record, self.content)

        if intent == Intents.SUBSCRIBE_NORMAL:
            return subscribe_flow.handle(identity, Tier.NORMAL, self.gateway)

        if intent == Intents.SUBSCRIBE_PREMIUM:
            return subscribe_flow.handle(identity, Tier.PREMIUM, self.gateway)

        return fallback_flow.handle(text, self.answers)

    def handle(self, identity: str, text: str) -> str:
        """route() with StoreUnavailable turned into a user-facing reply."""
        try:
            return self.route(identity, text)
        except StoreUnavailable:
            logger.exception("[%s] entitlement store unavailable", identity)
            return t("service_unavailable")
