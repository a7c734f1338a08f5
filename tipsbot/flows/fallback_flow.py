"""
Free-text questions go to the language model providers, tried in order.
Adding or removing a provider is a change to the list, not to this code.
"""
import logging
from typing import Iterable, List

from ..templates import t
from ..utils.errors import UpstreamProviderFailure

logger = logging.getLogger(__name__)


class AnswerChain:
    def __init__(self, providers: Iterable):
        self.providers: List = list(providers)

    def respond(self, text: str) -> str:
        """First successful answer, else the fixed unavailable message."""
        for provider in self.providers:
            try:
                answer = provider.respond(text)
                logger.info("Answered by %r", provider)
                return answer
            except UpstreamProviderFailure as e:
                logger.warning("Provider %r failed: %s", provider, e)
            except Exception:
                logger.exception("Provider %r crashed", provider)

        logger.error("All answer providers failed")
        return t("ai_unavailable")


def handle(text: str, answers: AnswerChain) -> str:
    return answers.respond(text)
