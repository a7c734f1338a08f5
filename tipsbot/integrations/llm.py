"""
AnswerProviders backed by OpenAI-compatible chat completion APIs.
OpenAI and xAI (Grok) both speak the same protocol, so one class covers
both; only base_url, key and model differ.
"""
import logging
from typing import List, Optional

from openai import OpenAI, OpenAIError

from ..settings import settings
from ..utils.errors import UpstreamProviderFailure

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant."


class ChatCompletionProvider:
    """respond(text) -> str, raises UpstreamProviderFailure."""

    def __init__(self, name: str, api_key: str, model: str,
                 base_url: Optional[str] = None, timeout: float = 20.0, client=None):
        self.name = name
        self.model = model
        # max_retries=0: the AnswerChain moves on to the next provider instead
        self.client = client or OpenAI(api_key=api_key, base_url=base_url,
                                       timeout=timeout, max_retries=0)

    def respond(self, text: str) -> str:
        try:
            res = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
            )
        except OpenAIError as e:
            raise UpstreamProviderFailure(f"{self.name}: {e}") from e

        content = (res.choices[0].message.content or "").strip() if res.choices else ""
        if not content:
            raise UpstreamProviderFailure(f"{self.name}: empty answer")
        return content

    def __repr__(self) -> str:
        return f"<{self.name} {self.model}>"


def build_providers() -> List[ChatCompletionProvider]:
    """Providers in fallback order; those without an API key are skipped."""
    providers = []
    if settings.OPENAI_API_KEY:
        providers.append(ChatCompletionProvider(
            "OpenAI", settings.OPENAI_API_KEY, settings.OPENAI_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        ))
    if settings.XAI_API_KEY:
        providers.append(ChatCompletionProvider(
            "xAI", settings.XAI_API_KEY, settings.XAI_MODEL,
            base_url=settings.XAI_BASE_URL, timeout=settings.LLM_TIMEOUT_SECONDS,
        ))
    if not providers:
        logger.warning("No answer provider configured (OPENAI_API_KEY / XAI_API_KEY)")
    return providers
