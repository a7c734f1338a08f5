"""
Shared fakes and fixtures. No test touches the network.
"""
from datetime import datetime

import pytest
import pytz

from tipsbot.business.entitlements import EntitlementService
from tipsbot.flows.fallback_flow import AnswerChain
from tipsbot.flows.tips_flow import TipsContent
from tipsbot.memory.entitlement_store import InMemoryEntitlementStore
from tipsbot.utils.errors import StoreUnavailable, UpstreamProviderFailure

NAIROBI = pytz.timezone("Africa/Nairobi")
NOW = NAIROBI.localize(datetime(2026, 10, 18, 12, 0, 0))
USER = "whatsapp:+254700000000"


class FakeGateway:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def initiate(self, phone, tier):
        self.calls.append((phone, tier))
        if self.error:
            raise self.error
        return self.result


class FakeProvider:
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    def respond(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.answer


class RecordingChannel:
    """Synchronous channel: keeps (to, body) pairs."""

    def __init__(self):
        self.sent = []

    def send(self, to, body):
        self.sent.append((to, body))


class SpyContent(TipsContent):
    def __init__(self):
        self.calls = []

    def free_tips(self):
        self.calls.append("free")
        return super().free_tips()

    def paid_tips(self):
        self.calls.append("paid")
        return super().paid_tips()

    def premium_tips(self):
        self.calls.append("premium")
        return super().premium_tips()


class CountingStore(InMemoryEntitlementStore):
    def __init__(self):
        super().__init__()
        self.puts = 0

    def _save(self, identity, data):
        self.puts += 1
        super()._save(identity, data)


class BrokenStore(InMemoryEntitlementStore):
    """Backing medium gone: every read and write fails."""

    def _load(self, identity):
        raise StoreUnavailable("disk gone")

    def _save(self, identity, data):
        raise StoreUnavailable("disk gone")


@pytest.fixture
def store():
    return CountingStore().open()


@pytest.fixture
def service(store):
    return EntitlementService(store, clock=lambda: NOW)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def content():
    return SpyContent()


@pytest.fixture
def answers():
    return AnswerChain([
        FakeProvider(error=UpstreamProviderFailure("openai down")),
        FakeProvider(answer="Arsenal look strong today."),
    ])
