"""
Tests for the Flask endpoints.
Both inbound endpoints always acknowledge with 200.
"""
import threading
import time

import pytest

from tipsbot.app import create_app
from tipsbot.app.webhook import run_in_background
from tipsbot.models import EntitlementRecord, Tier
from tipsbot.templates import t

from conftest import NOW, USER, BrokenStore, FakeGateway, RecordingChannel
from test_payment_flow import callback


def run_inline(fn, *args):
    fn(*args)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def app(store, channel, answers, gateway, content, monkeypatch):
    monkeypatch.setenv("ADMIN_NUMBER", "+254711111111")
    monkeypatch.delenv("TWILIO_VALIDATE_SIGNATURE", raising=False)
    return create_app(store=store, channel=channel, answers=answers, gateway=gateway,
                      content=content, clock=lambda: NOW,
                      dispatch=run_inline, testing=True)


@pytest.fixture
def client(app):
    return app.test_client()


def say(client, text, sender=USER):
    return client.post("/webhook", data={"From": sender, "Body": text})


class TestHealth:
    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.get_json() == {"ok": True}


class TestFactory:
    def test_collaborators_hold_only_what_endpoints_use(self, app):
        assert set(vars(app.extensions["tipsbot"])) == {"router", "payments", "channel", "dispatch"}

    def test_background_dispatch_by_default(self, store, answers, gateway, channel):
        app = create_app(store=store, channel=channel, answers=answers, gateway=gateway,
                         clock=lambda: NOW, testing=True)
        assert app.extensions["tipsbot"].dispatch is run_in_background


class TestChatWebhook:
    def test_reply_goes_through_channel(self, client, channel):
        res = say(client, "todays safe tips")

        assert res.status_code == 200
        assert channel.sent == [(USER, t("rules_reminder", accept_command="accept"))]

    def test_accept_then_free_tips(self, client, channel):
        say(client, "accept")
        say(client, "todays safe tips")
        assert channel.sent[-1] == (USER, t("free_tips"))

    def test_missing_sender_is_ignored(self, client, channel):
        res = client.post("/webhook", data={"Body": "hello"})
        assert res.status_code == 200
        assert channel.sent == []

    def test_store_down_still_acknowledged(self, answers, gateway, channel):
        app = create_app(store=BrokenStore(), channel=channel, answers=answers,
                         gateway=gateway, clock=lambda: NOW, dispatch=run_inline, testing=True)
        res = say(app.test_client(), "todays premium tips")

        assert res.status_code == 200
        assert channel.sent == [(USER, t("service_unavailable"))]

    def test_channel_failure_still_acknowledged(self, store, answers, gateway):
        class Failing:
            def send(self, to, body):
                raise RuntimeError("twilio down")

        app = create_app(store=store, channel=Failing(), answers=answers,
                         gateway=gateway, clock=lambda: NOW, dispatch=run_inline, testing=True)
        assert say(app.test_client(), "menu").status_code == 200

    def test_subscribe(self, client, channel, gateway):
        say(client, "accept")
        say(client, "subscribe normal")
        assert gateway.calls == [("254700000000", Tier.NORMAL)]
        assert channel.sent[-1] == (USER, t("subscribe_initiated", tier="NORMAL"))


class BlockingGateway(FakeGateway):
    """Holds every STK push until the test releases it."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def initiate(self, phone, tier):
        self.release.wait(timeout=5)
        return super().initiate(phone, tier)


class NotifyingChannel(RecordingChannel):
    def __init__(self):
        super().__init__()
        self.delivered = threading.Event()

    def send(self, to, body):
        super().send(to, body)
        self.delivered.set()


class TestAcknowledgement:
    def test_ack_does_not_wait_for_gateway(self, store, answers):
        store.put(USER, EntitlementRecord(rules_accepted=True))
        gateway = BlockingGateway()
        channel = NotifyingChannel()
        app = create_app(store=store, channel=channel, answers=answers, gateway=gateway,
                         clock=lambda: NOW, testing=True)

        started = time.monotonic()
        res = say(app.test_client(), "subscribe premium")
        elapsed = time.monotonic() - started

        assert res.status_code == 200
        assert elapsed < 1
        assert gateway.calls == []
        assert channel.sent == []

        gateway.release.set()
        assert channel.delivered.wait(timeout=5)
        assert gateway.calls == [("254700000000", Tier.PREMIUM)]
        assert channel.sent == [(USER, t("subscribe_initiated", tier="PREMIUM"))]

    def test_dispatch_failure_still_acknowledged(self, store, answers, gateway):
        def broken(fn, *args):
            raise RuntimeError("can't start new thread")

        channel = RecordingChannel()
        app = create_app(store=store, channel=channel, answers=answers, gateway=gateway,
                         clock=lambda: NOW, dispatch=broken, testing=True)

        assert say(app.test_client(), "menu").status_code == 200
        assert channel.sent == []


class TestSignature:
    def test_missing_signature_is_rejected(self, client, monkeypatch):
        monkeypatch.setenv("TWILIO_VALIDATE_SIGNATURE", "1")
        monkeypatch.setenv("TWILIO_AUTH", "secret")
        assert say(client, "hello").status_code == 403

    def test_bad_signature_is_rejected(self, client, monkeypatch):
        monkeypatch.setenv("TWILIO_VALIDATE_SIGNATURE", "1")
        monkeypatch.setenv("TWILIO_AUTH", "secret")
        res = client.post("/webhook", data={"From": USER, "Body": "hello"},
                          headers={"X-Twilio-Signature": "bogus"})
        assert res.status_code == 403


class TestPaymentCallback:
    def test_ack_shape(self, client):
        res = client.post("/mpesa-callback", json=callback())
        assert res.status_code == 200
        assert res.get_json() == {"ResultCode": 0, "ResultDesc": "Accepted"}

    @pytest.mark.parametrize("body", [{"Body": {}}, {"unexpected": True}, []])
    def test_malformed_still_acknowledged(self, client, store, body):
        res = client.post("/mpesa-callback", json=body)
        assert res.status_code == 200
        assert store.puts == 0

    def test_non_json_still_acknowledged(self, client):
        res = client.post("/mpesa-callback", data="not json", content_type="text/plain")
        assert res.status_code == 200

    def test_store_down_still_acknowledged(self, answers, gateway, channel):
        app = create_app(store=BrokenStore(), channel=channel, answers=answers,
                         gateway=gateway, clock=lambda: NOW, dispatch=run_inline, testing=True)
        res = app.test_client().post("/mpesa-callback", json=callback())
        assert res.status_code == 200
        assert res.get_json()["ResultCode"] == 0

    def test_payment_unlocks_premium_tips(self, client, channel, content):
        say(client, "accept")
        client.post("/mpesa-callback", json=callback(account="premium", phone=254700000000))
        say(client, "todays premium tips")

        assert (USER, t("premium_tips")) in channel.sent
        assert ("+254711111111", "💰 Payment received from 254700000000 - Ksh 300 - premium") in channel.sent
        assert content.calls == ["premium"]

    def test_payment_before_accept_keeps_gate(self, client, channel, content):
        client.post("/mpesa-callback", json=callback())
        say(client, "todays premium tips")

        assert channel.sent[-1] == (USER, t("rules_reminder", accept_command="accept"))
        assert content.calls == []

    def test_failed_gateway_reply(self, store, answers, channel):
        app = create_app(store=store, channel=channel, answers=answers,
                         gateway=FakeGateway(result=False), clock=lambda: NOW,
                         dispatch=run_inline, testing=True)
        c = app.test_client()
        say(c, "accept")
        say(c, "subscribe")
        assert channel.sent[-1] == (USER, t("subscribe_failed"))
