import logging

from dotenv import load_dotenv
from flask import Flask

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class Collaborators:
    """Everything the endpoints need, built once per app."""

    def __init__(self, router, payments, channel, dispatch):
        self.router = router
        self.payments = payments
        self.channel = channel
        # dispatch(fn, *args): runs chat handling off the request thread
        self.dispatch = dispatch


def create_app(store=None, channel=None, answers=None, gateway=None, content=None,
               clock=None, today=None, dispatch=None, testing: bool = False) -> Flask:
    """
    App factory. Any collaborator left as None is built from settings;
    tests pass fakes instead.
    """
    # load env vars
    load_dotenv()

    app = Flask(__name__)
    app.config["TESTING"] = testing
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    from ..business.entitlements import EntitlementService
    from ..flows.fallback_flow import AnswerChain
    from ..flows.payment_flow import PaymentCallbackHandler
    from ..integrations.llm import build_providers
    from ..integrations.mpesa import MpesaGateway
    from ..integrations.whatsapp import build_channel
    from ..memory.entitlement_store import get_store
    from ..settings import settings
    from ..utils import timez
    from . import webhook
    from .router import MessageRouter

    if not testing:
        settings.validate()

    store = store or get_store()
    channel = channel or build_channel()
    service = EntitlementService(store, clock=clock or timez.now,
                                 window_days=settings.ENTITLEMENT_WINDOW_DAYS)
    router = MessageRouter(
        service,
        answers or AnswerChain(build_providers()),
        gateway or MpesaGateway(),
        content=content,
    )
    payments = PaymentCallbackHandler(
        service, channel, settings.ADMIN_NUMBER,
        today=today or (lambda: service.clock().date()),
    )
    app.extensions["tipsbot"] = Collaborators(router, payments, channel,
                                              dispatch or webhook.run_in_background)

    # register the routes from webhook.py
    app.register_blueprint(webhook.bp)

    return app
