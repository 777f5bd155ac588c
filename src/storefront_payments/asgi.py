from __future__ import annotations

import os

from fastapi import FastAPI

from storefront_payments.adapters.inbound.web.fastapi_app import create_app
from storefront_payments.bootstrap import build_usecases
from storefront_payments.config import Settings
from storefront_payments.log import configure_logging


def create_asgi_app() -> FastAPI:
    settings = Settings.from_env(os.environ)
    configure_logging(settings.log_level, settings.log_json)
    usecases = build_usecases(settings)
    return create_app(
        usecases.create_session,
        usecases.webhook,
        usecases.payment_return,
        usecases.verify_payment,
        usecases.authenticator,
        on_startup=usecases.start,
        on_shutdown=usecases.aclose,
    )
