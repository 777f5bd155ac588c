from __future__ import annotations

import argparse
import asyncio
import os
import sys

import uvicorn

from storefront_payments.adapters.inbound.cli import run_verify
from storefront_payments.bootstrap import build_usecases
from storefront_payments.config import Settings
from storefront_payments.core.domain.model.errors import ConfigurationError
from storefront_payments.log import configure_logging


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront-payments")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    verify = sub.add_parser("verify", help="show the payment state of a session")
    verify.add_argument("session_id")
    return parser


async def _verify(settings: Settings, session_id: str) -> int:
    usecases = build_usecases(settings)
    await usecases.start()
    try:
        return await run_verify(usecases.verify_payment, session_id)
    finally:
        await usecases.aclose()


def main(argv: list[str] | None = None) -> int:
    try:
        args = _parser().parse_args(sys.argv[1:] if argv is None else argv)
    except SystemExit as e:
        return 0 if e.code == 0 else 2

    try:
        settings = Settings.from_env(os.environ)
    except ConfigurationError as e:
        print(f"invalid_config: {e}")
        return 2
    configure_logging(settings.log_level, settings.log_json)

    if args.command == "serve":
        uvicorn.run(
            "storefront_payments.asgi:create_asgi_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_config=None,
        )
        return 0

    return asyncio.run(_verify(settings, args.session_id))


if __name__ == "__main__":
    raise SystemExit(main())
