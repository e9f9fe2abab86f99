import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace

from dotenv import load_dotenv
from slack_sdk.web.async_client import AsyncWebClient

from monarch.api import WebService, create_app
from monarch.chat import ChatService
from monarch.config import PAYLOAD_FORMATS, Settings, require_passphrase
from monarch.errors import BindError, ConfigurationError, ServiceError
from monarch.grantor import SlackChannelGrantor
from monarch.mailer import MailgunMailer, verification_link
from monarch.orchestrator import run_services
from monarch.token import TokenCodec, is_identity
from monarch.verifier import TokenVerifier


logger = logging.getLogger("monarch")


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_services(settings: Settings) -> tuple[ChatService, WebService]:
    """Wire both services around one shared verification capability."""
    codec = TokenCodec.from_passphrase(settings.cipher_passphrase)
    mailer = MailgunMailer(
        api_key=settings.mailgun_api_key,
        domain=settings.mailgun_domain,
        sender=settings.sender,
        api_base=settings.mailgun_api_base,
        timeout=settings.outbound_timeout,
    )
    grantor = SlackChannelGrantor(
        AsyncWebClient(token=settings.slack_bot_token, timeout=int(settings.outbound_timeout) or 1),
        settings.slack_verified_channel,
    )
    verifier = TokenVerifier(codec, grantor, timeout=settings.outbound_timeout)

    chat = ChatService(settings, codec, mailer)
    web = WebService(
        create_app(verifier, settings.payload_format),
        host=settings.host,
        port=settings.port,
        shutdown_grace=settings.shutdown_grace,
    )
    return chat, web


def cmd_serve(args) -> int:
    """Run the chat listener and web server together."""
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        logger.critical("❌ %s", e)
        return 2

    if args.host:
        settings = replace(settings, host=args.host)
    if args.port is not None:
        settings = replace(settings, port=args.port)

    logging.getLogger().setLevel(settings.log_level)
    logger.info("🚀 Monarch Verify starting (domain: @%s, payload: %s)", settings.email_domain, settings.payload_format)

    chat, web = build_services(settings)
    try:
        asyncio.run(run_services([web, chat], shutdown_grace=settings.shutdown_grace * 2 + 1))
    except (BindError, ServiceError) as e:
        logger.critical("❌ %s", e)
        return 1
    return 0


def cmd_link(args) -> int:
    """Print a verification link for a user ID."""
    if not is_identity(args.user):
        logger.error("❌ %r is not a Slack user ID", args.user)
        return 2
    try:
        passphrase = require_passphrase()
    except ConfigurationError as e:
        logger.critical("❌ %s", e)
        return 2

    base_url = args.base_url or os.getenv("VERIFY_BASE_URL", "http://localhost:8000")
    payload_format = args.format or os.getenv("VERIFY_PAYLOAD_FORMAT", "base64url").lower()
    if payload_format not in PAYLOAD_FORMATS:
        logger.error("❌ Unknown payload format %r", payload_format)
        return 2

    token = TokenCodec.from_passphrase(passphrase).encode(args.user)
    print(verification_link(base_url, token, payload_format))
    return 0


def main():
    load_dotenv()
    configure_logging()

    parser = argparse.ArgumentParser(description="Verify Slack members by email and grant them access")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the Slack listener and the verification web server")
    serve_parser.add_argument("--host", help="Host to bind to (default: $HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: $PORT or 8000)")

    # Link command
    link_parser = subparsers.add_parser("link", help="Print a verification link for a user (for manual checks)")
    link_parser.add_argument("--user", "-u", required=True, help="Slack user ID, e.g. U012AB3CD")
    link_parser.add_argument("--base-url", help="Public base URL (default: $VERIFY_BASE_URL)")
    link_parser.add_argument("--format", choices=["base64url", "csv"], help="Payload format (default: $VERIFY_PAYLOAD_FORMAT)")

    args = parser.parse_args()

    if args.command == "serve":
        sys.exit(cmd_serve(args))
    elif args.command == "link":
        sys.exit(cmd_link(args))


if __name__ == "__main__":
    main()
