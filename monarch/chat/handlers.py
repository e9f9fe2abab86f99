"""Handlers for direct messages and new workspace members."""

import asyncio
import logging

from monarch.chat.context import ChatContext
from monarch.chat.event import EventHandler, RequestResult
from monarch.email_address import extract_email
from monarch.errors import DispatchError
from monarch.mailer import build_verification_email


logger = logging.getLogger(__name__)

# Message subtypes that never carry a new request from a person
IGNORED_SUBTYPES = frozenset({"message_changed", "message_deleted", "bot_message"})


def prompt_text(content: str, domain: str) -> str:
    return (
        ":confused:\n"
        f"{content} doesn't look like an @{domain} email to me.\n"
        f"Can I please have your @{domain} email address? :pray:"
    )


CONFIRM_TEXT = ":ok_hand: Check your email. I'm sending a verification link to that address."


def apology_text(support_url: str) -> str:
    return (
        ":fire_engine: Uh-oh\n"
        "Something went wrong sending your verification email.\n"
        "Try again later maybe? If this keeps happening file an issue: "
        f"<{support_url}|support tracker>"
    )


def welcome_text(user_id: str, domain: str) -> str:
    return (
        f":wave: <@{user_id}>\n"
        "Welcome! Please make sure you review the #rules. "
        f"This workspace is for @{domain} members only.\n"
        f"Could I have your @{domain} email address and we can get you verified?"
    )


class DirectMessageHandler(EventHandler):
    """Turn a direct message containing an address into a verification email."""

    event_type = "message"

    def should_ignore(self, ctx: ChatContext, event: dict) -> bool:
        """Ignore anything that is not a plain DM from someone else."""
        if event.get("channel_type") != "im":
            return True
        if event.get("subtype") in IGNORED_SUBTYPES:
            return True
        return ctx.is_own(event) or not event.get("user")

    async def handle(self, ctx: ChatContext, event: dict) -> RequestResult:
        if self.should_ignore(ctx, event):
            return RequestResult(status="ignored", user_id=event.get("user", ""))

        user_id = event["user"]
        channel = event["channel"]
        text = event.get("text") or ""
        settings = ctx.settings

        email_addr = extract_email(text, settings.email_domain)
        if email_addr is None:
            logger.info("· DM from %s had no @%s address, prompting", user_id, settings.email_domain)
            await ctx.reply(channel, prompt_text(text, settings.email_domain))
            return RequestResult(status="prompted", user_id=user_id)

        if event.get("ts"):
            await ctx.react(channel, event["ts"], "thumbsup")

        token = ctx.codec.encode(user_id)
        outbound = build_verification_email(
            to=email_addr,
            token=token,
            base_url=settings.verify_base_url,
            subject=settings.mail_subject,
            template=settings.mail_template,
            payload_format=settings.payload_format,
        )

        try:
            await asyncio.wait_for(ctx.mailer.send(outbound), timeout=settings.outbound_timeout)
        except (DispatchError, asyncio.TimeoutError) as e:
            reason = str(e) or f"timed out after {settings.outbound_timeout}s"
            logger.warning("⚠️ Verification email to %s failed: %s", email_addr, reason)
            await ctx.reply(channel, apology_text(settings.support_url))
            return RequestResult(status="escalated", user_id=user_id, email=email_addr, message=reason)

        await ctx.reply(channel, CONFIRM_TEXT)
        return RequestResult(status="confirmed", user_id=user_id, email=email_addr)


class MemberJoinedHandler(EventHandler):
    """Greet a new workspace member and ask for their address."""

    event_type = "team_join"

    async def handle(self, ctx: ChatContext, event: dict) -> RequestResult:
        user = event.get("user") or {}
        user_id = user.get("id", "")
        if not user_id or user.get("is_bot"):
            return RequestResult(status="ignored", user_id=user_id)

        logger.info("👋 %s (id: %s) joined", user.get("name", "?"), user_id)
        sent = await ctx.direct_message(user_id, welcome_text(user_id, ctx.settings.email_domain))
        return RequestResult(
            status="welcomed" if sent else "ignored",
            user_id=user_id,
            message="" if sent else "Welcome DM failed",
        )
