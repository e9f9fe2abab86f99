"""Mailgun client for sending verification emails."""

import json
import logging
from dataclasses import dataclass, field

import httpx

from monarch.errors import DispatchError
from monarch.payload import BASE64URL, encode_payload


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    template: str
    variables: dict = field(default_factory=dict)

    def to_form(self, sender: str) -> dict[str, str]:
        """Form fields for the Mailgun messages endpoint."""
        return {
            "from": sender,
            "to": self.to,
            "subject": self.subject,
            "template": self.template,
            "h:X-Mailgun-Variables": json.dumps(self.variables),
        }


def verification_link(base_url: str, token: bytes, payload_format: str = BASE64URL) -> str:
    return f"{base_url.rstrip('/')}/verify/{encode_payload(token, payload_format)}"


def build_verification_email(
    to: str,
    token: bytes,
    base_url: str,
    subject: str = "Verify your email",
    template: str = "monarch-verify",
    payload_format: str = BASE64URL,
) -> OutboundEmail:
    """Build the email carrying a verification token.

    The template receives the serialized token and the full link; the
    identity itself is only ever inside the token.
    """
    return OutboundEmail(
        to=to,
        subject=subject,
        template=template,
        variables={
            "token": encode_payload(token, payload_format),
            "verify_url": verification_link(base_url, token, payload_format),
        },
    )


class MailgunMailer:
    """Sends templated emails through the Mailgun HTTP API."""

    def __init__(
        self,
        api_key: str,
        domain: str,
        sender: str,
        api_base: str = "https://api.mailgun.net/v3",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._sender = sender
        self._url = f"{api_base.rstrip('/')}/{domain}/messages"
        self._timeout = timeout
        self._transport = transport

    async def send(self, email: OutboundEmail) -> None:
        """Hand an email to Mailgun. Raises DispatchError if it is not accepted."""
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.post(
                    self._url,
                    auth=("api", self._api_key),
                    data=email.to_form(self._sender),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise DispatchError(
                    f"Mailgun rejected email to {email.to}: {e.response.status_code} {e.response.text[:200]}"
                ) from e
            except httpx.HTTPError as e:
                raise DispatchError(f"Mailgun request failed for {email.to}: {e!r}") from e

        logger.info("📧 Verification email queued for %s", email.to)
