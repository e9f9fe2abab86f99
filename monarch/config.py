"""Settings loaded from the environment."""

import os
from dataclasses import dataclass

from monarch.errors import ConfigurationError


PAYLOAD_FORMATS = ("base64url", "csv")

DEFAULT_SUPPORT_URL = "https://git-community.cs.odu.edu/community-discord/meta/-/issues/new"

# Required keys - startup aborts if any of these is unset or empty
REQUIRED_KEYS = (
    "SLACK_BOT_TOKEN",
    "SLACK_APP_TOKEN",
    "SLACK_VERIFIED_CHANNEL",
    "MAILGUN_API_KEY",
    "MAILGUN_DOMAIN",
    "VERIFY_CIPHER_PASSPHRASE",
    "VERIFY_BASE_URL",
)


@dataclass(frozen=True)
class Settings:
    slack_bot_token: str
    slack_app_token: str
    slack_verified_channel: str
    mailgun_api_key: str
    mailgun_domain: str
    cipher_passphrase: str
    verify_base_url: str
    mailgun_api_base: str = "https://api.mailgun.net/v3"
    mail_from: str = ""
    mail_subject: str = "Verify your email"
    mail_template: str = "monarch-verify"
    email_domain: str = "odu.edu"
    support_url: str = DEFAULT_SUPPORT_URL
    payload_format: str = "base64url"
    host: str = "0.0.0.0"
    port: int = 8000
    outbound_timeout: float = 10.0
    shutdown_grace: float = 5.0
    reconnect_grace: float = 60.0
    log_level: str = "INFO"

    @property
    def sender(self) -> str:
        return self.mail_from or f"Monarch Verify <postmaster@{self.mailgun_domain}>"

    @classmethod
    def from_env(cls, environ: dict | None = None) -> "Settings":
        """Build settings from environment variables.

        Raises ConfigurationError naming every missing required key, or the
        first optional value that cannot be parsed.
        """
        env = os.environ if environ is None else environ

        missing = [key for key in REQUIRED_KEYS if not env.get(key, "").strip()]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

        payload_format = env.get("VERIFY_PAYLOAD_FORMAT", "base64url").strip().lower()
        if payload_format not in PAYLOAD_FORMATS:
            raise ConfigurationError(
                f"VERIFY_PAYLOAD_FORMAT must be one of {', '.join(PAYLOAD_FORMATS)}, got {payload_format!r}"
            )

        return cls(
            slack_bot_token=env["SLACK_BOT_TOKEN"].strip(),
            slack_app_token=env["SLACK_APP_TOKEN"].strip(),
            slack_verified_channel=env["SLACK_VERIFIED_CHANNEL"].strip(),
            mailgun_api_key=env["MAILGUN_API_KEY"].strip(),
            mailgun_domain=env["MAILGUN_DOMAIN"].strip(),
            cipher_passphrase=env["VERIFY_CIPHER_PASSPHRASE"],
            verify_base_url=env["VERIFY_BASE_URL"].strip().rstrip("/"),
            mailgun_api_base=env.get("MAILGUN_API_BASE", cls.mailgun_api_base).rstrip("/"),
            mail_from=env.get("MAIL_FROM", ""),
            mail_subject=env.get("MAIL_SUBJECT", cls.mail_subject),
            mail_template=env.get("MAIL_TEMPLATE", cls.mail_template),
            email_domain=env.get("EMAIL_DOMAIN", cls.email_domain).strip(),
            support_url=env.get("SUPPORT_URL", cls.support_url),
            payload_format=payload_format,
            host=env.get("HOST", cls.host),
            port=_number(env, "PORT", cls.port, int),
            outbound_timeout=_number(env, "OUTBOUND_TIMEOUT_SECONDS", cls.outbound_timeout, float),
            shutdown_grace=_number(env, "SHUTDOWN_GRACE_SECONDS", cls.shutdown_grace, float),
            reconnect_grace=_number(env, "RECONNECT_GRACE_SECONDS", cls.reconnect_grace, float),
            log_level=env.get("LOG_LEVEL", cls.log_level).upper(),
        )


def _number(env, key: str, default, kind):
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {raw!r}")
    return value


def require_passphrase(environ: dict | None = None) -> str:
    """Return the token passphrase, for commands that need nothing else."""
    env = os.environ if environ is None else environ
    passphrase = env.get("VERIFY_CIPHER_PASSPHRASE", "")
    if not passphrase:
        raise ConfigurationError("VERIFY_CIPHER_PASSPHRASE environment variable is not set")
    return passphrase
