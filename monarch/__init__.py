"""Verify Slack members through a one-time email link and grant them access."""

__version__ = "0.1.0"
