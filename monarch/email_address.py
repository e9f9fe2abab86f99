"""Extract a restricted-domain email address from free text."""

import re
from functools import lru_cache


# Local part is the unquoted character set from
# https://html.spec.whatwg.org/multipage/input.html#valid-e-mail-address
LOCAL_PART = r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"


@lru_cache(maxsize=8)
def _pattern(domain: str) -> re.Pattern:
    # The domain may be followed by punctuation, but not by more host name
    return re.compile(
        rf"{LOCAL_PART}@{re.escape(domain)}(?![A-Za-z0-9-]|\.[A-Za-z0-9-])"
    )


def extract_email(text: str, domain: str = "odu.edu") -> str | None:
    """Return the first address at `domain` found in `text`, or None.

    Later addresses are ignored. The domain match is case-sensitive.
    """
    if not text:
        return None
    match = _pattern(domain).search(text)
    return match.group(0) if match else None
