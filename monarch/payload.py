"""Wire formats for carrying token bytes in a URL path segment.

Two formats are supported:

- ``base64url``: unpadded URL-safe base64 (default for new links)
- ``csv``: comma-delimited decimal byte values, e.g. ``104,105,33``
  (older links were built this way)
"""

import base64
import binascii
import re

from monarch.errors import ParseError


BASE64URL = "base64url"
CSV = "csv"

_BASE64URL_ALPHABET = re.compile(r"^[A-Za-z0-9_-]+$")


def parse_byte_list(raw: str, delimiter: str = ",") -> bytes:
    """Convert a delimited list of decimal byte values into bytes.

    A single trailing delimiter is tolerated. Raises ParseError on empty input,
    an empty element anywhere else, or any element that is not a byte value.
    """
    if not raw:
        raise ParseError("Payload must have at least 1 element")

    elements = raw.split(delimiter)
    # Strip one empty terminal element left by a trailing delimiter
    if len(elements) > 1 and elements[-1] == "":
        elements.pop()

    values = []
    for element in elements:
        if not element.isascii() or not element.isdigit():
            raise ParseError(f"Failed parsing {element!r}")
        value = int(element)
        if value > 255:
            raise ParseError(f"Failed parsing {element!r}: not a byte")
        values.append(value)
    return bytes(values)


def format_byte_list(data: bytes, delimiter: str = ",") -> str:
    return delimiter.join(str(b) for b in data)


def parse_base64url(raw: str) -> bytes:
    if not raw:
        raise ParseError("Payload is empty")
    if not _BASE64URL_ALPHABET.match(raw):
        raise ParseError("Payload has characters outside the base64url alphabet")
    try:
        return base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"Payload is not valid base64url: {e}") from e


def format_base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def parse_payload(raw: str, fmt: str = BASE64URL) -> bytes:
    if fmt == CSV:
        return parse_byte_list(raw)
    if fmt == BASE64URL:
        return parse_base64url(raw)
    raise ValueError(f"Unknown payload format: {fmt!r}")


def encode_payload(token: bytes, fmt: str = BASE64URL) -> str:
    if fmt == CSV:
        return format_byte_list(token)
    if fmt == BASE64URL:
        return format_base64url(token)
    raise ValueError(f"Unknown payload format: {fmt!r}")
