"""Tamper-evident verification tokens.

A token is a libsodium SecretBox (XSalsa20-Poly1305) over the UTF-8 bytes of a
Slack user ID. The 24-byte nonce is random per token, so two tokens for the
same user differ while both decode to that user.
"""

import re

from nacl import pwhash
from nacl.encoding import RawEncoder
from nacl.exceptions import CryptoError as NaclCryptoError
from nacl.hash import blake2b
from nacl.secret import SecretBox

from monarch.errors import CryptoError


# Slack user IDs: "U" for regular users, "W" for Enterprise Grid users
IDENTITY_PATTERN = re.compile(r"^[UW][A-Z0-9]{2,}$")

# Fixed so the same passphrase derives the same key after a restart
_KDF_SALT = blake2b(
    b"monarch-verify/token-key",
    digest_size=pwhash.argon2id.SALTBYTES,
    encoder=RawEncoder,
)


def is_identity(value: str) -> bool:
    return bool(IDENTITY_PATTERN.match(value))


class TokenCodec:
    """Encrypts identities into tokens and back."""

    KEY_SIZE = SecretBox.KEY_SIZE

    def __init__(self, key: bytes):
        if len(key) != self.KEY_SIZE:
            raise ValueError(f"Token key must be {self.KEY_SIZE} bytes, got {len(key)}")
        self._box = SecretBox(key)

    @classmethod
    def from_passphrase(cls, passphrase: str) -> "TokenCodec":
        """Derive the key from a passphrase with Argon2id."""
        if not passphrase:
            raise ValueError("Token passphrase must not be empty")
        key = pwhash.argon2id.kdf(
            cls.KEY_SIZE,
            passphrase.encode(),
            _KDF_SALT,
            opslimit=pwhash.argon2id.OPSLIMIT_INTERACTIVE,
            memlimit=pwhash.argon2id.MEMLIMIT_INTERACTIVE,
        )
        return cls(key)

    def encode(self, identity: str) -> bytes:
        if not is_identity(identity):
            raise ValueError(f"Not a user ID: {identity!r}")
        return bytes(self._box.encrypt(identity.encode()))

    def decode(self, token: bytes) -> str:
        """Recover the identity from a token.

        Raises CryptoError if the token was not produced with this key, was
        altered in any way, or does not hold a user ID. The message is meant
        for local logs only.
        """
        if len(token) < SecretBox.NONCE_SIZE + SecretBox.MACBYTES:
            raise CryptoError(f"Token too short ({len(token)} bytes)")
        try:
            plaintext = self._box.decrypt(bytes(token))
        except NaclCryptoError as e:
            raise CryptoError(f"Token failed authentication: {e}") from e

        try:
            identity = plaintext.decode()
        except UnicodeDecodeError as e:
            raise CryptoError("Token plaintext is not UTF-8") from e

        if not is_identity(identity):
            raise CryptoError("Token plaintext is not a user ID")
        return identity
