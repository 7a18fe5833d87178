"""
Token encryption.

Encrypts Strava OAuth tokens at rest with AES-256-GCM (cryptography).

Stored format: "iv:authTag:ciphertext", all hex, 16-byte IV and tag.

Without TOKEN_ENCRYPTION_KEY (or with a malformed one) the cipher is
disabled and tokens pass through unchanged. That is a supported mode,
not an error, so rows written before a key existed keep working.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from streaksync.config import settings

logger = logging.getLogger(__name__)

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16

_ENCODED_RE = re.compile(r"^[0-9a-f]{32}:[0-9a-f]{32}:[0-9a-f]*$")


@dataclass(frozen=True)
class SealedToken:
    """A token value together with the form it was written in."""

    value: str
    encrypted: bool


class TokenCipher:
    """
    AES-256-GCM helper.

    Usage:
        cipher = TokenCipher(key_hex)
        stored = cipher.encrypt("abc")      # "iv:tag:ciphertext"
        cipher.decrypt(stored)              # "abc"
    """

    def __init__(self, key_hex: Optional[str] = None):
        self._aead: Optional[AESGCM] = None

        if not key_hex:
            logger.warning("TOKEN_ENCRYPTION_KEY not set, token encryption disabled")
            return

        try:
            key = bytes.fromhex(key_hex)
        except ValueError:
            key = b""
        if len(key) != 32:
            logger.warning("TOKEN_ENCRYPTION_KEY invalid (need 64 hex chars), token encryption disabled")
            return

        self._aead = AESGCM(key)

    @property
    def enabled(self) -> bool:
        return self._aead is not None

    @staticmethod
    def looks_encoded(value: str) -> bool:
        """True if the value already has the iv:tag:ciphertext shape."""
        return bool(_ENCODED_RE.match(value))

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a token.

        Returns the input unchanged when encryption is disabled or the
        input is already encoded, so encrypting twice is harmless.
        """
        if not self.enabled or not plaintext or self.looks_encoded(plaintext):
            return plaintext

        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        """
        Decrypt a token.

        Anything that does not parse or verify is returned unchanged and
        treated as a legacy plaintext token. Never raises.
        """
        if not self.enabled or not value:
            return value

        parts = value.split(":")
        if len(parts) != 3:
            return value

        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
            if len(tag) != AUTH_TAG_LENGTH:
                raise ValueError("Invalid auth tag length")
            return self._aead.decrypt(iv, ciphertext + tag, None).decode("utf-8")
        except (ValueError, InvalidTag, UnicodeDecodeError):
            return value

    def seal(self, plaintext: str) -> SealedToken:
        """Encrypt if possible and record which form was produced."""
        if self.enabled and plaintext:
            return SealedToken(self.encrypt(plaintext), encrypted=True)
        return SealedToken(plaintext, encrypted=False)

    def open(self, token: SealedToken) -> str:
        """Read a sealed token back, decrypting only if it was written encrypted."""
        if token.encrypted:
            return self.decrypt(token.value)
        return token.value


# Global cipher instance
token_cipher = TokenCipher(settings.token_encryption_key)
