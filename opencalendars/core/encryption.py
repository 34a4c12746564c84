import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from loguru import logger

from opencalendars.core.config import settings
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.core.exceptions.encryption import (
    AuthenticationError,
    EncryptionException,
    FormatError,
    InputError,
)

IV_LENGTH = 16  # 128-bit IV, matches tokens already stored by the web app
AUTH_TAG_LENGTH = 16
DELIMITER = ":"


def derive_key(secret: str) -> bytes:
    """
    Derive a 32-byte AES-256 key from a configured secret.

    The derivation is a plain SHA-256 digest so the same secret yields the
    same key across restarts and across every process sharing the secret.
    """
    return hashlib.sha256(secret.encode("utf-8")).digest()


class TokenCodec:
    """
    AES-256-GCM codec for OAuth tokens at rest.

    Output format: ``base64(iv):base64(auth_tag):base64(ciphertext)``.

    Example:
        ```python
        codec = TokenCodec(settings.token_encryption_secret)
        stored = codec.encrypt(access_token)
        access_token = codec.decrypt(stored)
        ```
    """

    def __init__(self, secret: str | None):
        self._secret = secret

    def _get_key(self) -> bytes:
        if not self._secret:
            raise ConfigurationError(
                "ENCRYPTION_KEY or SESSION_COOKIE_SECRET must be set for token encryption"
            )

        return derive_key(self._secret)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a token for storage.

        Args:
            plaintext: Non-empty value to encrypt

        Returns:
            str: Transport string ``iv:tag:ciphertext``, each part base64 encoded

        Raises:
            InputError: If plaintext is empty
            ConfigurationError: If no encryption secret is configured
        """
        if not plaintext:
            raise InputError("Cannot encrypt empty string")

        key = self._get_key()
        iv = os.urandom(IV_LENGTH)

        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]

        return DELIMITER.join(
            base64.b64encode(part).decode("ascii") for part in (iv, auth_tag, ciphertext)
        )

    def decrypt(self, encrypted: str) -> str:
        """
        Decrypt a value produced by ``encrypt``.

        Args:
            encrypted: Transport string ``iv:tag:ciphertext``

        Returns:
            str: The original plaintext

        Raises:
            InputError: If encrypted is empty
            FormatError: If the value is not three valid base64 segments
            AuthenticationError: If the tag does not verify under the derived key
            ConfigurationError: If no encryption secret is configured
        """
        if not encrypted:
            raise InputError("Cannot decrypt empty string")

        parts = encrypted.split(DELIMITER)
        if len(parts) != 3:
            raise FormatError("Invalid encrypted data format")

        try:
            iv, auth_tag, ciphertext = (base64.b64decode(part, validate=True) for part in parts)
        except binascii.Error as err:
            raise FormatError("Invalid encrypted data format", err)

        if len(iv) != IV_LENGTH or len(auth_tag) != AUTH_TAG_LENGTH:
            raise FormatError("Invalid encrypted data format")

        key = self._get_key()

        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + auth_tag, None)
        except InvalidTag:
            # Same message for a wrong key and for modified data
            raise AuthenticationError("Unable to decrypt value")

        return plaintext.decode("utf-8")

    @staticmethod
    def is_encrypted(value: str | None) -> bool:
        """
        Structural check for the ``iv:tag:ciphertext`` shape.

        Not a cryptographic verification, only used to avoid encrypting a
        value twice or decrypting a legacy plaintext value.
        """
        if not value:
            return False

        return len(value.split(DELIMITER)) == 3

    def encrypt_if_needed(self, value: str | None) -> str | None:
        """Encrypt a value unless it is empty or already looks encrypted."""
        if not value:
            return None

        if self.is_encrypted(value):
            return value

        return self.encrypt(value)

    def decrypt_if_needed(self, value: str | None) -> str | None:
        """
        Decrypt a stored value, passing legacy plaintext through unchanged.

        Returns:
            str | None: The plaintext, or None if the value is empty or fails to decrypt
        """
        if not value:
            return None

        if not self.is_encrypted(value):
            return value

        try:
            return self.decrypt(value)
        except EncryptionException as err:
            logger.error(f"Failed to decrypt stored value: {err}")
            return None


def get_token_codec() -> TokenCodec:
    """
    Build a codec from the configured secret.

    Returns:
        TokenCodec: Codec keyed by ENCRYPTION_KEY or SESSION_COOKIE_SECRET
    """
    return TokenCodec(settings.token_encryption_secret)
