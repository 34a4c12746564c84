import base64
from unittest.mock import patch

import pytest

from opencalendars.core.encryption import (
    AUTH_TAG_LENGTH,
    DELIMITER,
    IV_LENGTH,
    TokenCodec,
    derive_key,
    get_token_codec,
)
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.core.exceptions.encryption import (
    AuthenticationError,
    FormatError,
    InputError,
)


def _tamper(encrypted: str, segment: int) -> str:
    """Flip the first byte of one decoded segment and re-encode it."""
    parts = encrypted.split(DELIMITER)
    raw = bytearray(base64.b64decode(parts[segment]))
    raw[0] ^= 0x01
    parts[segment] = base64.b64encode(bytes(raw)).decode("ascii")
    return DELIMITER.join(parts)


class TestDeriveKey:
    def test_key_is_32_bytes(self):
        assert len(derive_key("secret")) == 32

    def test_same_secret_same_key(self):
        assert derive_key("secret") == derive_key("secret")

    def test_different_secret_different_key(self):
        assert derive_key("secret") != derive_key("other-secret")


class TestEncrypt:
    """Test TokenCodec.encrypt."""

    def test_roundtrip(self, codec: TokenCodec, faker):
        """Test that decrypt returns what was encrypted."""
        token = faker.sha256()

        assert codec.decrypt(codec.encrypt(token)) == token

    def test_roundtrip_unicode(self, codec: TokenCodec):
        token = "ya29.tökèn-✓"

        assert codec.decrypt(codec.encrypt(token)) == token

    def test_output_has_three_base64_segments(self, codec: TokenCodec):
        encrypted = codec.encrypt("access-token")
        iv, auth_tag, ciphertext = encrypted.split(DELIMITER)

        assert len(base64.b64decode(iv)) == IV_LENGTH
        assert len(base64.b64decode(auth_tag)) == AUTH_TAG_LENGTH
        assert len(base64.b64decode(ciphertext)) == len("access-token")

    def test_same_input_encrypts_differently(self, codec: TokenCodec):
        """Test that a fresh IV is used for every call."""
        first = codec.encrypt("access-token")
        second = codec.encrypt("access-token")

        assert first != second
        assert first.split(DELIMITER)[0] != second.split(DELIMITER)[0]
        assert codec.decrypt(first) == codec.decrypt(second) == "access-token"

    def test_empty_input_raises(self, codec: TokenCodec):
        with pytest.raises(InputError):
            codec.encrypt("")

    def test_missing_secret_raises(self):
        with pytest.raises(ConfigurationError, match="ENCRYPTION_KEY"):
            TokenCodec(None).encrypt("access-token")


class TestDecrypt:
    """Test TokenCodec.decrypt."""

    @pytest.mark.parametrize("segment", [0, 1, 2])
    def test_tampered_segment_fails_authentication(self, codec: TokenCodec, segment: int):
        """Test that a single flipped byte in any segment is detected."""
        encrypted = codec.encrypt("access-token")

        with pytest.raises(AuthenticationError, match="Unable to decrypt value"):
            codec.decrypt(_tamper(encrypted, segment))

    def test_wrong_key_fails_authentication(self, codec: TokenCodec):
        encrypted = codec.encrypt("access-token")

        with pytest.raises(AuthenticationError):
            TokenCodec("another-secret").decrypt(encrypted)

    def test_empty_input_raises(self, codec: TokenCodec):
        with pytest.raises(InputError):
            codec.decrypt("")

    @pytest.mark.parametrize(
        "value",
        [
            "no-delimiters",
            "only:two",
            "a:b:c:d",
        ],
    )
    def test_wrong_segment_count_raises(self, codec: TokenCodec, value: str):
        with pytest.raises(FormatError):
            codec.decrypt(value)

    def test_invalid_base64_raises(self, codec: TokenCodec):
        with pytest.raises(FormatError):
            codec.decrypt("not base64!:@@@@:####")

    def test_wrong_iv_length_raises(self, codec: TokenCodec):
        iv, auth_tag, ciphertext = codec.encrypt("access-token").split(DELIMITER)
        short_iv = base64.b64encode(b"\x00" * 12).decode("ascii")

        with pytest.raises(FormatError):
            codec.decrypt(DELIMITER.join([short_iv, auth_tag, ciphertext]))

    def test_missing_secret_raises(self, codec: TokenCodec):
        encrypted = codec.encrypt("access-token")

        with pytest.raises(ConfigurationError):
            TokenCodec("").decrypt(encrypted)


class TestIsEncrypted:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("a:b:c", True),
            ("plain-token", False),
            ("a:b", False),
            ("", False),
            (None, False),
        ],
    )
    def test_structural_check(self, value, expected):
        assert TokenCodec.is_encrypted(value) is expected


class TestConditionalHelpers:
    """Test encrypt_if_needed and decrypt_if_needed."""

    def test_encrypt_if_needed_encrypts_plaintext(self, codec: TokenCodec):
        result = codec.encrypt_if_needed("refresh-token")

        assert TokenCodec.is_encrypted(result)
        assert codec.decrypt(result) == "refresh-token"

    def test_encrypt_if_needed_keeps_encrypted_value(self, codec: TokenCodec):
        encrypted = codec.encrypt("refresh-token")

        assert codec.encrypt_if_needed(encrypted) == encrypted

    @pytest.mark.parametrize("value", [None, ""])
    def test_encrypt_if_needed_empty_returns_none(self, codec: TokenCodec, value):
        assert codec.encrypt_if_needed(value) is None

    def test_decrypt_if_needed_decrypts(self, codec: TokenCodec):
        assert codec.decrypt_if_needed(codec.encrypt("refresh-token")) == "refresh-token"

    def test_decrypt_if_needed_passes_plaintext_through(self, codec: TokenCodec):
        """Test that legacy unencrypted values are returned unchanged."""
        assert codec.decrypt_if_needed("legacy-plaintext") == "legacy-plaintext"

    @pytest.mark.parametrize("value", [None, ""])
    def test_decrypt_if_needed_empty_returns_none(self, codec: TokenCodec, value):
        assert codec.decrypt_if_needed(value) is None

    def test_decrypt_if_needed_returns_none_on_failure(self, codec: TokenCodec):
        encrypted = codec.encrypt("refresh-token")

        assert TokenCodec("another-secret").decrypt_if_needed(encrypted) is None

    def test_decrypt_if_needed_propagates_configuration_error(self, codec: TokenCodec):
        """Test that a missing secret is not mistaken for a bad value."""
        encrypted = codec.encrypt("refresh-token")

        with pytest.raises(ConfigurationError):
            TokenCodec(None).decrypt_if_needed(encrypted)


class TestGetTokenCodec:
    def test_prefers_encryption_key(self):
        with patch("opencalendars.core.encryption.settings.encryption_key", "primary"):
            with patch("opencalendars.core.encryption.settings.session_cookie_secret", "fallback"):
                encrypted = get_token_codec().encrypt("access-token")

        assert TokenCodec("primary").decrypt(encrypted) == "access-token"

    def test_falls_back_to_session_cookie_secret(self):
        with patch("opencalendars.core.encryption.settings.encryption_key", None):
            with patch("opencalendars.core.encryption.settings.session_cookie_secret", "fallback"):
                encrypted = get_token_codec().encrypt("access-token")

        assert TokenCodec("fallback").decrypt(encrypted) == "access-token"

    def test_no_secret_configured(self):
        with patch("opencalendars.core.encryption.settings.encryption_key", None):
            with patch("opencalendars.core.encryption.settings.session_cookie_secret", None):
                codec = get_token_codec()

        with pytest.raises(ConfigurationError):
            codec.encrypt("access-token")
