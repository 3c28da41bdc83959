"""Unit tests — credential encryption (AES-256-GCM)."""

from __future__ import annotations

import pytest

from toolforge.config import Settings, override_settings
from toolforge.datasources.models import ConnectionDescriptor
from toolforge.exceptions import CredentialConfigurationError, CredentialIntegrityError
from toolforge.security import credentials
from toolforge.security.credentials import (
    CredentialCipher,
    is_valid_key,
    open_descriptor,
    seal_descriptor,
)

KEY = "0123456789abcdef" * 4
OTHER_KEY = "f" * 64


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(KEY)


@pytest.mark.unit
class TestKeyValidation:
    def test_valid(self) -> None:
        assert is_valid_key(KEY) is True
        assert is_valid_key(KEY.upper()) is True

    @pytest.mark.parametrize("key", ["", "abc", "g" * 64, "0" * 63, "0" * 65, None, 42])
    def test_invalid(self, key) -> None:
        assert is_valid_key(key) is False

    def test_cipher_rejects_bad_key(self) -> None:
        with pytest.raises(CredentialConfigurationError):
            CredentialCipher("not-a-key")

    def test_repr_hides_key(self, cipher) -> None:
        assert KEY not in repr(cipher)


@pytest.mark.unit
class TestEncryptDecrypt:
    def test_token_format(self, cipher) -> None:
        token = cipher.encrypt("hello")
        iv_hex, tag_hex, ciphertext_hex = token.split(":")
        assert len(iv_hex) == 32
        assert len(tag_hex) == 32
        assert len(ciphertext_hex) == 2 * len("hello")
        assert cipher.decrypt(token) == "hello"

    def test_fresh_iv_per_call(self, cipher) -> None:
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_unicode(self, cipher) -> None:
        assert cipher.decrypt(cipher.encrypt("pässwörd ✓")) == "pässwörd ✓"

    def test_tampered_ciphertext(self, cipher) -> None:
        iv_hex, tag_hex, ciphertext_hex = cipher.encrypt("secret").split(":")
        flipped = format(int(ciphertext_hex[:2], 16) ^ 0x01, "02x") + ciphertext_hex[2:]
        with pytest.raises(CredentialIntegrityError, match="failed authentication"):
            cipher.decrypt(f"{iv_hex}:{tag_hex}:{flipped}")

    def test_tampered_tag(self, cipher) -> None:
        iv_hex, tag_hex, ciphertext_hex = cipher.encrypt("secret").split(":")
        bad_tag = ("0" if tag_hex[0] != "0" else "1") + tag_hex[1:]
        with pytest.raises(CredentialIntegrityError):
            cipher.decrypt(f"{iv_hex}:{bad_tag}:{ciphertext_hex}")

    def test_wrong_key(self, cipher) -> None:
        token = cipher.encrypt("secret")
        with pytest.raises(CredentialIntegrityError):
            CredentialCipher(OTHER_KEY).decrypt(token)

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "no-colons",
            "a:b",
            "a:b:c:d",
            ":" + "00" * 16 + ":00",
            "zz" * 16 + ":" + "00" * 16 + ":00",
            "00" * 8 + ":" + "00" * 16 + ":00",
            "00" * 16 + ":" + "00" * 8 + ":00",
        ],
    )
    def test_malformed(self, cipher, token: str) -> None:
        with pytest.raises(CredentialIntegrityError):
            cipher.decrypt(token)


@pytest.mark.unit
class TestSettingsKey:
    def test_module_functions_use_settings_key(self) -> None:
        token = credentials.encrypt("payload")
        assert CredentialCipher(KEY).decrypt(token) == "payload"
        assert credentials.decrypt(token) == "payload"

    def test_missing_key(self) -> None:
        override_settings(Settings())
        with pytest.raises(CredentialConfigurationError, match="not configured"):
            credentials.encrypt("payload")


@pytest.mark.unit
class TestDescriptorSealing:
    def test_round_trip(self, cipher, descriptor) -> None:
        token = seal_descriptor(descriptor, cipher)
        assert "s3cret" not in token
        restored = open_descriptor(token, cipher)
        assert restored == descriptor
        assert restored.password.get_secret_value() == "s3cret"

    def test_stored_json_uses_ssl_key(self, cipher) -> None:
        descriptor = ConnectionDescriptor(
            host="h", database="d", username="u", password="p", use_tls=True
        )
        plaintext = cipher.decrypt(seal_descriptor(descriptor, cipher))
        assert '"ssl": true' in plaintext
        assert '"password": "p"' in plaintext

    def test_invalid_payload_does_not_echo_plaintext(self, cipher) -> None:
        token = cipher.encrypt('{"host": "h", "password": "leaky"}')
        with pytest.raises(CredentialIntegrityError) as exc_info:
            open_descriptor(token, cipher)
        assert "leaky" not in str(exc_info.value)
        assert "database" in str(exc_info.value)
