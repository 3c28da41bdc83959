"""Credential encryption for stored data source configurations.

AES-256-GCM authenticated encryption. Tokens have the form::

    <iv hex>:<auth tag hex>:<ciphertext hex>

with a fresh 16-byte IV per call and a 16-byte tag. Any malformed,
truncated or tampered token, or one sealed with a different key, raises
:class:`CredentialIntegrityError`; it is never read as "no credentials".
"""

from __future__ import annotations

import json
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from toolforge.config import get_settings
from toolforge.datasources.models import ConnectionDescriptor
from toolforge.exceptions import CredentialConfigurationError, CredentialIntegrityError

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16

_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def is_valid_key(key: object) -> bool:
    """True for a 64-character hex string (a 32-byte AES-256 key)."""
    return isinstance(key, str) and bool(_KEY_RE.match(key))


class CredentialCipher:
    """Encrypts and decrypts credential blobs with one AES-256 key."""

    def __init__(self, key_hex: str) -> None:
        if not is_valid_key(key_hex):
            raise CredentialConfigurationError(
                "Encryption key must be 64 hex characters (32 bytes)"
            )
        self._aead = AESGCM(bytes.fromhex(key_hex))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(key=***)"

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        # cryptography appends the tag to the ciphertext.
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, token: str) -> str:
        if not token or not isinstance(token, str):
            raise CredentialIntegrityError("Invalid encrypted text")

        parts = token.split(":")
        if len(parts) != 3 or not parts[0] or not parts[1]:
            raise CredentialIntegrityError("Invalid encrypted text format")
        iv_hex, tag_hex, ciphertext_hex = parts

        try:
            iv = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as exc:
            raise CredentialIntegrityError("Invalid encrypted text encoding") from exc

        if len(iv) != IV_LENGTH:
            raise CredentialIntegrityError("Invalid IV length")
        if len(tag) != AUTH_TAG_LENGTH:
            raise CredentialIntegrityError("Invalid auth tag length")

        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise CredentialIntegrityError(
                "Encrypted credentials failed authentication "
                "(tampered data or wrong key)"
            ) from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CredentialIntegrityError("Decrypted credentials are not valid UTF-8") from exc


def default_cipher() -> CredentialCipher:
    """Cipher built from ``settings.credentials.encryption_key``."""
    key = get_settings().credentials.encryption_key
    if key is None:
        raise CredentialConfigurationError(
            "Encryption key is not configured (set TOOLFORGE_CREDENTIALS__ENCRYPTION_KEY)"
        )
    return CredentialCipher(key.get_secret_value())


def encrypt(plaintext: str) -> str:
    return default_cipher().encrypt(plaintext)


def decrypt(token: str) -> str:
    return default_cipher().decrypt(token)


# ---------------------------------------------------------------------------
# Connection descriptors
# ---------------------------------------------------------------------------


def seal_descriptor(
    descriptor: ConnectionDescriptor, cipher: CredentialCipher | None = None
) -> str:
    """Serialize and encrypt a descriptor for storage."""
    cipher = cipher or default_cipher()
    payload = descriptor.model_dump(by_alias=True, exclude={"password"})
    payload["password"] = descriptor.password.get_secret_value()
    return cipher.encrypt(json.dumps(payload))


def open_descriptor(
    token: str, cipher: CredentialCipher | None = None
) -> ConnectionDescriptor:
    """Decrypt a stored token back into a :class:`ConnectionDescriptor`."""
    cipher = cipher or default_cipher()
    plaintext = cipher.decrypt(token)
    try:
        return ConnectionDescriptor.model_validate_json(plaintext)
    except ValidationError as exc:
        # The message would echo the decrypted input; keep only field locations.
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise CredentialIntegrityError(
            f"Stored credentials are not a valid connection config (fields: {fields})"
        ) from exc
