"""Security layer — encryption of stored data source credentials."""

from toolforge.security.credentials import (
    CredentialCipher,
    decrypt,
    encrypt,
    is_valid_key,
    open_descriptor,
    seal_descriptor,
)

__all__ = [
    "CredentialCipher",
    "decrypt",
    "encrypt",
    "is_valid_key",
    "open_descriptor",
    "seal_descriptor",
]
