"""Credential vault for tenant database passwords.

Values are stored as ``nonce_hex:ciphertext_hex`` using AES-256-GCM with a
fresh random 12-byte nonce per encryption; the ciphertext carries the
16-byte authentication tag, so any altered value fails to decrypt. The key
is derived once from the configured passphrase with scrypt and a fixed
salt, so every process sharing the passphrase can decrypt every stored
value.

Values without a separator are treated as legacy plaintext and returned
unchanged. That path is a weakened, read-only compatibility fallback for
records written before encryption; encrypt() never produces such values.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from tenancy.ports.exceptions import CredentialDecryptionError

if TYPE_CHECKING:
    from infrastructure.settings import VaultSettings

_SALT = b"salt"
_KEY_LENGTH = 32
_NONCE_LENGTH = 12
_TAG_LENGTH = 16
_SEPARATOR = ":"

logger = structlog.get_logger()


def derive_key(passphrase: str) -> bytes:
    """Derive the AES-256 key (scrypt, n=16384, r=8, p=1, fixed salt)."""
    kdf = Scrypt(salt=_SALT, length=_KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(passphrase.encode("utf-8"))


def is_encrypted(value: str) -> bool:
    """Check whether a stored value uses the encrypted format."""
    return _SEPARATOR in value


class CredentialVault:
    """Authenticated symmetric encryption of tenant database passwords."""

    def __init__(self, passphrase: str) -> None:
        if not passphrase:
            raise ValueError("Vault passphrase must not be empty")
        self._aead = AESGCM(derive_key(passphrase))

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> CredentialVault:
        return cls(settings.passphrase.get_secret_value())

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a value to ``nonce_hex:ciphertext_hex``."""
        nonce = os.urandom(_NONCE_LENGTH)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return f"{nonce.hex()}{_SEPARATOR}{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        """Decrypt a stored value.

        Raises:
            CredentialDecryptionError: If the value is malformed, was altered,
                or the key does not match
        """
        if not is_encrypted(value):
            logger.warning("legacy_plaintext_credential_read")
            return value

        parts = value.split(_SEPARATOR)
        if len(parts) != 2:
            raise CredentialDecryptionError("Malformed credential: unexpected separators")

        nonce_hex, ciphertext_hex = parts
        try:
            nonce = bytes.fromhex(nonce_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as e:
            raise CredentialDecryptionError("Malformed credential: invalid hex") from e

        if len(nonce) != _NONCE_LENGTH:
            raise CredentialDecryptionError("Malformed credential: invalid nonce length")
        if len(ciphertext) < _TAG_LENGTH:
            raise CredentialDecryptionError(
                "Malformed credential: ciphertext shorter than its tag"
            )

        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as e:
            raise CredentialDecryptionError(
                "Credential could not be decrypted with the configured key"
            ) from e
