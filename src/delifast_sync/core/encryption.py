"""Credential encryption (AES-256-GCM).

Ciphertext is stored as ``{iv_hex}:{auth_tag_hex}:{cipher_hex}``.
"""

import hashlib
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from delifast_sync.config.settings import settings
from delifast_sync.core.exceptions import EncryptionFormatError

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16


def _get_key(secret: Optional[str] = None) -> bytes:
    """Hash the configured secret to exactly 32 bytes."""
    secret = secret if secret is not None else settings.encryption_key
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt(text: Optional[str], secret: Optional[str] = None) -> Optional[str]:
    """Encrypt a string.

    Args:
        text: Plain text to encrypt
        secret: Override for the configured encryption key

    Returns:
        Encrypted string, or None if input is empty
    """
    if not text:
        return None

    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_get_key(secret)).encrypt(iv, text.encode("utf-8"), None)
    cipher, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]

    return f"{iv.hex()}:{auth_tag.hex()}:{cipher.hex()}"


def decrypt(encrypted_text: Optional[str], secret: Optional[str] = None) -> Optional[str]:
    """Decrypt a string.

    Values without any colon are treated as legacy plaintext and returned
    unchanged.

    Args:
        encrypted_text: Encrypted string
        secret: Override for the configured encryption key

    Returns:
        Decrypted text, or None if input is empty

    Raises:
        EncryptionFormatError: If the value is not iv:tag:cipher or fails
            authentication
    """
    if not encrypted_text:
        return None

    # Plain text (not encrypted) - for backwards compatibility
    if ":" not in encrypted_text:
        return encrypted_text

    parts = encrypted_text.split(":")
    if len(parts) != 3:
        raise EncryptionFormatError("Invalid encrypted format")

    try:
        iv = bytes.fromhex(parts[0])
        auth_tag = bytes.fromhex(parts[1])
        cipher = bytes.fromhex(parts[2])
    except ValueError as e:
        raise EncryptionFormatError("Invalid encrypted format") from e

    try:
        plain = AESGCM(_get_key(secret)).decrypt(iv, cipher + auth_tag, None)
    except (InvalidTag, ValueError) as e:
        raise EncryptionFormatError("Unable to decrypt value") from e

    return plain.decode("utf-8")
