"""
Credential encryption and request signing.

OAuth tokens are stored as ``v1:<nonce>:<ciphertext>`` strings, both parts
base64url encoded without padding, produced with AES-256-GCM. OAuth state
cookies are signed with HMAC-SHA256. Both keys are derived with HKDF from the
``APP_ENCRYPTION_KEY`` master key so neither is used for two purposes.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from omnicrm.core.logging_config import get_logger

logger = get_logger(__name__)

CIPHERTEXT_VERSION = "v1"
NONCE_BYTES = 12
MASTER_KEY_BYTES = 32


class CredentialEncryptionError(Exception):
    """Raised when credentials cannot be encrypted or decrypted."""


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def load_master_key(raw_key: Optional[str] = None) -> bytes:
    """
    Decode the master key.

    Args:
        raw_key: Base64 (standard or url-safe) 32 byte key; defaults to
            ``settings.security.encryption_key``

    Raises:
        CredentialEncryptionError: If the key is missing or not 32 bytes
    """
    if raw_key is None:
        from omnicrm.server.core.config import settings

        raw_key = settings.security.encryption_key
    if not raw_key:
        raise CredentialEncryptionError(
            "APP_ENCRYPTION_KEY must be set. Generate one with: "
            "python -c 'import os, base64; print(base64.b64encode(os.urandom(32)).decode())'"
        )
    try:
        key = _b64url_decode(raw_key.strip().replace("+", "-").replace("/", "_").rstrip("="))
    except (binascii.Error, ValueError) as e:
        raise CredentialEncryptionError(f"Invalid encryption key format: {e}") from e
    if len(key) != MASTER_KEY_BYTES:
        raise CredentialEncryptionError(f"Encryption key must decode to {MASTER_KEY_BYTES} bytes, got {len(key)}")
    return key


def _derive(master_key: bytes, purpose: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=b"omnicrm:" + purpose).derive(master_key)


def is_encrypted(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(f"{CIPHERTEXT_VERSION}:") and value.count(":") == 2


def encrypt_string(plaintext: str, raw_key: Optional[str] = None) -> str:
    """Encrypt ``plaintext`` into the versioned ``v1:<nonce>:<ciphertext>`` format."""
    key = _derive(load_master_key(raw_key), b"enc")
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return f"{CIPHERTEXT_VERSION}:{_b64url_encode(nonce)}:{_b64url_encode(ciphertext)}"


def decrypt_string(value: str, raw_key: Optional[str] = None) -> str:
    """
    Decrypt a value produced by :func:`encrypt_string`.

    Raises:
        CredentialEncryptionError: On unknown format, wrong key or tampered data
    """
    if not is_encrypted(value):
        raise CredentialEncryptionError("Value is not in the v1 encrypted format")
    _, nonce_part, ciphertext_part = value.split(":")
    key = _derive(load_master_key(raw_key), b"enc")
    try:
        plaintext = AESGCM(key).decrypt(_b64url_decode(nonce_part), _b64url_decode(ciphertext_part), None)
    except (InvalidTag, binascii.Error, ValueError) as e:
        logger.error("Failed to decrypt credential")
        raise CredentialEncryptionError("Decryption failed") from e
    return plaintext.decode("utf-8")


def hmac_sign(data: str, raw_key: Optional[str] = None) -> str:
    key = _derive(load_master_key(raw_key), b"mac")
    return _b64url_encode(hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest())


def hmac_verify(data: str, signature: str, raw_key: Optional[str] = None) -> bool:
    return hmac.compare_digest(hmac_sign(data, raw_key), signature)


def random_nonce(nbytes: int = 18) -> str:
    """Url-safe random string; 18 bytes give 24 characters."""
    return secrets.token_urlsafe(nbytes)
