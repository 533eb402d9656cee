"""
Encryption utilities for secrets stored in the database.

Uses Fernet (symmetric encryption) with a key derived from the application
secret key. Used for the SMTP password in the system settings.
"""
import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

_KEY_SALT = b"compass_settings_encryption_salt_v1"


class EncryptionError(Exception):
    """Raised when a stored secret cannot be encrypted or decrypted."""

    pass


def derive_key(secret_key: str) -> bytes:
    """
    Derive a Fernet-compatible key from the application secret key.

    Uses PBKDF2-HMAC-SHA256 to derive 32 bytes, then base64-encodes them
    as Fernet requires.
    """
    if not secret_key:
        raise EncryptionError("Cannot derive an encryption key without a secret key")

    key_bytes = hashlib.pbkdf2_hmac(
        "sha256",
        secret_key.encode("utf-8"),
        _KEY_SALT,
        iterations=100000,
        dklen=32,
    )
    return base64.urlsafe_b64encode(key_bytes)


def encrypt_value(plaintext: str, secret_key: str) -> str:
    """
    Encrypt a string value using Fernet symmetric encryption.

    Returns:
        Base64-encoded token string
    """
    fernet = Fernet(derive_key(secret_key))
    return fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_value(ciphertext: str, secret_key: str) -> str:
    """
    Decrypt a Fernet-encrypted string.

    Raises:
        EncryptionError: If the token is corrupted or was produced with a
            different secret key
    """
    fernet = Fernet(derive_key(secret_key))
    try:
        return fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        logger.error("Decryption failed: Invalid token (wrong key or corrupted data)")
        raise EncryptionError("Stored secret could not be decrypted") from e
