"""Fernet encryption for OAuth tokens stored at rest."""
from cryptography.fernet import Fernet, InvalidToken

from .config import settings


class TokenEncryptionError(Exception):
    """Encryption key missing or ciphertext not readable with the configured key."""


def _fernet(key: str | None = None) -> Fernet:
    key = key or settings.TOKEN_ENCRYPTION_KEY
    if not key:
        raise TokenEncryptionError("TOKEN_ENCRYPTION_KEY is not configured")
    try:
        return Fernet(key.encode() if isinstance(key, str) else key)
    except (TypeError, ValueError) as exc:
        raise TokenEncryptionError("TOKEN_ENCRYPTION_KEY is not a valid Fernet key") from exc


def is_configured() -> bool:
    return bool(settings.TOKEN_ENCRYPTION_KEY)


def encrypt_token(value: str, key: str | None = None) -> str:
    return _fernet(key).encrypt(value.encode()).decode()


def decrypt_token(value: str, key: str | None = None) -> str:
    try:
        return _fernet(key).decrypt(value.encode()).decode()
    except InvalidToken as exc:
        raise TokenEncryptionError("Stored token could not be decrypted") from exc
