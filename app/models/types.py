from typing import Optional, Sequence

from cryptography.fernet import InvalidToken
from sqlalchemy import LargeBinary
from sqlalchemy.types import TypeDecorator

from app.core.fernet_crypto import get_fernet


class EncryptedString(TypeDecorator):
    """BVN, NIN and bank account numbers, stored as Fernet tokens.

    Values are stripped before encryption; blank strings are stored as NULL.
    """

    impl = LargeBinary
    cache_ok = True

    def __init__(self, *, secrets: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(**kwargs)
        self._secrets = tuple(secrets) if secrets else None

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        cleaned = str(value).strip()
        if not cleaned:
            return None
        return get_fernet(secrets=self._secrets).encrypt(cleaned.encode("utf-8"))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return get_fernet(secrets=self._secrets).decrypt(bytes(value)).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Unable to decrypt value; check FIELD_ENCRYPTION_KEY") from exc


__all__ = ["EncryptedString"]
