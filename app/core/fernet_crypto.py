"""Column encryption keys for borrower identity and bank data.

Keys are derived from ``FIELD_ENCRYPTION_KEY`` (falling back to ``SECRET_KEY``).
Retired secrets listed in ``FIELD_ENCRYPTION_PREVIOUS_KEYS`` still decrypt, so a
key can be rotated without rewriting every row at once.
"""

from __future__ import annotations

import base64
from functools import lru_cache
from typing import Sequence

from cryptography.fernet import Fernet, MultiFernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.settings import settings


_KDF_SALT = b"litefi-column-encryption-v1"
_KDF_ITERATIONS = 200_000


def _derive_key(secret: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


@lru_cache(maxsize=16)
def _fernet_for_secret(secret: str) -> Fernet:
    return Fernet(_derive_key(secret))


def get_fernet(*, secrets: Sequence[str] | None = None) -> MultiFernet:
    """Encrypt with the first secret; decrypt with any of them."""
    chosen = list(secrets or settings.field_encryption_secrets)
    return MultiFernet([_fernet_for_secret(secret) for secret in chosen])


def rotate_token(token: bytes, *, secrets: Sequence[str] | None = None) -> bytes:
    """Re-encrypt a stored value under the current secret."""
    return get_fernet(secrets=secrets).rotate(token)
