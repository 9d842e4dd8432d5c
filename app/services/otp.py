from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum

import pyotp
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.settings import settings
from app.models.otp_verification import OtpVerification

OTP_DIGITS = 6


class OtpPurpose(str, Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


def _issue_secret(email: str, purpose: str) -> str:
    # Each issuance keys the time-windowed generator with a fresh nonce, so a code
    # cannot be derived from the deployment secret and the clock alone.
    nonce = secrets.token_bytes(16)
    digest = hmac.new(
        settings.otp_secret.encode("utf-8"),
        f"{email}:{purpose}:".encode("utf-8") + nonce,
        hashlib.sha256,
    ).digest()
    return base64.b32encode(digest).decode("ascii").rstrip("=")


def generate_code(email: str = "", purpose: str = "") -> str:
    totp = pyotp.TOTP(
        _issue_secret(email, purpose), digits=OTP_DIGITS, interval=settings.otp_step_seconds
    )
    return totp.now()


def ttl_for(purpose: OtpPurpose | str) -> timedelta:
    if OtpPurpose(purpose) is OtpPurpose.PASSWORD_RESET:
        return timedelta(minutes=settings.otp_password_reset_ttl_minutes)
    return timedelta(minutes=settings.otp_verification_ttl_minutes)


async def issue_otp(db: AsyncSession, email: str, purpose: OtpPurpose | str) -> str:
    """Invalidate pending codes for (email, purpose) and persist a fresh one.

    The caller owns the transaction and must commit.
    """
    purpose_value = OtpPurpose(purpose).value
    now = datetime.now(timezone.utc)
    await db.execute(
        update(OtpVerification)
        .where(
            OtpVerification.email == email,
            OtpVerification.purpose == purpose_value,
            OtpVerification.used.is_(False),
        )
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    code = generate_code(email, purpose_value)
    db.add(
        OtpVerification(
            email=email,
            code=code,
            purpose=purpose_value,
            expires_at=now + ttl_for(purpose_value),
            used=False,
        )
    )
    await db.flush()
    return code


async def find_active_otp(
    db: AsyncSession, email: str, code: str, purpose: OtpPurpose | str
) -> OtpVerification | None:
    now = datetime.now(timezone.utc)
    stmt = (
        select(OtpVerification)
        .where(
            OtpVerification.email == email,
            OtpVerification.code == code,
            OtpVerification.purpose == OtpPurpose(purpose).value,
            OtpVerification.used.is_(False),
            OtpVerification.expires_at > now,
        )
        .order_by(OtpVerification.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def verify_otp(db: AsyncSession, email: str, code: str, purpose: OtpPurpose | str) -> bool:
    """Check a code without consuming it."""
    return await find_active_otp(db, email, code, purpose) is not None


async def consume_otp(db: AsyncSession, email: str, code: str, purpose: OtpPurpose | str) -> bool:
    """Validate and mark a code used.

    The used flag is flipped with a conditional update so two concurrent
    consumers cannot both succeed. The caller commits together with the
    action the code authorizes.
    """
    record = await find_active_otp(db, email, code, purpose)
    if record is None:
        return False
    result = await db.execute(
        update(OtpVerification)
        .where(OtpVerification.id == record.id, OtpVerification.used.is_(False))
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    set_committed_value(record, "used", True)
    return True
