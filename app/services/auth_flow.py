from __future__ import annotations

import logging
from typing import Awaitable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_user_id
from app.core.errors import ServiceError
from app.core.roles import UserRole
from app.core.security import constant_time_verify, create_session_token, get_password_hash
from app.models.user import User
from app.services import otp
from app.services.email import EmailService

logger = logging.getLogger(__name__)

PASSWORD_RESET_GENERIC_MESSAGE = (
    "If an account with that email exists, a password reset code has been sent."
)


class AuthFlowError(ServiceError):
    """Registration, verification or password-reset step refused."""


class EmailVerificationRequired(Exception):
    """Credentials were valid but the email address is not verified yet."""

    def __init__(self, email: str, message: str | None = None) -> None:
        self.email = email
        self.message = message or (
            "Please verify your email address. A new verification code has been sent."
        )
        super().__init__(self.message)


async def best_effort(label: str, send: Awaitable[bool]) -> bool:
    """Await a notification; failures are logged and never propagate."""
    try:
        delivered = bool(await send)
    except Exception:
        logger.exception("Notification %s raised", label)
        return False
    if not delivered:
        logger.warning("Notification %s was not delivered", label)
    return delivered


def issue_session_token(user: User) -> str:
    return create_session_token(
        user_id=str(user.id),
        email=user.email,
        role=user.role,
        token_version=user.token_version or 0,
    )


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def register(
    db: AsyncSession,
    mailer: EmailService,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> tuple[User, str]:
    email = email.strip().lower()
    if await get_user_by_email(db, email) is not None:
        raise AuthFlowError(
            code="email_exists",
            message="An account with this email already exists",
            status_code=409,
        )

    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=UserRole.USER.value,
        email_verified=False,
        token_version=0,
    )
    db.add(user)
    try:
        await db.flush()
        code = await otp.issue_otp(db, email, otp.OtpPurpose.EMAIL_VERIFICATION)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise AuthFlowError(
            code="email_exists",
            message="An account with this email already exists",
            status_code=409,
        ) from exc
    logger.info("Registered user %s", user.id)

    await best_effort("verification", mailer.send_verification_email(email, code))
    await best_effort("welcome", mailer.send_welcome_email(email, first_name))
    return user, issue_session_token(user)


async def login(
    db: AsyncSession,
    mailer: EmailService,
    *,
    email: str,
    password: str,
) -> tuple[User, str]:
    user = await get_user_by_email(db, email)
    if not constant_time_verify(user.hashed_password if user else None, password) or user is None:
        raise AuthFlowError(
            code="invalid_credentials",
            message="Invalid email or password",
            status_code=401,
        )

    if not user.email_verified:
        code = await otp.issue_otp(db, user.email, otp.OtpPurpose.EMAIL_VERIFICATION)
        await db.commit()
        await best_effort("verification", mailer.send_verification_email(user.email, code))
        raise EmailVerificationRequired(user.email)

    set_user_id(str(user.id))
    logger.info("User %s logged in", user.id)
    return user, issue_session_token(user)


async def verify_email(db: AsyncSession, *, email: str, code: str) -> User:
    email = email.strip().lower()
    user = await get_user_by_email(db, email)
    if user is None or not await otp.consume_otp(
        db, email, code, otp.OtpPurpose.EMAIL_VERIFICATION
    ):
        await db.rollback()
        raise AuthFlowError(code="invalid_otp", message="Invalid or expired verification code")
    user.email_verified = True
    db.add(user)
    await db.commit()
    logger.info("Email verified for user %s", user.id)
    return user


async def resend_otp(
    db: AsyncSession,
    mailer: EmailService,
    *,
    email: str,
    purpose: otp.OtpPurpose,
) -> None:
    user = await get_user_by_email(db, email)
    if user is None:
        raise AuthFlowError(code="user_not_found", message="User not found", status_code=404)
    if purpose is otp.OtpPurpose.EMAIL_VERIFICATION and user.email_verified:
        raise AuthFlowError(code="already_verified", message="Email is already verified")

    code = await otp.issue_otp(db, user.email, purpose)
    await db.commit()
    if purpose is otp.OtpPurpose.PASSWORD_RESET:
        sent = await best_effort("password_reset", mailer.send_password_reset_email(user.email, code))
    else:
        sent = await best_effort("verification", mailer.send_verification_email(user.email, code))
    if not sent:
        raise AuthFlowError(
            code="email_send_failed",
            message="Failed to send verification code. Please try again.",
            status_code=500,
        )


async def request_password_reset(db: AsyncSession, mailer: EmailService, *, email: str) -> str:
    user = await get_user_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return PASSWORD_RESET_GENERIC_MESSAGE
    code = await otp.issue_otp(db, user.email, otp.OtpPurpose.PASSWORD_RESET)
    await db.commit()
    await best_effort("password_reset", mailer.send_password_reset_email(user.email, code))
    return PASSWORD_RESET_GENERIC_MESSAGE


async def confirm_password_reset(
    db: AsyncSession,
    mailer: EmailService,
    *,
    email: str,
    code: str,
    new_password: str,
) -> User:
    email = email.strip().lower()
    user = await get_user_by_email(db, email)
    if user is None or not await otp.consume_otp(db, email, code, otp.OtpPurpose.PASSWORD_RESET):
        await db.rollback()
        raise AuthFlowError(code="invalid_otp", message="Invalid or expired reset code")

    user.hashed_password = get_password_hash(new_password)
    # sessions issued before the reset stop validating
    user.token_version = (user.token_version or 0) + 1
    db.add(user)
    await db.commit()
    logger.info("Password reset for user %s", user.id)
    await best_effort("password_changed", mailer.send_password_changed_email(user.email))
    return user


async def logout(db: AsyncSession, user: User) -> None:
    user.token_version = (user.token_version or 0) + 1
    db.add(user)
    await db.commit()
