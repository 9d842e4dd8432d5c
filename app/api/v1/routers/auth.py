from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import auth_rate_limit, limiter, otp_rate_limit
from app.core.security import session_cookie_max_age
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    RegisterRequest,
    ResendOtpRequest,
    UserOut,
    VerifyEmailRequest,
)
from app.schemas.common import MessageResponse
from app.services import auth_flow
from app.services.email import EmailService
from app.services.otp import OtpPurpose
from app.utils.login_security import enforce_login_limits, record_login_attempt

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=session_cookie_max_age(),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> AuthResponse:
    user, token = await auth_flow.register(
        db,
        mailer,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return AuthResponse(
        message="Registration successful. Please check your email for the verification code.",
        user=UserOut.model_validate(user),
        token=token,
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit(auth_rate_limit)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> AuthResponse:
    client_ip = request.client.host if request.client else "unknown"
    await enforce_login_limits(client_ip, credentials.email)
    try:
        user, token = await auth_flow.login(
            db, mailer, email=credentials.email, password=credentials.password
        )
    except auth_flow.AuthFlowError:
        await record_login_attempt(credentials.email, success=False)
        raise
    await record_login_attempt(credentials.email, success=True)

    _set_session_cookie(response, token)
    return AuthResponse(message="Login successful", user=UserOut.model_validate(user), token=token)


@router.post("/verify-email", response_model=MessageResponse)
@limiter.limit(auth_rate_limit)
async def verify_email(
    payload: VerifyEmailRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await auth_flow.verify_email(db, email=payload.email, code=payload.code)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-otp", response_model=MessageResponse)
@limiter.limit(otp_rate_limit)
async def resend_otp(
    payload: ResendOtpRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> MessageResponse:
    purpose = (
        OtpPurpose.PASSWORD_RESET
        if payload.type == "password_reset"
        else OtpPurpose.EMAIL_VERIFICATION
    )
    await auth_flow.resend_otp(db, mailer, email=payload.email, purpose=purpose)
    return MessageResponse(message="Verification code sent successfully")


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(otp_rate_limit)
async def request_password_reset(
    payload: PasswordResetRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> MessageResponse:
    message = await auth_flow.request_password_reset(db, mailer, email=payload.email)
    return MessageResponse(message=message)


@router.post("/reset-password/confirm", response_model=MessageResponse)
@limiter.limit(auth_rate_limit)
async def confirm_password_reset(
    payload: PasswordResetConfirmRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> MessageResponse:
    await auth_flow.confirm_password_reset(
        db, mailer, email=payload.email, code=payload.otp, new_password=payload.new_password
    )
    return MessageResponse(message="Password reset successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await auth_flow.logout(db, current_user)
    response.delete_cookie(settings.auth_cookie_name, path="/")
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: User = Depends(deps.get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)
