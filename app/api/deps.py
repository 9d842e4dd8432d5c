from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_user_id
from app.core.roles import UserRole, check_role
from app.core.security import decode_session_token
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.services.email import EmailService
from app.services.storage.adapter import StorageAdapter
from app.services.storage.service import get_storage_adapter


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "unauthorized", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def get_email_service(request: Request) -> EmailService:
    mailer = getattr(request.app.state, "email_service", None)
    if mailer is None:
        mailer = EmailService()
        request.app.state.email_service = mailer
    return mailer


def get_document_storage(request: Request) -> StorageAdapter:
    storage = getattr(request.app.state, "document_storage", None)
    if storage is None:
        storage = get_storage_adapter()
        request.app.state.document_storage = storage
    return storage


def extract_token(request: Request, bearer: str | None) -> str | None:
    """Authorization header wins over the session cookie."""
    if bearer:
        return bearer
    return request.cookies.get(settings.auth_cookie_name) or None


async def get_current_user(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    token = extract_token(request, bearer)
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_session_token(token)
    except ValueError as exc:
        raise _unauthorized(str(exc)) from exc

    try:
        user_id = UUID(str(payload.get("sub") or payload.get("userId")))
    except ValueError as exc:
        raise _unauthorized("Invalid token") from exc

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise _unauthorized("User not found")
    token_version = payload.get("tv")
    if token_version is not None and (user.token_version or 0) != token_version:
        raise _unauthorized("Token revoked")

    set_user_id(str(user.id))
    return user


def require_role(required: UserRole):
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not check_role(current_user.role, required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "forbidden",
                    "message": f"{required.value.title()} access required",
                },
            )
        return current_user

    return dependency


require_admin = require_role(UserRole.ADMIN)
