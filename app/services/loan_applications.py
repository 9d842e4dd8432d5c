from __future__ import annotations

import logging
import math
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.loan_application import LoanApplication
from app.models.user import User
from app.schemas.loan import LoanApplicationStatus
from app.services.audit import emit_audit_event, product_snapshot, record_application_log
from app.services.email import EmailService
from app.services.loan_workflow import (
    application_id_prefix,
    generate_application_id,
    notify_submitted,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _with_related(stmt, *, logs: bool = False):
    options = [selectinload(LoanApplication.documents), selectinload(LoanApplication.user)]
    if logs:
        options.append(selectinload(LoanApplication.logs))
    return stmt.options(*options).execution_options(populate_existing=True)


def _newest_first(stmt):
    return stmt.order_by(LoanApplication.created_at.desc(), LoanApplication.id.desc())


async def get_application(
    db: AsyncSession, application_pk: UUID, *, logs: bool = False
) -> LoanApplication | None:
    stmt = _with_related(select(LoanApplication), logs=logs).where(
        LoanApplication.id == application_pk
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_application_id(
    db: AsyncSession, application_id: str, *, logs: bool = False
) -> LoanApplication | None:
    stmt = _with_related(select(LoanApplication), logs=logs).where(
        LoanApplication.application_id == application_id
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_application(
    db: AsyncSession, identifier: str, *, logs: bool = False
) -> LoanApplication | None:
    """Look an application up by internal UUID or by its human identifier."""
    try:
        application_pk = UUID(str(identifier))
    except ValueError:
        return await get_by_application_id(db, identifier, logs=logs)
    return await get_application(db, application_pk, logs=logs)


async def submit_application(
    db: AsyncSession,
    mailer: EmailService,
    user: User,
    payload,
    *,
    per_product: bool = False,
) -> LoanApplication:
    data = payload.model_dump(mode="python")
    loan_type = data.pop("loan_type")
    data["loan_type"] = getattr(loan_type, "value", loan_type)
    for key in ("home_ownership", "marital_status"):
        if data.get(key) is not None:
            data[key] = getattr(data[key], "value", data[key])
    data["first_name"] = data.get("first_name") or user.first_name
    data["last_name"] = data.get("last_name") or user.last_name
    data["email"] = data.get("email") or user.email

    prefix = application_id_prefix(data["loan_type"], per_product=per_product)
    application = LoanApplication(
        **data,
        application_id=await generate_application_id(db, prefix),
        user_id=user.id,
        status=LoanApplicationStatus.PENDING.value,
    )
    db.add(application)
    await db.flush()
    record_application_log(
        db,
        application,
        action="CREATED",
        performed_by=user.id,
        notes=f"{data['loan_type']} application submitted",
        metadata={
            "loanAmount": application.loan_amount,
            "tenure": application.tenure,
            **product_snapshot(application),
        },
    )
    await db.commit()
    emit_audit_event(application, action="CREATED", performed_by=user.id)
    logger.info("Submitted loan application %s", application.application_id)

    stored = await get_application(db, application.id)
    await notify_submitted(mailer, stored)
    return stored


async def list_user_applications(
    db: AsyncSession, user: User, *, loan_type: str | None = None
) -> list[LoanApplication]:
    stmt = _with_related(select(LoanApplication)).where(LoanApplication.user_id == user.id)
    if loan_type:
        stmt = stmt.where(LoanApplication.loan_type == loan_type)
    result = await db.execute(_newest_first(stmt))
    return list(result.scalars().all())


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


async def list_admin_applications(
    db: AsyncSession,
    *,
    status: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> tuple[list[LoanApplication], int]:
    conditions = []
    if status:
        conditions.append(LoanApplication.status == status)

    count_stmt = select(func.count()).select_from(LoanApplication).where(*conditions)
    count_result = await db.execute(count_stmt)
    total = int(count_result.scalar_one() or 0)

    stmt = (
        _newest_first(_with_related(select(LoanApplication)).where(*conditions))
        .limit(limit)
        .offset((page - 1) * limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def list_for_export(db: AsyncSession, *, status: str | None = None) -> list[LoanApplication]:
    stmt = select(LoanApplication).options(selectinload(LoanApplication.user))
    if status:
        stmt = stmt.where(LoanApplication.status == status)
    result = await db.execute(_newest_first(stmt))
    return list(result.scalars().all())


async def get_statistics(db: AsyncSession) -> dict:
    approved = LoanApplicationStatus.APPROVED.value
    stmt = select(
        func.count(LoanApplication.id),
        func.count(case((LoanApplication.status == LoanApplicationStatus.PENDING.value, 1))),
        func.count(case((LoanApplication.status == approved, 1))),
        func.count(case((LoanApplication.status == LoanApplicationStatus.REJECTED.value, 1))),
        func.coalesce(
            func.sum(case((LoanApplication.status == approved, LoanApplication.approved_amount))),
            0,
        ),
    )
    total, pending, approved_count, rejected, approved_sum = (await db.execute(stmt)).one()
    return {
        "total_applications": int(total or 0),
        "pending": int(pending or 0),
        "approved": int(approved_count or 0),
        "rejected": int(rejected or 0),
        "total_approved_amount": Decimal(str(approved_sum or 0)),
    }
