from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ServiceError
from app.models.loan_application import LoanApplication
from app.models.user import User
from app.schemas.loan import LOAN_TYPE_DISPLAY_NAMES, LoanApplicationStatus, LoanType
from app.services.audit import emit_audit_event, record_application_log
from app.services.email import EmailService, format_display_date

logger = logging.getLogger(__name__)

_TOKEN_ALPHABET = string.ascii_uppercase + string.digits
TOKEN_LENGTH = 8
_MAX_ID_ATTEMPTS = 10
DISBURSEMENT_LEAD_DAYS = 3

LOAN_ID_PREFIXES: dict[str, str] = {
    LoanType.SALARY_CASH.value: "SL",
    LoanType.SALARY_CAR.value: "SC",
    LoanType.BUSINESS_CASH.value: "BC",
    LoanType.BUSINESS_CAR.value: "BCR",
}
DEFAULT_LOAN_ID_PREFIX = "LN"
GENERIC_APPLICATION_PREFIX = "LA"


class LoanWorkflowError(ServiceError):
    """Submission or review transition refused."""


def random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def loan_id_prefix(loan_type: str | None) -> str:
    return LOAN_ID_PREFIXES.get(loan_type or "", DEFAULT_LOAN_ID_PREFIX)


def build_loan_id(loan_type: str | None) -> str:
    return f"LN-{loan_id_prefix(loan_type)}-{random_token()}"


def application_id_prefix(loan_type: str | None, *, per_product: bool) -> str:
    if not per_product:
        return GENERIC_APPLICATION_PREFIX
    return loan_id_prefix(loan_type)


async def _unused(db: AsyncSession, column, value: str) -> bool:
    result = await db.execute(select(LoanApplication.id).where(column == value).limit(1))
    return result.first() is None


async def generate_application_id(db: AsyncSession, prefix: str) -> str:
    for _ in range(_MAX_ID_ATTEMPTS):
        candidate = f"{prefix}-{random_token()}"
        if await _unused(db, LoanApplication.application_id, candidate):
            return candidate
    raise LoanWorkflowError(
        code="id_generation_failed",
        message="Could not allocate an application identifier",
        status_code=500,
    )


async def generate_loan_id(db: AsyncSession, loan_type: str | None) -> str:
    for _ in range(_MAX_ID_ATTEMPTS):
        candidate = build_loan_id(loan_type)
        if await _unused(db, LoanApplication.loan_id, candidate):
            return candidate
    raise LoanWorkflowError(
        code="id_generation_failed",
        message="Could not allocate a loan identifier",
        status_code=500,
    )


def ensure_pending(application: LoanApplication) -> None:
    if application.status != LoanApplicationStatus.PENDING.value:
        raise LoanWorkflowError(
            code="not_pending",
            message="Loan application is not pending",
            details={"status": application.status},
        )


async def _flush_transition(db: AsyncSession) -> None:
    try:
        await db.flush()
    except StaleDataError as exc:
        await db.rollback()
        raise LoanWorkflowError(
            code="concurrent_update",
            message="The loan application was updated by another request. Please refresh and retry.",
            status_code=409,
        ) from exc


def total_payable(amount: Decimal, interest_rate: Decimal) -> Decimal:
    return amount + amount * interest_rate / Decimal(100)


async def approve(
    db: AsyncSession,
    application: LoanApplication,
    *,
    approved_amount: Decimal,
    interest_rate: Decimal,
    approved_tenure: int,
    notes: str | None,
    actor: User,
) -> LoanApplication:
    """PENDING -> APPROVED together with its audit entry, in one commit."""
    ensure_pending(application)
    loan_id = await generate_loan_id(db, application.loan_type)

    application.status = LoanApplicationStatus.APPROVED.value
    application.approved_amount = approved_amount
    application.interest_rate = interest_rate
    application.approved_tenure = approved_tenure
    application.loan_id = loan_id
    application.reviewed_at = datetime.now(timezone.utc)
    application.reviewed_by = actor.id
    if notes:
        application.notes = notes
    db.add(application)
    record_application_log(
        db,
        application,
        action="APPROVED",
        performed_by=actor.id,
        notes=notes,
        metadata={
            "approvedAmount": approved_amount,
            "interestRate": interest_rate,
            "approvedTenure": approved_tenure,
            "loanId": loan_id,
        },
    )
    await _flush_transition(db)
    await db.commit()
    emit_audit_event(application, action="APPROVED", performed_by=actor.id)
    logger.info("Approved %s as %s", application.application_id, loan_id)
    return application


async def reject(
    db: AsyncSession,
    application: LoanApplication,
    *,
    reason: str,
    notes: str | None,
    actor: User,
) -> LoanApplication:
    """PENDING -> REJECTED together with its audit entry, in one commit."""
    ensure_pending(application)

    application.status = LoanApplicationStatus.REJECTED.value
    application.rejection_reason = reason
    application.reviewed_at = datetime.now(timezone.utc)
    application.reviewed_by = actor.id
    if notes:
        application.notes = notes
    db.add(application)
    record_application_log(
        db,
        application,
        action="REJECTED",
        performed_by=actor.id,
        notes=notes,
        metadata={"rejectionReason": reason},
    )
    await _flush_transition(db)
    await db.commit()
    emit_audit_event(application, action="REJECTED", performed_by=actor.id)
    logger.info("Rejected %s", application.application_id)
    return application


def _applicant(application: LoanApplication) -> tuple[str | None, str]:
    user = application.user
    email = application.email or (user.email if user else None)
    name_parts = [application.first_name, application.last_name]
    name = " ".join(part for part in name_parts if part) or (user.full_name if user else "")
    return email, name


def _display_loan_type(application: LoanApplication) -> str:
    return LOAN_TYPE_DISPLAY_NAMES.get(application.loan_type, application.loan_type)


async def notify_submitted(mailer: EmailService, application: LoanApplication) -> bool:
    from app.services.auth_flow import best_effort

    email, name = _applicant(application)
    if not email:
        return False
    return await best_effort(
        "loan_application_received",
        mailer.send_loan_application_notification(
            email,
            name,
            {
                "application_id": application.application_id,
                "loan_type": _display_loan_type(application),
                "amount": application.loan_amount,
                "duration": application.tenure,
                "application_date": format_display_date(application.created_at),
            },
        ),
    )


async def notify_approved(mailer: EmailService, application: LoanApplication) -> bool:
    from app.services.auth_flow import best_effort

    email, name = _applicant(application)
    if not email:
        return False
    reviewed_at = application.reviewed_at or datetime.now(timezone.utc)
    return await best_effort(
        "loan_approval",
        mailer.send_loan_approval_email(
            email,
            name,
            {
                "amount": application.approved_amount,
                "loan_id": application.loan_id,
                "duration": application.approved_tenure,
                "total_payable": total_payable(
                    Decimal(application.approved_amount), Decimal(application.interest_rate)
                ),
                "disbursement_date": format_display_date(
                    reviewed_at + timedelta(days=DISBURSEMENT_LEAD_DAYS)
                ),
            },
        ),
    )


async def notify_rejected(mailer: EmailService, application: LoanApplication) -> bool:
    from app.services.auth_flow import best_effort

    email, name = _applicant(application)
    if not email:
        return False
    return await best_effort(
        "loan_rejection",
        mailer.send_loan_rejection_email(
            email,
            name,
            {
                "application_id": application.application_id,
                "loan_type": _display_loan_type(application),
                "amount": application.loan_amount,
                "application_date": format_display_date(application.created_at),
                "reason": application.rejection_reason,
            },
        ),
    )
