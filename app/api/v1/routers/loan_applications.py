from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models.user import User
from app.schemas.loan import (
    LOAN_TYPE_SLUGS,
    LoanApplicationCreated,
    LoanApplicationList,
    LoanApplicationOut,
    LoanType,
    loan_application_create_adapter,
)
from app.services import loan_applications
from app.services.email import EmailService

router = APIRouter(prefix="/loan-applications", tags=["loan-applications"])


def _loan_type_for_slug(slug: str) -> LoanType:
    loan_type = LOAN_TYPE_SLUGS.get(slug.lower())
    if loan_type is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "unknown_loan_type",
                "message": "Unknown loan type",
                "details": {"supported": sorted(LOAN_TYPE_SLUGS)},
            },
        )
    return loan_type


def _parse_payload(raw: Any):
    if not isinstance(raw, dict):
        raise RequestValidationError(
            [{"loc": ("body",), "msg": "Request body must be a JSON object", "type": "dict_type"}]
        )
    try:
        return loan_application_create_adapter.validate_python(raw)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


async def _submit(
    db: AsyncSession,
    mailer: EmailService,
    user: User,
    raw: dict,
    *,
    per_product: bool,
) -> LoanApplicationCreated:
    payload = _parse_payload(raw)
    application = await loan_applications.submit_application(
        db, mailer, user, payload, per_product=per_product
    )
    return LoanApplicationCreated(
        message="Loan application submitted successfully",
        application_id=application.application_id,
        loan_application=LoanApplicationOut.model_validate(application),
    )


@router.post(
    "",
    response_model=LoanApplicationCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a loan application",
)
async def submit_loan_application(
    raw: dict[str, Any] = Body(...),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> LoanApplicationCreated:
    return await _submit(db, mailer, current_user, raw, per_product=False)


@router.get("", response_model=LoanApplicationList, summary="List my loan applications")
async def list_my_loan_applications(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationList:
    applications = await loan_applications.list_user_applications(db, current_user)
    return LoanApplicationList(
        applications=[LoanApplicationOut.model_validate(item) for item in applications]
    )


@router.post(
    "/{loan_type}",
    response_model=LoanApplicationCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an application for one loan product",
)
async def submit_typed_loan_application(
    loan_type: str,
    raw: dict[str, Any] = Body(...),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> LoanApplicationCreated:
    product = _loan_type_for_slug(loan_type)
    body = {key: value for key, value in raw.items() if key != "loan_type"}
    body["loanType"] = product.value
    return await _submit(db, mailer, current_user, body, per_product=True)


@router.get(
    "/{loan_type}",
    response_model=LoanApplicationList,
    summary="List my applications for one loan product",
)
async def list_my_typed_loan_applications(
    loan_type: str,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationList:
    product = _loan_type_for_slug(loan_type)
    applications = await loan_applications.list_user_applications(
        db, current_user, loan_type=product.value
    )
    return LoanApplicationList(
        applications=[LoanApplicationOut.model_validate(item) for item in applications]
    )
