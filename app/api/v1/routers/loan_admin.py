from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models.loan_application import LoanApplication
from app.models.user import User
from app.schemas.loan import (
    AdminLoanApplicationDetail,
    AdminLoanApplicationList,
    AdminLoanApplicationOut,
    ApproveRequest,
    LoanApplicationOut,
    LoanApplicationStatus,
    LoanStatistics,
    LoanStatisticsResponse,
    LoanTransitionResponse,
    Pagination,
    RejectRequest,
)
from app.services import loan_applications, loan_exports, loan_workflow
from app.services.email import EmailService

router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_application_or_404(
    db: AsyncSession, identifier: str, *, logs: bool = False
) -> LoanApplication:
    application = await loan_applications.resolve_application(db, identifier, logs=logs)
    if application is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "application_not_found", "message": "Loan application not found"},
        )
    return application


@router.get(
    "/loan-applications",
    response_model=AdminLoanApplicationList,
    summary="List loan applications",
)
async def list_loan_applications(
    status_filter: LoanApplicationStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(
        default=loan_applications.DEFAULT_PAGE_SIZE, ge=1, le=loan_applications.MAX_PAGE_SIZE
    ),
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminLoanApplicationList:
    applications, total = await loan_applications.list_admin_applications(
        db,
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
    )
    return AdminLoanApplicationList(
        loan_applications=[AdminLoanApplicationOut.model_validate(item) for item in applications],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=loan_applications.page_count(total, limit),
        ),
    )


@router.get(
    "/loan-applications/export",
    response_class=StreamingResponse,
    summary="Export loan applications as CSV",
)
async def export_loan_applications(
    status_filter: LoanApplicationStatus | None = Query(default=None, alias="status"),
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> StreamingResponse:
    applications = await loan_applications.list_for_export(
        db, status=status_filter.value if status_filter else None
    )
    content = loan_exports.applications_to_csv(applications)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    filename = f"loan_applications_{stamp}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/loan-applications/{application_id}",
    response_model=AdminLoanApplicationDetail,
    summary="Get one loan application with its audit trail",
)
async def get_loan_application(
    application_id: str,
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminLoanApplicationDetail:
    application = await _get_application_or_404(db, application_id, logs=True)
    return AdminLoanApplicationDetail.model_validate(application)


@router.post(
    "/loan-applications/{application_id}/approve",
    response_model=LoanTransitionResponse,
    summary="Approve a pending loan application",
)
async def approve_loan_application(
    application_id: str,
    payload: ApproveRequest,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> LoanTransitionResponse:
    application = await _get_application_or_404(db, application_id)
    await loan_workflow.approve(
        db,
        application,
        approved_amount=payload.approved_amount,
        interest_rate=payload.interest_rate,
        approved_tenure=payload.approved_tenure,
        notes=payload.notes,
        actor=current_user,
    )

    refreshed = await _get_application_or_404(db, str(application.id))
    await loan_workflow.notify_approved(mailer, refreshed)
    return LoanTransitionResponse(
        message="Loan application approved successfully",
        loan_application=LoanApplicationOut.model_validate(refreshed),
    )


@router.post(
    "/loan-applications/{application_id}/reject",
    response_model=LoanTransitionResponse,
    summary="Reject a pending loan application",
)
async def reject_loan_application(
    application_id: str,
    payload: RejectRequest,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(deps.get_email_service),
) -> LoanTransitionResponse:
    application = await _get_application_or_404(db, application_id)
    await loan_workflow.reject(
        db, application, reason=payload.reason, notes=payload.notes, actor=current_user
    )

    refreshed = await _get_application_or_404(db, str(application.id))
    await loan_workflow.notify_rejected(mailer, refreshed)
    return LoanTransitionResponse(
        message="Loan application rejected",
        loan_application=LoanApplicationOut.model_validate(refreshed),
    )


@router.get("/statistics", response_model=LoanStatisticsResponse, summary="Loan statistics")
async def loan_statistics(
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> LoanStatisticsResponse:
    stats = await loan_applications.get_statistics(db)
    return LoanStatisticsResponse(statistics=LoanStatistics(**stats))
