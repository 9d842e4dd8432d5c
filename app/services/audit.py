from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_audit_logger
from app.models.loan_application import LoanApplication
from app.models.loan_application_log import LoanApplicationLog

audit_logger = get_audit_logger()

BUSINESS_SNAPSHOT_FIELDS = ("business_name", "business_description", "industry", "business_address")
VEHICLE_SNAPSHOT_FIELDS = ("vehicle_make", "vehicle_model", "vehicle_year", "vehicle_amount")


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def model_snapshot(model: Any, *, include: Iterable[str] | None = None) -> dict[str, Any]:
    if model is None:
        return {}
    wanted = set(include) if include is not None else None
    data: dict[str, Any] = {}
    for column in model.__table__.columns:
        name = column.key
        if wanted is not None and name not in wanted:
            continue
        data[name] = getattr(model, name)
    return serialize_for_audit(data)


def product_snapshot(application: LoanApplication) -> dict[str, Any]:
    """Business/vehicle details worth keeping on the CREATED entry."""
    fields: list[str] = []
    if application.loan_type.startswith("BUSINESS"):
        fields.extend(BUSINESS_SNAPSHOT_FIELDS)
    if application.loan_type.endswith("CAR"):
        fields.extend(VEHICLE_SNAPSHOT_FIELDS)
    if not fields:
        return {}
    return model_snapshot(application, include=fields)


def record_application_log(
    db: AsyncSession,
    application: LoanApplication,
    *,
    action: str,
    performed_by,
    notes: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> LoanApplicationLog:
    """Stage an audit entry in the caller's transaction.

    The matching ``app.audit`` line is written by :func:`emit_audit_event` once
    the caller has committed.
    """
    entry = LoanApplicationLog(
        loan_application_id=application.id,
        action=action,
        performed_by=performed_by,
        notes=notes,
        details=serialize_for_audit(metadata) if metadata is not None else None,
    )
    db.add(entry)
    return entry


def emit_audit_event(application: LoanApplication, *, action: str, performed_by) -> None:
    audit_logger.info(
        "loan_application.%s application=%s actor=%s",
        action.lower(),
        application.application_id,
        performed_by,
        extra={
            "event": {
                "action": action,
                "applicationId": application.application_id,
                "loanType": application.loan_type,
                "performedBy": str(performed_by) if performed_by else None,
            }
        },
    )
