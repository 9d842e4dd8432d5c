from __future__ import annotations

import csv
from io import StringIO
from decimal import Decimal
from datetime import date, datetime

from app.models.loan_application import LoanApplication


def _stringify(value) -> str:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None:
        return ""
    return str(value)


def _write_csv(headers: list[str], rows: list[list[str]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


EXPORT_COLUMNS = [
    "application_id",
    "loan_type",
    "status",
    "loan_amount",
    "tenure",
    "applicant_email",
    "first_name",
    "last_name",
    "phone_number",
    "employer_name",
    "business_name",
    "vehicle_make",
    "vehicle_model",
    "approved_amount",
    "interest_rate",
    "approved_tenure",
    "loan_id",
    "rejection_reason",
    "reviewed_at",
    "created_at",
]


def applications_to_csv(applications: list[LoanApplication]) -> str:
    rows: list[list[str]] = []
    for application in applications:
        user = application.user
        rows.append(
            [
                application.application_id,
                application.loan_type,
                application.status,
                _stringify(application.loan_amount),
                str(application.tenure),
                application.email or (user.email if user else ""),
                _stringify(application.first_name),
                _stringify(application.last_name),
                _stringify(application.phone_number),
                _stringify(application.employer_name),
                _stringify(application.business_name),
                _stringify(application.vehicle_make),
                _stringify(application.vehicle_model),
                _stringify(application.approved_amount),
                _stringify(application.interest_rate),
                _stringify(application.approved_tenure),
                _stringify(application.loan_id),
                _stringify(application.rejection_reason),
                _stringify(application.reviewed_at),
                _stringify(application.created_at),
            ]
        )
    return _write_csv(EXPORT_COLUMNS, rows)
