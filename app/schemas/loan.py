from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import EmailStr, Field, TypeAdapter, field_validator

from app.schemas.common import CamelModel, Money, digits_only


class LoanType(str, Enum):
    SALARY_CASH = "SALARY_CASH"
    SALARY_CAR = "SALARY_CAR"
    BUSINESS_CASH = "BUSINESS_CASH"
    BUSINESS_CAR = "BUSINESS_CAR"


class LoanApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class HomeOwnership(str, Enum):
    OWNED = "OWNED"
    RENTED = "RENTED"
    FAMILY = "FAMILY"


class MaritalStatus(str, Enum):
    SINGLE = "SINGLE"
    MARRIED = "MARRIED"
    DIVORCED = "DIVORCED"
    WIDOWED = "WIDOWED"


LOAN_TYPE_DISPLAY_NAMES: dict[str, str] = {
    LoanType.SALARY_CASH.value: "Salary Earner Cash Loan",
    LoanType.SALARY_CAR.value: "Salary Earner Car Loan",
    LoanType.BUSINESS_CASH.value: "Business Cash Loan",
    LoanType.BUSINESS_CAR.value: "Business Car Loan",
}

# URL slugs for the per-product submission endpoints
LOAN_TYPE_SLUGS: dict[str, LoanType] = {
    "salary-cash": LoanType.SALARY_CASH,
    "salary-car": LoanType.SALARY_CAR,
    "business-cash": LoanType.BUSINESS_CASH,
    "business-car": LoanType.BUSINESS_CAR,
}


class _ApplicationCore(CamelModel):
    """Fields every loan product collects."""

    loan_amount: Decimal = Field(gt=0)
    tenure: int = Field(gt=0)

    first_name: str | None = Field(default=None, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    phone_number: str
    bvn: str
    nin: str | None = None
    address_number: str = Field(min_length=1, max_length=50)
    street_name: str = Field(min_length=1, max_length=255)
    nearest_bus_stop: str | None = Field(default=None, max_length=255)
    state: str = Field(min_length=1, max_length=100)
    local_government: str = Field(min_length=1, max_length=100)
    home_ownership: HomeOwnership
    years_in_address: int = Field(ge=0, le=100)
    marital_status: MaritalStatus
    education_level: str = Field(min_length=1, max_length=100)

    nok_first_name: str = Field(min_length=1, max_length=100)
    nok_last_name: str = Field(min_length=1, max_length=100)
    nok_middle_name: str | None = Field(default=None, max_length=100)
    nok_relationship: str = Field(min_length=1, max_length=100)
    nok_phone: str
    nok_email: EmailStr | None = None

    bank_name: str = Field(min_length=1, max_length=255)
    account_name: str = Field(min_length=1, max_length=255)
    account_number: str

    @field_validator("phone_number", "nok_phone")
    @classmethod
    def _phone_digits(cls, value: str) -> str:
        return digits_only(value, 11, "Phone number")

    @field_validator("bvn")
    @classmethod
    def _bvn_digits(cls, value: str) -> str:
        return digits_only(value, 11, "BVN")

    @field_validator("nin")
    @classmethod
    def _nin_digits(cls, value: str | None) -> str | None:
        if value is None or not str(value).strip():
            return None
        return digits_only(value, 11, "NIN")

    @field_validator("account_number")
    @classmethod
    def _account_digits(cls, value: str) -> str:
        return digits_only(value, 10, "Account number")


class _EmploymentFields(CamelModel):
    employer_name: str = Field(min_length=1, max_length=255)
    employer_address: str = Field(min_length=1, max_length=500)
    job_title: str = Field(min_length=1, max_length=255)
    work_email: EmailStr
    employment_start_date: date
    salary_payment_date: int = Field(ge=1, le=31)
    net_salary: Decimal = Field(gt=0)


class _BusinessFields(CamelModel):
    business_name: str = Field(min_length=1, max_length=255)
    business_description: str = Field(min_length=1)
    industry: str = Field(min_length=1, max_length=255)
    business_address: str = Field(min_length=1, max_length=500)


class _VehicleFields(CamelModel):
    vehicle_make: str = Field(min_length=1, max_length=100)
    vehicle_model: str = Field(min_length=1, max_length=100)
    vehicle_year: int
    vehicle_amount: Decimal = Field(gt=0)

    @field_validator("vehicle_year")
    @classmethod
    def _plausible_year(cls, value: int) -> int:
        latest = date.today().year + 1
        if value < 1990 or value > latest:
            raise ValueError(f"Vehicle year must be between 1990 and {latest}")
        return value


class SalaryCashApplication(_ApplicationCore, _EmploymentFields):
    loan_type: Literal["SALARY_CASH"]


class SalaryCarApplication(_ApplicationCore, _EmploymentFields, _VehicleFields):
    loan_type: Literal["SALARY_CAR"]


class BusinessCashApplication(_ApplicationCore, _BusinessFields):
    loan_type: Literal["BUSINESS_CASH"]


class BusinessCarApplication(_ApplicationCore, _BusinessFields, _VehicleFields):
    loan_type: Literal["BUSINESS_CAR"]


LoanApplicationCreate = Annotated[
    Union[
        SalaryCashApplication,
        SalaryCarApplication,
        BusinessCashApplication,
        BusinessCarApplication,
    ],
    Field(discriminator="loan_type"),
]

loan_application_create_adapter: TypeAdapter[Any] = TypeAdapter(LoanApplicationCreate)


class DocumentOut(CamelModel):
    id: UUID
    document_type: str
    file_name: str
    file_path: str
    file_size: int | None = None
    mime_type: str | None = None
    storage_provider: str
    external_public_id: str | None = None
    uploaded_at: datetime


class LoanApplicationOut(CamelModel):
    id: UUID
    application_id: str
    user_id: UUID
    loan_type: LoanType
    loan_amount: Money
    tenure: int
    status: LoanApplicationStatus

    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    bvn: str | None = None
    nin: str | None = None
    address_number: str | None = None
    street_name: str | None = None
    nearest_bus_stop: str | None = None
    state: str | None = None
    local_government: str | None = None
    home_ownership: str | None = None
    years_in_address: int | None = None
    marital_status: str | None = None
    education_level: str | None = None

    employer_name: str | None = None
    employer_address: str | None = None
    job_title: str | None = None
    work_email: str | None = None
    employment_start_date: date | None = None
    salary_payment_date: int | None = None
    net_salary: Money | None = None

    business_name: str | None = None
    business_description: str | None = None
    industry: str | None = None
    business_address: str | None = None

    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_year: int | None = None
    vehicle_amount: Money | None = None

    nok_first_name: str | None = None
    nok_last_name: str | None = None
    nok_middle_name: str | None = None
    nok_relationship: str | None = None
    nok_phone: str | None = None
    nok_email: str | None = None

    bank_name: str | None = None
    account_name: str | None = None
    account_number: str | None = None

    approved_amount: Money | None = None
    interest_rate: Money | None = None
    approved_tenure: int | None = None
    loan_id: str | None = None
    rejection_reason: str | None = None
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    documents: list[DocumentOut] = Field(default_factory=list)


class ApplicantSummary(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str


class LoanApplicationLogOut(CamelModel):
    id: UUID
    action: str
    performed_by: UUID | None = None
    notes: str | None = None
    details: dict[str, Any] | None = Field(default=None, serialization_alias="metadata")
    created_at: datetime


class AdminLoanApplicationOut(LoanApplicationOut):
    user: ApplicantSummary | None = None


class AdminLoanApplicationDetail(AdminLoanApplicationOut):
    logs: list[LoanApplicationLogOut] = Field(default_factory=list)


class LoanApplicationCreated(CamelModel):
    message: str
    application_id: str
    loan_application: LoanApplicationOut


class LoanApplicationList(CamelModel):
    applications: list[LoanApplicationOut]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AdminLoanApplicationList(CamelModel):
    loan_applications: list[AdminLoanApplicationOut]
    pagination: Pagination


class ApproveRequest(CamelModel):
    approved_amount: Decimal = Field(gt=0)
    interest_rate: Decimal = Field(ge=0, le=100)
    approved_tenure: int = Field(gt=0)
    notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(CamelModel):
    reason: str = Field(min_length=1, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)


class LoanTransitionResponse(CamelModel):
    message: str
    loan_application: LoanApplicationOut


class LoanStatistics(CamelModel):
    total_applications: int
    pending: int
    approved: int
    rejected: int
    total_approved_amount: Money


class LoanStatisticsResponse(CamelModel):
    statistics: LoanStatistics
