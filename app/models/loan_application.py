import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models._common import utcnow
from app.models.types import EncryptedString


LOAN_TYPES = ("SALARY_CASH", "SALARY_CAR", "BUSINESS_CASH", "BUSINESS_CAR")
APPLICATION_STATUSES = ("PENDING", "APPROVED", "REJECTED")


class LoanApplication(Base):
    __tablename__ = "loan_applications"
    __table_args__ = (
        CheckConstraint("loan_amount > 0", name="ck_loan_app_amount_positive"),
        CheckConstraint("tenure > 0", name="ck_loan_app_tenure_positive"),
        CheckConstraint("version >= 1", name="ck_loan_app_version_positive"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_loan_app_status",
        ),
        CheckConstraint(
            "loan_type IN ('SALARY_CASH', 'SALARY_CAR', 'BUSINESS_CASH', 'BUSINESS_CAR')",
            name="ck_loan_app_loan_type",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    loan_type = Column(String(30), nullable=False, index=True)
    loan_amount = Column(Numeric(18, 2), nullable=False)
    tenure = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    version = Column(Integer, nullable=False, default=1)

    # personal
    first_name = Column(String(100), nullable=True)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(20), nullable=True)
    bvn = Column(EncryptedString(), nullable=True)
    nin = Column(EncryptedString(), nullable=True)
    address_number = Column(String(50), nullable=True)
    street_name = Column(String(255), nullable=True)
    nearest_bus_stop = Column(String(255), nullable=True)
    state = Column(String(100), nullable=True)
    local_government = Column(String(100), nullable=True)
    home_ownership = Column(String(20), nullable=True)
    years_in_address = Column(Integer, nullable=True)
    marital_status = Column(String(20), nullable=True)
    education_level = Column(String(100), nullable=True)

    # employment
    employer_name = Column(String(255), nullable=True)
    employer_address = Column(String(500), nullable=True)
    job_title = Column(String(255), nullable=True)
    work_email = Column(String(255), nullable=True)
    employment_start_date = Column(Date, nullable=True)
    salary_payment_date = Column(Integer, nullable=True)
    net_salary = Column(Numeric(18, 2), nullable=True)

    # business
    business_name = Column(String(255), nullable=True)
    business_description = Column(Text, nullable=True)
    industry = Column(String(255), nullable=True)
    business_address = Column(String(500), nullable=True)

    # vehicle
    vehicle_make = Column(String(100), nullable=True)
    vehicle_model = Column(String(100), nullable=True)
    vehicle_year = Column(Integer, nullable=True)
    vehicle_amount = Column(Numeric(18, 2), nullable=True)

    # next of kin
    nok_first_name = Column(String(100), nullable=True)
    nok_last_name = Column(String(100), nullable=True)
    nok_middle_name = Column(String(100), nullable=True)
    nok_relationship = Column(String(100), nullable=True)
    nok_phone = Column(String(20), nullable=True)
    nok_email = Column(String(255), nullable=True)

    # bank
    bank_name = Column(String(255), nullable=True)
    account_name = Column(String(255), nullable=True)
    account_number = Column(EncryptedString(), nullable=True)

    # review outcome
    approved_amount = Column(Numeric(18, 2), nullable=True)
    interest_rate = Column(Numeric(6, 2), nullable=True)
    approved_tenure = Column(Integer, nullable=True)
    loan_id = Column(String(32), nullable=True, unique=True, index=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="loan_applications", foreign_keys=[user_id])
    documents = relationship(
        "Document",
        back_populates="loan_application",
        cascade="all, delete-orphan",
        order_by="Document.uploaded_at",
    )
    logs = relationship(
        "LoanApplicationLog",
        back_populates="loan_application",
        cascade="all, delete-orphan",
        order_by="LoanApplicationLog.created_at",
    )

    __mapper_args__ = {"version_id_col": version}
