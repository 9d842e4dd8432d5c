import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models._common import JSONType, utcnow


LOG_ACTIONS = ("CREATED", "APPROVED", "REJECTED")


class LoanApplicationLog(Base):
    """Append-only trail of workflow transitions."""

    __tablename__ = "loan_application_logs"
    __table_args__ = (
        CheckConstraint(
            "action IN ('CREATED', 'APPROVED', 'REJECTED')",
            name="ck_loan_application_logs_action",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action = Column(String(20), nullable=False)
    performed_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    loan_application = relationship("LoanApplication", back_populates="logs")
