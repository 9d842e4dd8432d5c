import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, String, Uuid

from app.db.base import Base
from app.models._common import utcnow


class OtpVerification(Base):
    __tablename__ = "otp_verifications"
    __table_args__ = (
        CheckConstraint(
            "purpose IN ('EMAIL_VERIFICATION', 'PASSWORD_RESET')",
            name="ck_otp_verifications_purpose",
        ),
        Index("ix_otp_verifications_email_purpose", "email", "purpose"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False)
    code = Column(String(6), nullable=False)
    purpose = Column(String(30), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
