import uuid

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models._common import utcnow


DOCUMENT_TYPES = (
    "GOVERNMENT_ID",
    "UTILITY_BILL",
    "WORK_ID",
    "CAC_CERTIFICATE",
    "CAC_DOCUMENTS",
    "SELFIE",
    "OTHER",
)


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint(
            "loan_application_id", "document_type", name="uq_documents_application_type"
        ),
        CheckConstraint(
            "document_type IN ('GOVERNMENT_ID', 'UTILITY_BILL', 'WORK_ID', 'CAC_CERTIFICATE', "
            "'CAC_DOCUMENTS', 'SELFIE', 'OTHER')",
            name="ck_documents_type",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type = Column(String(30), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_size = Column(BigInteger, nullable=True)
    mime_type = Column(String(100), nullable=True)
    storage_provider = Column(String(20), nullable=False, default="local")
    external_public_id = Column(String(512), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    loan_application = relationship("LoanApplication", back_populates="documents")
