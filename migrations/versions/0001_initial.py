"""Create users, OTP, loan application, document and audit log tables"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="USER"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("role IN ('USER', 'ADMIN')", name="ck_users_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "otp_verifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("purpose", sa.String(length=30), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "purpose IN ('EMAIL_VERIFICATION', 'PASSWORD_RESET')",
            name="ck_otp_verifications_purpose",
        ),
    )
    op.create_index(
        "ix_otp_verifications_email_purpose", "otp_verifications", ["email", "purpose"]
    )

    op.create_table(
        "loan_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("application_id", sa.String(length=32), nullable=False),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("loan_type", sa.String(length=30), nullable=False),
        sa.Column("loan_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("tenure", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("middle_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("bvn", sa.LargeBinary(), nullable=True),
        sa.Column("nin", sa.LargeBinary(), nullable=True),
        sa.Column("address_number", sa.String(length=50), nullable=True),
        sa.Column("street_name", sa.String(length=255), nullable=True),
        sa.Column("nearest_bus_stop", sa.String(length=255), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("local_government", sa.String(length=100), nullable=True),
        sa.Column("home_ownership", sa.String(length=20), nullable=True),
        sa.Column("years_in_address", sa.Integer(), nullable=True),
        sa.Column("marital_status", sa.String(length=20), nullable=True),
        sa.Column("education_level", sa.String(length=100), nullable=True),
        sa.Column("employer_name", sa.String(length=255), nullable=True),
        sa.Column("employer_address", sa.String(length=500), nullable=True),
        sa.Column("job_title", sa.String(length=255), nullable=True),
        sa.Column("work_email", sa.String(length=255), nullable=True),
        sa.Column("employment_start_date", sa.Date(), nullable=True),
        sa.Column("salary_payment_date", sa.Integer(), nullable=True),
        sa.Column("net_salary", sa.Numeric(18, 2), nullable=True),
        sa.Column("business_name", sa.String(length=255), nullable=True),
        sa.Column("business_description", sa.Text(), nullable=True),
        sa.Column("industry", sa.String(length=255), nullable=True),
        sa.Column("business_address", sa.String(length=500), nullable=True),
        sa.Column("vehicle_make", sa.String(length=100), nullable=True),
        sa.Column("vehicle_model", sa.String(length=100), nullable=True),
        sa.Column("vehicle_year", sa.Integer(), nullable=True),
        sa.Column("vehicle_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("nok_first_name", sa.String(length=100), nullable=True),
        sa.Column("nok_last_name", sa.String(length=100), nullable=True),
        sa.Column("nok_middle_name", sa.String(length=100), nullable=True),
        sa.Column("nok_relationship", sa.String(length=100), nullable=True),
        sa.Column("nok_phone", sa.String(length=20), nullable=True),
        sa.Column("nok_email", sa.String(length=255), nullable=True),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("account_number", sa.LargeBinary(), nullable=True),
        sa.Column("approved_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("interest_rate", sa.Numeric(6, 2), nullable=True),
        sa.Column("approved_tenure", sa.Integer(), nullable=True),
        sa.Column("loan_id", sa.String(length=32), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "reviewed_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("loan_amount > 0", name="ck_loan_app_amount_positive"),
        sa.CheckConstraint("tenure > 0", name="ck_loan_app_tenure_positive"),
        sa.CheckConstraint("version >= 1", name="ck_loan_app_version_positive"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')", name="ck_loan_app_status"
        ),
        sa.CheckConstraint(
            "loan_type IN ('SALARY_CASH', 'SALARY_CAR', 'BUSINESS_CASH', 'BUSINESS_CAR')",
            name="ck_loan_app_loan_type",
        ),
    )
    op.create_index(
        "ix_loan_applications_application_id", "loan_applications", ["application_id"], unique=True
    )
    op.create_index("ix_loan_applications_loan_id", "loan_applications", ["loan_id"], unique=True)
    op.create_index("ix_loan_applications_user_id", "loan_applications", ["user_id"])
    op.create_index("ix_loan_applications_loan_type", "loan_applications", ["loan_type"])
    op.create_index("ix_loan_applications_status", "loan_applications", ["status"])
    op.create_index("ix_loan_applications_created_at", "loan_applications", ["created_at"])

    op.create_table(
        "documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "loan_application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("loan_applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("document_type", sa.String(length=30), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("mime_type", sa.String(length=100), nullable=True),
        sa.Column("storage_provider", sa.String(length=20), nullable=False, server_default="local"),
        sa.Column("external_public_id", sa.String(length=512), nullable=True),
        sa.Column("uploaded_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "loan_application_id", "document_type", name="uq_documents_application_type"
        ),
        sa.CheckConstraint(
            "document_type IN ('GOVERNMENT_ID', 'UTILITY_BILL', 'WORK_ID', 'CAC_CERTIFICATE', "
            "'CAC_DOCUMENTS', 'SELFIE', 'OTHER')",
            name="ck_documents_type",
        ),
    )
    op.create_index("ix_documents_loan_application_id", "documents", ["loan_application_id"])

    op.create_table(
        "loan_application_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "loan_application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("loan_applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column(
            "performed_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "action IN ('CREATED', 'APPROVED', 'REJECTED')",
            name="ck_loan_application_logs_action",
        ),
    )
    op.create_index(
        "ix_loan_application_logs_loan_application_id",
        "loan_application_logs",
        ["loan_application_id"],
    )
    op.create_index(
        "ix_loan_application_logs_created_at", "loan_application_logs", ["created_at"]
    )


def downgrade() -> None:
    op.drop_table("loan_application_logs")
    op.drop_table("documents")
    op.drop_table("loan_applications")
    op.drop_index("ix_otp_verifications_email_purpose", table_name="otp_verifications")
    op.drop_table("otp_verifications")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
