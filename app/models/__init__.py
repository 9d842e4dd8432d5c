from app.models.document import Document
from app.models.loan_application import LoanApplication
from app.models.loan_application_log import LoanApplicationLog
from app.models.otp_verification import OtpVerification
from app.models.user import User

__all__ = [
    "Document",
    "LoanApplication",
    "LoanApplicationLog",
    "OtpVerification",
    "User",
]
