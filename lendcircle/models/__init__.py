from lendcircle.db.base import Base

# Import all models so Alembic can detect them
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.models.loan import (
    Loan,
    LoanStatus,
    LoanPayment,
    PaymentType,
    LoanRequest,
    LoanRequestStatus,
)
from lendcircle.models.monthly import MonthlyLoanRecord, RecordStatus
from lendcircle.models.system import SystemSettings, Notice, NoticePriority

__all__ = [
    "Base",
    "Profile",
    "ProfileRole",
    "Loan",
    "LoanStatus",
    "LoanPayment",
    "PaymentType",
    "LoanRequest",
    "LoanRequestStatus",
    "MonthlyLoanRecord",
    "RecordStatus",
    "SystemSettings",
    "Notice",
    "NoticePriority",
]
