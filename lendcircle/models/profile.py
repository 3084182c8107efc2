from sqlalchemy import Column, String, DateTime, Numeric, Enum as SQLEnum, Text, Uuid, text, func
from sqlalchemy.orm import relationship
import uuid
from lendcircle.db.base import Base
import enum
from decimal import Decimal


class ProfileRole(str, enum.Enum):
    """Circle role."""
    MEMBER = "member"
    ADMIN = "admin"


class Profile(Base):
    """Circle member (or admin) with login credentials and subscription defaults."""
    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    whatsapp_link = Column(String(100), nullable=True)
    role = Column(SQLEnum(ProfileRole, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=ProfileRole.MEMBER, nullable=False)
    member_code = Column(String(20), nullable=True, unique=True, index=True)  # e.g. "V-012"
    monthly_subscription = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    fine = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))  # Outstanding fine
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    loans = relationship("Loan", back_populates="member", foreign_keys="[Loan.member_id]")
    loan_requests = relationship("LoanRequest", back_populates="member", foreign_keys="[LoanRequest.member_id]")
    monthly_records = relationship("MonthlyLoanRecord", back_populates="member", foreign_keys="[MonthlyLoanRecord.member_id]")

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN
