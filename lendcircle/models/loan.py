from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Integer, Numeric, Enum as SQLEnum, Text, Uuid, UniqueConstraint, text, func
from sqlalchemy.orm import relationship
import uuid
from lendcircle.db.base import Base
import enum
from decimal import Decimal


class LoanStatus(str, enum.Enum):
    """Loan status."""
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"


class LoanRequestStatus(str, enum.Enum):
    """Loan request status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentType(str, enum.Enum):
    """Which component a single-purpose payment goes to."""
    PRINCIPAL = "principal"
    INTEREST = "interest"
    PENALTY = "penalty"
    SUBSCRIPTION = "subscription"
    COMBINED = "combined"


class LoanRequest(Base):
    """Member's ask for a loan, reviewed once by an admin."""
    __tablename__ = "loan_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    duration_months = Column(Integer, nullable=False, default=0)
    purpose = Column(Text, nullable=True)
    status = Column(SQLEnum(LoanRequestStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanRequestStatus.PENDING, nullable=False)
    approved_amount = Column(Numeric(12, 2), nullable=True)  # May be lower than the asked amount
    remark = Column(Text, nullable=True)  # Admin remark on approval/rejection
    reviewed_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    member = relationship("Profile", back_populates="loan_requests", foreign_keys=[member_id])
    loan = relationship("Loan", back_populates="request", uselist=False)


class Loan(Base):
    """Loan owned by one member with a running balance."""
    __tablename__ = "loans"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    request_id = Column(Uuid(as_uuid=True), ForeignKey("loan_requests.id"), nullable=True, unique=True)
    amount = Column(Numeric(12, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)  # Percent per month
    duration_months = Column(Integer, nullable=False, default=0)  # 0 = open-ended
    purpose = Column(Text, nullable=True)
    status = Column(SQLEnum(LoanStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanStatus.PENDING, nullable=False)
    principal_remaining = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    outstanding_interest = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    monthly_emi_amount = Column(Numeric(12, 2), nullable=True)
    approved_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    member = relationship("Profile", back_populates="loans", foreign_keys=[member_id])
    request = relationship("LoanRequest", back_populates="loan")
    payments = relationship("LoanPayment", back_populates="loan", order_by="LoanPayment.payment_date")


class LoanPayment(Base):
    """Append-only payment event, one per loan per period."""
    __tablename__ = "loan_payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid(as_uuid=True), ForeignKey("loans.id"), nullable=False, index=True)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    payment_date = Column(Date, nullable=False)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    period_key = Column(String(7), nullable=False, index=True)  # YYYY-MM
    payment_type = Column(SQLEnum(PaymentType, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=PaymentType.COMBINED, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    principal_component = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    interest_component = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    penalty_component = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    subscription_component = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    notes = Column(Text, nullable=True)
    recorded_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    loan = relationship("Loan", back_populates="payments")

    __table_args__ = (
        UniqueConstraint("loan_id", "period_key", name="uq_loan_payment_period"),
    )
