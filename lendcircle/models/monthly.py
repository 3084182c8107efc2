from sqlalchemy import Column, String, ForeignKey, DateTime, Integer, Numeric, Enum as SQLEnum, Text, Uuid, UniqueConstraint, text, func
from sqlalchemy.orm import relationship
import uuid
from lendcircle.db.base import Base
import enum
from decimal import Decimal


class RecordStatus(str, enum.Enum):
    """Monthly record status. Finalized records are immutable."""
    DRAFT = "draft"
    FINALIZED = "finalized"


class MonthlyLoanRecord(Base):
    """Ledger line for one member for one period."""
    __tablename__ = "monthly_loan_records"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    period_key = Column(String(7), nullable=False, index=True)  # YYYY-MM
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)

    # Carried forward from the previous period
    opening_outstanding = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    credit_limit = Column(Numeric(12, 2), nullable=False)
    interest_due = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Events entered by the admin (or aggregated from payments)
    monthly_subscription = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    interest_paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    principal_paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    new_loan_taken = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    penalty = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    additional_principal = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Derived by the ledger calculator
    closing_outstanding = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_monthly_income = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    monthly_installment_income = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    available_loan_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    status = Column(SQLEnum(RecordStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=RecordStatus.DRAFT, nullable=False)
    version = Column(Integer, nullable=False, default=1)  # Bumped on every write
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    finalized_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    finalized_at = Column(DateTime, nullable=True)

    # Relationships
    member = relationship("Profile", back_populates="monthly_records", foreign_keys=[member_id])

    # One ledger line per member per period
    __table_args__ = (
        UniqueConstraint("member_id", "period_key", name="uq_monthly_record_member_period"),
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == RecordStatus.FINALIZED
