from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from lendcircle.models.monthly import RecordStatus


class MonthInitialize(BaseModel):
    """Period to initialize: either ``period_key`` or year and month."""
    period_key: Optional[str] = Field(None, description="Period key, e.g. '2025-01'")
    period_year: Optional[int] = Field(None, ge=2000, le=2100)
    period_month: Optional[int] = Field(None, ge=1, le=12)

    @model_validator(mode="after")
    def check_period(self):
        if not self.period_key and (self.period_year is None or self.period_month is None):
            raise ValueError("Provide period_key or both period_year and period_month")
        return self


class InitializeResponse(BaseModel):
    success: bool
    period_key: str
    records_created: int = 0
    error: Optional[str] = None


class RecordUpdate(BaseModel):
    """Editable ledger events of a draft record. Omitted fields keep their value."""
    monthly_subscription: Optional[Decimal] = None
    interest_paid: Optional[Decimal] = None
    principal_paid: Optional[Decimal] = None
    new_loan_taken: Optional[Decimal] = None
    penalty: Optional[Decimal] = None
    additional_principal: Optional[Decimal] = None
    notes: Optional[str] = None
    expected_version: Optional[int] = Field(None, description="Version read by the client; edit is refused if the record moved on")


class RecordResponse(BaseModel):
    id: UUID
    member_id: UUID
    member_name: Optional[str] = None
    member_code: Optional[str] = None
    period_key: str
    period_year: int
    period_month: int
    opening_outstanding: Decimal
    credit_limit: Decimal
    interest_due: Decimal
    monthly_subscription: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    new_loan_taken: Decimal
    penalty: Decimal
    additional_principal: Decimal
    closing_outstanding: Decimal
    total_monthly_income: Decimal
    monthly_installment_income: Decimal
    available_loan_amount: Decimal
    status: RecordStatus
    version: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finalized_by: Optional[UUID] = None
    finalized_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PeriodSummary(BaseModel):
    period_key: str
    period_year: int
    period_month: int
    month_label: str
    status: str
    record_count: int
    finalized_count: int


class PeriodReport(BaseModel):
    period_key: str
    month_label: str
    record_count: int
    draft_count: int
    finalized_count: int
    total_subscription: Decimal
    total_interest: Decimal
    total_principal: Decimal
    total_additional_principal: Decimal
    total_new_loans: Decimal
    total_penalty: Decimal
    total_income: Decimal
    total_outstanding: Decimal


class BulkUpdateRequest(BaseModel):
    """Mass update of draft records. ``available_loan_amount`` sets the per-record credit limit."""
    monthly_subscription: Optional[Decimal] = None
    available_loan_amount: Optional[Decimal] = None
    period_key: Optional[str] = None
    status: Optional[RecordStatus] = None


class BulkUpdateResponse(BaseModel):
    message: str
    updated_count: int


class CashBillRequest(BaseModel):
    period_key: Optional[str] = None
    member_id: Optional[UUID] = None


class MemberDashboard(BaseModel):
    member_id: UUID
    full_name: str
    member_code: Optional[str] = None
    period_key: Optional[str] = None
    monthly_subscription: Decimal
    outstanding: Decimal
    credit_limit: Decimal
    available_credit: Decimal
    interest_due: Decimal
    active_loans: int
    pending_requests: int
    recent_records: List[RecordResponse] = Field(default_factory=list)
