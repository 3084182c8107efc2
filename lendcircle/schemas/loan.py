from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from lendcircle.models.loan import LoanStatus, LoanRequestStatus, PaymentType


class LoanCreate(BaseModel):
    """Schema for an admin opening a loan directly."""
    member_id: UUID
    amount: Decimal
    interest_rate: Optional[Decimal] = Field(None, description="Monthly interest rate in percent")
    duration_months: int = Field(0, ge=0)
    purpose: Optional[str] = None
    disbursed_on: Optional[date] = None


class LoanTopUp(BaseModel):
    amount: Decimal
    disbursed_on: Optional[date] = None


class LoanResponse(BaseModel):
    id: UUID
    member_id: UUID
    request_id: Optional[UUID] = None
    amount: Decimal
    interest_rate: Decimal
    duration_months: int
    purpose: Optional[str] = None
    status: LoanStatus
    principal_remaining: Optional[Decimal] = None
    outstanding_interest: Optional[Decimal] = None
    monthly_emi_amount: Optional[Decimal] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    warning: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    """A payment against a loan. Components must add up to ``amount``."""
    loan_id: UUID
    payment_date: date
    amount: Decimal
    payment_type: PaymentType = PaymentType.COMBINED
    principal_component: Optional[Decimal] = None
    interest_component: Optional[Decimal] = None
    penalty_component: Optional[Decimal] = None
    subscription_component: Optional[Decimal] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: UUID
    loan_id: UUID
    member_id: UUID
    payment_date: date
    period_key: str
    payment_type: PaymentType
    amount: Decimal
    principal_component: Decimal
    interest_component: Decimal
    penalty_component: Decimal
    subscription_component: Decimal
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentResultResponse(BaseModel):
    payment: PaymentResponse
    loan: LoanResponse
    warning: Optional[str] = None


class LoanRequestCreate(BaseModel):
    amount: Decimal
    duration_months: int = Field(0, ge=0)
    purpose: Optional[str] = None


class LoanRequestApprove(BaseModel):
    approved_amount: Optional[Decimal] = Field(None, description="Defaults to the requested amount")
    interest_rate: Optional[Decimal] = None
    remark: Optional[str] = None
    disbursed_on: Optional[date] = None


class LoanRequestReject(BaseModel):
    remark: Optional[str] = None


class LoanRequestResponse(BaseModel):
    id: UUID
    member_id: UUID
    amount: Decimal
    duration_months: int
    purpose: Optional[str] = None
    status: LoanRequestStatus
    approved_amount: Optional[Decimal] = None
    remark: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoanCalculation(BaseModel):
    amount: Decimal
    interest_rate: Optional[Decimal] = None
    duration_months: int = Field(..., ge=1, le=120)


class ScheduleLine(BaseModel):
    month: int
    month_label: str
    principal_paid: Decimal
    interest_paid: Decimal
    total_payment: Decimal
    remaining_balance: Decimal


class LoanSchedule(BaseModel):
    loan_amount: Decimal
    interest_rate: Decimal
    duration_months: int
    total_interest: Decimal
    total_amount: Decimal
    monthly_payment: Decimal
    breakdown: List[ScheduleLine]
