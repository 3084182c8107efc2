"""Monthly ledger roll-forward.

Given a member's opening balance and the events recorded for one period,
compute the closing balance, the income collected and the credit still
available. All amounts are ``Decimal`` rounded to two places.

    closing   = opening + new_loan_taken - principal_paid - additional_principal
    income    = monthly_subscription + interest_paid + principal_paid + penalty
    available = credit_ceiling - closing
"""
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from lendcircle.core.config import settings
from lendcircle.models.monthly import MonthlyLoanRecord
from lendcircle.services.errors import RecordFinalizedError, ValidationError

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

# Fields an admin may enter on a draft record
EVENT_FIELDS = (
    "monthly_subscription",
    "interest_paid",
    "principal_paid",
    "new_loan_taken",
    "penalty",
    "additional_principal",
)


def to_amount(value, field: str = "amount") -> Decimal:
    """Parse a non-negative currency amount. Blank values count as zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LedgerInputs:
    opening_outstanding: Decimal = ZERO
    monthly_subscription: Decimal = ZERO
    interest_paid: Decimal = ZERO
    principal_paid: Decimal = ZERO
    new_loan_taken: Decimal = ZERO
    penalty: Decimal = ZERO
    additional_principal: Decimal = ZERO

    @classmethod
    def from_record(cls, record: MonthlyLoanRecord, **overrides) -> "LedgerInputs":
        values = {f.name: getattr(record, f.name) or ZERO for f in fields(cls)}
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class LedgerFigures:
    closing_outstanding: Decimal
    total_monthly_income: Decimal
    installment_income: Decimal
    available_loan_amount: Decimal

    def as_record_values(self) -> dict:
        return {
            "closing_outstanding": self.closing_outstanding,
            "total_monthly_income": self.total_monthly_income,
            "monthly_installment_income": self.installment_income,
            "available_loan_amount": self.available_loan_amount,
        }


def credit_ceiling() -> Decimal:
    return Decimal(settings.CREDIT_CEILING).quantize(TWO_PLACES)


def roll_forward(inputs: LedgerInputs, ceiling: Optional[Decimal] = None) -> LedgerFigures:
    """Compute this period's derived figures from its opening balance and events."""
    if ceiling is None:
        ceiling = credit_ceiling()

    closing = (
        inputs.opening_outstanding
        + inputs.new_loan_taken
        - inputs.principal_paid
        - inputs.additional_principal
    )
    total_income = (
        inputs.monthly_subscription
        + inputs.interest_paid
        + inputs.principal_paid
        + inputs.penalty
    )
    installment_income = inputs.interest_paid + inputs.principal_paid

    return LedgerFigures(
        closing_outstanding=closing,
        total_monthly_income=total_income,
        installment_income=installment_income,
        available_loan_amount=Decimal(ceiling) - closing,
    )


def clamp_available(available: Decimal) -> Decimal:
    """Available credit as shown to members and on cash bills (never below zero)."""
    return max(Decimal(available), ZERO)


def compute_interest_due(balance: Decimal, percent: Optional[float] = None) -> Decimal:
    """Expected monthly interest on a balance, rounded to the whole unit."""
    if percent is None:
        percent = settings.CASH_BILL_INTEREST_PERCENT
    interest = Decimal(balance) * Decimal(str(percent)) / Decimal(100)
    return interest.quantize(Decimal("1"), rounding=ROUND_HALF_UP).quantize(TWO_PLACES)


def record_changes(record: MonthlyLoanRecord, events: dict, credit_limit=None) -> dict:
    """Column values for a record after applying ``events``, with derived fields recomputed.

    The record itself is not modified; callers write the values with a
    guarded UPDATE. Raises RecordFinalizedError when the record is finalized.
    """
    if record.is_finalized:
        raise RecordFinalizedError(f"Monthly record for {record.period_key} is finalized and cannot be changed")

    unknown = set(events) - set(EVENT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown ledger field(s): {', '.join(sorted(unknown))}")

    parsed = {name: to_amount(value, name) for name, value in events.items()}
    values = dict(parsed)
    ceiling = record.credit_limit
    if credit_limit is not None:
        ceiling = to_amount(credit_limit, "credit_limit")
        values["credit_limit"] = ceiling

    figures = roll_forward(LedgerInputs.from_record(record, **parsed), ceiling)
    values.update(figures.as_record_values())
    return values
