"""Simple-interest schedule for community loans."""
from decimal import Decimal, ROUND_HALF_UP
from lendcircle.services.errors import ValidationError
from lendcircle.services.ledger import to_amount

TWO_PLACES = Decimal("0.01")


def _round(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_schedule(amount, interest_rate, duration_months: int) -> dict:
    """
    Month-by-month repayment of a loan at a flat monthly rate.

    Total interest is ``amount * rate% * months`` and is spread evenly with the
    principal, so every month pays the same amount. Each month's interest
    share is taken on the remaining balance spread over the term.
    """
    principal = to_amount(amount, "amount")
    rate = to_amount(interest_rate, "interest_rate")
    if principal <= 0:
        raise ValidationError("Loan amount must be greater than 0")
    if duration_months is None or duration_months < 1:
        raise ValidationError("duration_months must be at least 1")

    months = Decimal(duration_months)
    monthly_rate = rate / Decimal(100)
    total_interest = principal * monthly_rate * months
    total_amount = principal + total_interest
    monthly_payment = total_amount / months

    breakdown = []
    remaining = total_amount
    for month in range(1, duration_months + 1):
        interest_for_month = (remaining / months) * monthly_rate
        principal_for_month = monthly_payment - interest_for_month
        remaining -= monthly_payment
        breakdown.append({
            "month": month,
            "month_label": f"Month {month}",
            "principal_paid": _round(principal_for_month),
            "interest_paid": _round(interest_for_month),
            "total_payment": _round(monthly_payment),
            "remaining_balance": _round(max(remaining, Decimal(0))),
        })

    return {
        "loan_amount": principal,
        "interest_rate": rate,
        "duration_months": duration_months,
        "total_interest": _round(total_interest),
        "total_amount": _round(total_amount),
        "monthly_payment": _round(monthly_payment),
        "breakdown": breakdown,
    }
