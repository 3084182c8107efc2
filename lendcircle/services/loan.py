from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from lendcircle.core.config import settings
from lendcircle.models.loan import (
    Loan,
    LoanStatus,
    LoanPayment,
    PaymentType,
    LoanRequest,
    LoanRequestStatus,
)
from lendcircle.models.monthly import MonthlyLoanRecord
from lendcircle.services.errors import (
    DuplicatePaymentError,
    LendingCircleError,
    NotFoundError,
    RecordFinalizedError,
    ValidationError,
)
from lendcircle.services.ledger import ZERO, to_amount
from lendcircle.services.member import get_member
from lendcircle.services.monthly import (
    period_key_for_date,
    post_payment,
    update_record,
)
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

# Component a single-purpose payment is booked to
COMPONENT_FOR_TYPE = {
    PaymentType.PRINCIPAL: "principal_component",
    PaymentType.INTEREST: "interest_component",
    PaymentType.PENALTY: "penalty_component",
    PaymentType.SUBSCRIPTION: "subscription_component",
}

@dataclass
class PaymentResult:
    payment: LoanPayment
    loan: Loan
    warning: Optional[str] = None


def get_loan(db: Session, loan_id: UUID) -> Loan:
    loan = db.query(Loan).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFoundError("Loan not found")
    return loan


def list_loans(
    db: Session,
    member_id: UUID = None,
    status: LoanStatus = None
) -> List[Loan]:
    query = db.query(Loan)
    if member_id:
        query = query.filter(Loan.member_id == member_id)
    if status:
        query = query.filter(Loan.status == status)
    return query.order_by(Loan.created_at.desc()).all()


def monthly_interest(principal: Decimal, rate_percent: Decimal) -> Decimal:
    """Interest accrued on a principal for one month, rounded to the whole unit."""
    interest = Decimal(principal) * Decimal(rate_percent) / Decimal(100)
    return interest.quantize(Decimal("1"), rounding=ROUND_HALF_UP).quantize(Decimal("0.01"))


def _check_min_amount(amount: Decimal) -> None:
    if amount < Decimal(settings.MIN_LOAN_AMOUNT):
        raise ValidationError(f"Loan amount must be at least {settings.MIN_LOAN_AMOUNT:,}")


def _period_record(db: Session, member_id: UUID, period_key: str) -> Optional[MonthlyLoanRecord]:
    return db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member_id,
        MonthlyLoanRecord.period_key == period_key
    ).first()


def _check_disbursement_period(db: Session, member_id: UUID, on_date: date) -> None:
    """Refuse a disbursement into a month whose record is finalized."""
    period_key = period_key_for_date(on_date)
    record = _period_record(db, member_id, period_key)
    if record and record.is_finalized:
        raise RecordFinalizedError(f"Monthly record for {period_key} is finalized; loans can no longer be disbursed into it")


def disbursement_warning(db: Session, member_id: UUID, on_date: date) -> Optional[str]:
    """Message for a disbursement that could not be entered on the member's ledger."""
    period_key = period_key_for_date(on_date)
    if _period_record(db, member_id, period_key) is None:
        return f"Loan recorded but {period_key} has no monthly record for this member; enter it after initializing the month"
    return None


def _post_disbursement(db: Session, member_id: UUID, amount: Decimal, on_date: date) -> None:
    """Add a disbursement to the member's draft record for the month, if there is one."""
    period_key = period_key_for_date(on_date)
    record = _period_record(db, member_id, period_key)
    if not record:
        logger.warning(f"Loan of {amount} disbursed into {period_key} for member {member_id} without a monthly record")
        return
    update_record(db, record.id, {"new_loan_taken": record.new_loan_taken + amount})


def _new_loan(
    member_id: UUID,
    amount: Decimal,
    interest_rate,
    purpose: str = None,
    approved_by: UUID = None,
    duration_months: int = 0,
    request_id: UUID = None
) -> Loan:
    rate = to_amount(interest_rate if interest_rate is not None else settings.DEFAULT_LOAN_INTEREST_RATE, "interest_rate")
    return Loan(
        member_id=member_id,
        request_id=request_id,
        amount=amount,
        interest_rate=rate,
        duration_months=duration_months or 0,
        purpose=purpose or None,
        status=LoanStatus.ACTIVE,
        principal_remaining=amount,
        outstanding_interest=ZERO,
        approved_by=approved_by,
        approved_at=datetime.utcnow(),
    )


def create_loan(
    db: Session,
    member_id: UUID,
    amount,
    interest_rate=None,
    purpose: str = None,
    approved_by: UUID = None,
    duration_months: int = 0,
    disbursed_on: date = None
) -> Loan:
    """Direct admin creation of an active loan."""
    get_member(db, member_id)
    principal = to_amount(amount, "amount")
    _check_min_amount(principal)
    disbursed_on = disbursed_on or date.today()
    _check_disbursement_period(db, member_id, disbursed_on)

    loan = _new_loan(member_id, principal, interest_rate, purpose, approved_by, duration_months)
    db.add(loan)
    db.commit()
    db.refresh(loan)
    logger.info(f"Created loan {loan.id} of {principal} for member {member_id}")

    _post_disbursement(db, member_id, principal, disbursed_on)
    return loan


def add_top_up(
    db: Session,
    loan_id: UUID,
    amount,
    approved_by: UUID = None,
    disbursed_on: date = None
) -> Loan:
    """Disburse an additional amount on an existing loan."""
    loan = get_loan(db, loan_id)
    if loan.status not in (LoanStatus.APPROVED, LoanStatus.ACTIVE):
        raise ValidationError(f"Cannot top up a {loan.status.value} loan")

    top_up = to_amount(amount, "amount")
    _check_min_amount(top_up)
    disbursed_on = disbursed_on or date.today()
    _check_disbursement_period(db, loan.member_id, disbursed_on)

    loan.amount = loan.amount + top_up
    loan.principal_remaining = loan.principal_remaining + top_up
    loan.status = LoanStatus.ACTIVE
    db.commit()
    db.refresh(loan)
    logger.info(f"Topped up loan {loan.id} by {top_up} (approved by {approved_by})")

    _post_disbursement(db, loan.member_id, top_up, disbursed_on)
    return loan


def _apply_payment_to_loan(loan: Loan, principal: Decimal, interest: Decimal, payment_type: PaymentType) -> None:
    """Accrue the month's interest, then reduce balances by the payment."""
    principal_before = loan.principal_remaining if loan.principal_remaining is not None else loan.amount
    accrued = monthly_interest(principal_before, loan.interest_rate)

    loan.outstanding_interest = max(ZERO, (loan.outstanding_interest or ZERO) + accrued - interest)
    loan.principal_remaining = max(ZERO, principal_before - principal)
    if principal > 0 and payment_type in (PaymentType.PRINCIPAL, PaymentType.COMBINED):
        loan.monthly_emi_amount = principal

    if loan.principal_remaining <= 0 and loan.outstanding_interest <= 0:
        loan.status = LoanStatus.COMPLETED
    elif loan.status == LoanStatus.APPROVED:
        loan.status = LoanStatus.ACTIVE


def record_payment(
    db: Session,
    loan_id: UUID,
    payment_date: date,
    amount,
    payment_type: PaymentType = PaymentType.COMBINED,
    principal_component=None,
    interest_component=None,
    penalty_component=None,
    subscription_component=None,
    notes: str = None,
    recorded_by: UUID = None
) -> PaymentResult:
    """
    Append a payment to a loan for the period of ``payment_date``.

    Only one payment per loan per period is accepted. The payment is
    committed first; the loan balance update and the monthly record posting
    follow as separate writes. The posting adds the payment's components to
    whatever the draft record already holds. If either write fails the
    payment stays and the result carries a warning.
    """
    loan = get_loan(db, loan_id)
    if loan.status in (LoanStatus.PENDING, LoanStatus.REJECTED, LoanStatus.COMPLETED):
        raise ValidationError(f"Cannot record a payment against a {loan.status.value} loan")

    total = to_amount(amount, "amount")
    if total <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    components = {
        "principal_component": to_amount(principal_component, "principal_component"),
        "interest_component": to_amount(interest_component, "interest_component"),
        "penalty_component": to_amount(penalty_component, "penalty_component"),
        "subscription_component": to_amount(subscription_component, "subscription_component"),
    }
    if all(value == 0 for value in components.values()):
        if payment_type == PaymentType.COMBINED:
            raise ValidationError("A combined payment needs its principal/interest/penalty/subscription split")
        components[COMPONENT_FOR_TYPE[payment_type]] = total
    if sum(components.values()) != total:
        raise ValidationError(
            f"Payment components add up to {sum(components.values())} but the amount is {total}"
        )

    period_key = period_key_for_date(payment_date)

    existing = db.query(LoanPayment).filter(
        LoanPayment.loan_id == loan.id,
        LoanPayment.period_key == period_key
    ).first()
    if existing:
        raise DuplicatePaymentError(f"Payment can only be recorded once per month for this loan ({period_key} already has one)")

    record = _period_record(db, loan.member_id, period_key)
    if record and record.is_finalized:
        raise RecordFinalizedError(f"Monthly record for {period_key} is finalized; payments can no longer be recorded")

    payment = LoanPayment(
        loan_id=loan.id,
        member_id=loan.member_id,
        payment_date=payment_date,
        period_year=payment_date.year,
        period_month=payment_date.month,
        period_key=period_key,
        payment_type=payment_type,
        amount=total,
        notes=notes,
        recorded_by=recorded_by,
        **components
    )
    db.add(payment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(payment)
    logger.info(f"Recorded payment {payment.id} of {total} on loan {loan.id} for {period_key}")

    warning = None
    try:
        _apply_payment_to_loan(
            loan,
            components["principal_component"],
            components["interest_component"],
            payment_type,
        )
        db.commit()
        db.refresh(loan)
    except SQLAlchemyError as e:
        db.rollback()
        warning = "Payment recorded but failed to update loan balance"
        logger.warning(f"{warning} (loan {loan.id}, payment {payment.id}): {e}")

    if record is not None:
        try:
            post_payment(
                db,
                loan.member_id,
                period_key,
                interest=components["interest_component"],
                principal=components["principal_component"],
                penalty=components["penalty_component"],
            )
        except (LendingCircleError, SQLAlchemyError) as e:
            db.rollback()
            warning = "Payment recorded but the monthly record could not be updated"
            logger.warning(f"{warning} (member {loan.member_id}, {period_key}): {e}")

    return PaymentResult(payment=payment, loan=loan, warning=warning)


def get_request(db: Session, request_id: UUID) -> LoanRequest:
    loan_request = db.query(LoanRequest).filter(LoanRequest.id == request_id).first()
    if not loan_request:
        raise NotFoundError("Loan request not found")
    return loan_request


def list_requests(
    db: Session,
    member_id: UUID = None,
    status: LoanRequestStatus = None
) -> List[LoanRequest]:
    query = db.query(LoanRequest)
    if member_id:
        query = query.filter(LoanRequest.member_id == member_id)
    if status:
        query = query.filter(LoanRequest.status == status)
    return query.order_by(LoanRequest.created_at.desc()).all()


def create_request(
    db: Session,
    member_id: UUID,
    amount,
    purpose: str = None,
    duration_months: int = 0
) -> LoanRequest:
    """A member asks for a loan."""
    get_member(db, member_id)
    asked = to_amount(amount, "amount")
    if asked <= 0:
        raise ValidationError("Requested amount must be greater than 0")
    if duration_months is not None and duration_months < 0:
        raise ValidationError("duration_months cannot be negative")

    loan_request = LoanRequest(
        member_id=member_id,
        amount=asked,
        purpose=purpose,
        duration_months=duration_months or 0,
        status=LoanRequestStatus.PENDING,
    )
    db.add(loan_request)
    db.commit()
    db.refresh(loan_request)
    logger.info(f"Loan request {loan_request.id} of {asked} from member {member_id}")
    return loan_request


def _ensure_pending(loan_request: LoanRequest) -> None:
    if loan_request.status != LoanRequestStatus.PENDING:
        raise ValidationError(f"Loan request has already been {loan_request.status.value}")


def approve_request(
    db: Session,
    request_id: UUID,
    admin_id: UUID,
    approved_amount=None,
    remark: str = None,
    interest_rate=None,
    disbursed_on: date = None
) -> Loan:
    """Approve a pending request, optionally for less than asked, and open its loan."""
    loan_request = get_request(db, request_id)
    _ensure_pending(loan_request)

    amount = to_amount(approved_amount, "approved_amount") if approved_amount is not None else loan_request.amount
    if amount <= 0:
        raise ValidationError("Approved amount must be greater than 0")
    if amount > loan_request.amount:
        raise ValidationError("Approved amount cannot exceed the requested amount")
    disbursed_on = disbursed_on or date.today()
    _check_disbursement_period(db, loan_request.member_id, disbursed_on)

    loan = _new_loan(
        loan_request.member_id,
        amount,
        interest_rate,
        loan_request.purpose,
        admin_id,
        loan_request.duration_months,
        request_id=loan_request.id,
    )
    db.add(loan)

    loan_request.status = LoanRequestStatus.APPROVED
    loan_request.approved_amount = amount
    loan_request.remark = remark
    loan_request.reviewed_by = admin_id
    loan_request.reviewed_at = datetime.utcnow()

    db.commit()
    db.refresh(loan)
    logger.info(f"Approved loan request {loan_request.id} for {amount} (asked {loan_request.amount})")

    _post_disbursement(db, loan.member_id, amount, disbursed_on)
    return loan


def reject_request(
    db: Session,
    request_id: UUID,
    admin_id: UUID,
    remark: str = None
) -> LoanRequest:
    loan_request = get_request(db, request_id)
    _ensure_pending(loan_request)

    loan_request.status = LoanRequestStatus.REJECTED
    loan_request.remark = remark
    loan_request.reviewed_by = admin_id
    loan_request.reviewed_at = datetime.utcnow()
    db.commit()
    db.refresh(loan_request)
    logger.info(f"Rejected loan request {loan_request.id}")
    return loan_request
