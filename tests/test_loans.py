from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from lendcircle.models.loan import Loan, LoanPayment, LoanRequestStatus, LoanStatus, PaymentType
from lendcircle.models.monthly import MonthlyLoanRecord
from lendcircle.services import loan as loan_service
from lendcircle.services import monthly
from lendcircle.services.calculator import calculate_schedule
from lendcircle.services.errors import (
    DuplicatePaymentError,
    RecordFinalizedError,
    ValidationError,
)

D = Decimal
JAN_5 = date(2025, 1, 5)
JAN_20 = date(2025, 1, 20)


def _january_record(db, member):
    return db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member.id,
        MonthlyLoanRecord.period_key == "2025-01"
    ).one()


@pytest.fixture
def january(db, member):
    monthly.initialize_month(db, "2025-01")
    return _january_record(db, member)


@pytest.fixture
def loan(db, admin, member, january):
    return loan_service.create_loan(db, member.id, "10000", approved_by=admin.id, disbursed_on=JAN_5)


def test_create_loan_posts_disbursement_to_draft_record(db, member, loan):
    assert loan.status == LoanStatus.ACTIVE
    assert loan.principal_remaining == D("10000")
    assert loan.interest_rate == D("1.5")

    record = _january_record(db, member)
    assert record.new_loan_taken == D("10000")
    assert record.closing_outstanding == D("10000")
    assert record.available_loan_amount == D("390000")


def test_loan_below_minimum_is_rejected(db, member):
    with pytest.raises(ValidationError):
        loan_service.create_loan(db, member.id, "9999.99")


def test_top_up_adds_to_balance_and_record(db, admin, member, loan):
    topped = loan_service.add_top_up(db, loan.id, "15000", approved_by=admin.id, disbursed_on=JAN_20)

    assert topped.amount == D("25000")
    assert topped.principal_remaining == D("25000")
    assert _january_record(db, member).new_loan_taken == D("25000")


def test_combined_payment_updates_loan_and_record(db, admin, member, loan):
    result = loan_service.record_payment(
        db,
        loan.id,
        JAN_20,
        "2150",
        principal_component="2000",
        interest_component="150",
        recorded_by=admin.id,
    )

    assert result.warning is None
    assert result.payment.period_key == "2025-01"
    assert result.loan.principal_remaining == D("8000")
    assert result.loan.outstanding_interest == D("0")
    assert result.loan.monthly_emi_amount == D("2000")

    record = _january_record(db, member)
    assert record.principal_paid == D("2000")
    assert record.interest_paid == D("150")
    assert record.closing_outstanding == D("8000")


def test_second_payment_in_same_month_is_rejected(db, loan):
    loan_service.record_payment(db, loan.id, JAN_5, "150", payment_type=PaymentType.INTEREST)

    with pytest.raises(DuplicatePaymentError) as excinfo:
        loan_service.record_payment(db, loan.id, JAN_20, "2000", payment_type=PaymentType.PRINCIPAL)

    assert "once per month" in str(excinfo.value)
    assert db.query(LoanPayment).count() == 1


def test_single_type_payment_books_whole_amount(db, loan):
    result = loan_service.record_payment(db, loan.id, JAN_20, "150", payment_type=PaymentType.INTEREST)

    assert result.payment.interest_component == D("150")
    assert result.payment.principal_component == D("0")


def test_combined_payment_needs_split(db, loan):
    with pytest.raises(ValidationError):
        loan_service.record_payment(db, loan.id, JAN_20, "2150")


def test_components_must_add_up(db, loan):
    with pytest.raises(ValidationError):
        loan_service.record_payment(
            db, loan.id, JAN_20, "2150", principal_component="2000", interest_component="100"
        )
    assert db.query(LoanPayment).count() == 0


def test_payment_into_finalized_period_is_rejected(db, admin, member, loan):
    monthly.finalize_record(db, _january_record(db, member).id, admin_id=admin.id)

    with pytest.raises(RecordFinalizedError):
        loan_service.record_payment(db, loan.id, JAN_20, "150", payment_type=PaymentType.INTEREST)

    assert db.query(LoanPayment).count() == 0


def test_loan_balance_failure_keeps_payment_with_warning(db, loan, monkeypatch):
    def broken(*args, **kwargs):
        raise SQLAlchemyError("balance update failed")

    monkeypatch.setattr(loan_service, "_apply_payment_to_loan", broken)

    result = loan_service.record_payment(db, loan.id, JAN_20, "2000", payment_type=PaymentType.PRINCIPAL)

    assert result.warning == "Payment recorded but failed to update loan balance"
    assert db.query(LoanPayment).count() == 1
    assert loan_service.get_loan(db, loan.id).principal_remaining == D("10000")


def test_full_repayment_completes_loan(db, loan):
    result = loan_service.record_payment(
        db, loan.id, JAN_20, "10150", principal_component="10000", interest_component="150"
    )

    assert result.loan.status == LoanStatus.COMPLETED
    with pytest.raises(ValidationError):
        loan_service.record_payment(db, loan.id, date(2025, 2, 10), "100", payment_type=PaymentType.INTEREST)


def test_payment_without_monthly_record(db, member):
    loan = loan_service.create_loan(db, member.id, "20000", disbursed_on=date(2025, 6, 1))

    result = loan_service.record_payment(db, loan.id, date(2025, 6, 15), "300", payment_type=PaymentType.INTEREST)

    assert result.warning is None
    assert result.loan.principal_remaining == D("20000")


def test_approve_request_for_less_than_asked(db, admin, member, january):
    loan_request = loan_service.create_request(db, member.id, "50000", purpose="School fees", duration_months=10)

    loan = loan_service.approve_request(
        db, loan_request.id, admin.id, approved_amount="40000", remark="Partial", disbursed_on=JAN_20
    )

    db.refresh(loan_request)
    assert loan_request.status == LoanRequestStatus.APPROVED
    assert loan_request.approved_amount == D("40000")
    assert loan_request.reviewed_by == admin.id
    assert loan.amount == D("40000")
    assert loan.request_id == loan_request.id
    assert loan.purpose == "School fees"
    assert _january_record(db, member).new_loan_taken == D("40000")


def test_approve_more_than_asked_is_rejected(db, admin, member):
    loan_request = loan_service.create_request(db, member.id, "20000")

    with pytest.raises(ValidationError):
        loan_service.approve_request(db, loan_request.id, admin.id, approved_amount="25000")


def test_request_is_reviewed_once(db, admin, member):
    loan_request = loan_service.create_request(db, member.id, "20000")
    rejected = loan_service.reject_request(db, loan_request.id, admin.id, remark="Too soon")

    assert rejected.status == LoanRequestStatus.REJECTED
    assert rejected.remark == "Too soon"
    with pytest.raises(ValidationError):
        loan_service.approve_request(db, loan_request.id, admin.id)


def test_request_amount_must_be_positive(db, member):
    with pytest.raises(ValidationError):
        loan_service.create_request(db, member.id, "0")


def test_repayment_schedule():
    schedule = calculate_schedule("12000", "1.5", 12)

    assert schedule["total_interest"] == D("2160.00")
    assert schedule["total_amount"] == D("14160.00")
    assert schedule["monthly_payment"] == D("1180.00")
    first = schedule["breakdown"][0]
    assert first["interest_paid"] == D("17.70")
    assert first["principal_paid"] == D("1162.30")
    assert first["remaining_balance"] == D("12980.00")
    assert schedule["breakdown"][-1]["remaining_balance"] == D("0.00")


def test_schedule_needs_a_term():
    with pytest.raises(ValidationError):
        calculate_schedule("12000", "1.5", 0)


def test_delete_month_drops_its_payments(db, loan):
    loan_service.record_payment(db, loan.id, JAN_20, "150", payment_type=PaymentType.INTEREST)

    assert monthly.delete_month(db, "2025-01") == 1

    assert db.query(LoanPayment).count() == 0
    assert db.query(MonthlyLoanRecord).count() == 0


def test_payment_adds_to_hand_entered_figures(db, member, loan):
    record = _january_record(db, member)
    monthly.update_record(db, record.id, {"penalty": "100", "interest_paid": "300"})

    result = loan_service.record_payment(db, loan.id, JAN_20, "2000", payment_type=PaymentType.PRINCIPAL)

    assert result.warning is None
    record = monthly.get_record(db, record.id)
    assert record.penalty == D("100")
    assert record.interest_paid == D("300")
    assert record.principal_paid == D("2000")
    assert record.closing_outstanding == D("8000")
    assert record.total_monthly_income == D("4500")


def test_refresh_keeps_components_payments_do_not_carry(db, member, loan):
    loan_service.record_payment(db, loan.id, JAN_20, "2000", payment_type=PaymentType.PRINCIPAL)
    record = _january_record(db, member)
    monthly.update_record(db, record.id, {"principal_paid": "500", "penalty": "100"})

    assert monthly.refresh_monthly_records(db, "2025-01") == 1

    record = monthly.get_record(db, record.id)
    assert record.principal_paid == D("2000")
    assert record.penalty == D("100")


def test_loan_into_finalized_month_is_rejected(db, admin, member, january):
    monthly.finalize_record(db, january.id, admin_id=admin.id)

    with pytest.raises(RecordFinalizedError):
        loan_service.create_loan(db, member.id, "10000", disbursed_on=JAN_5)

    assert db.query(Loan).count() == 0
    assert _january_record(db, member).new_loan_taken == D("0")


def test_top_up_into_finalized_month_is_rejected(db, admin, member, loan):
    monthly.finalize_record(db, _january_record(db, member).id, admin_id=admin.id)

    with pytest.raises(RecordFinalizedError):
        loan_service.add_top_up(db, loan.id, "15000", disbursed_on=JAN_20)

    assert loan_service.get_loan(db, loan.id).amount == D("10000")


def test_disbursement_without_monthly_record_is_flagged(db, member):
    june = date(2025, 6, 1)
    loan_service.create_loan(db, member.id, "20000", disbursed_on=june)

    assert "2025-06" in loan_service.disbursement_warning(db, member.id, june)
    monthly.initialize_month(db, "2025-06")
    assert loan_service.disbursement_warning(db, member.id, june) is None
