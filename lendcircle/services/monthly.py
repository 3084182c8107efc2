"""Monthly cycle: initialize, edit, finalize and report on ledger lines.

A period is identified by a ``YYYY-MM`` key. Every active member gets one
record per period, created in ``draft`` status with the previous period's
closing balance as its opening balance. Draft records can be edited freely;
finalized records never change.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import case, func
from lendcircle.models.monthly import MonthlyLoanRecord, RecordStatus
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.models.loan import LoanPayment
from lendcircle.services.errors import (
    NotFoundError,
    RecordFinalizedError,
    StaleRecordError,
    ValidationError,
)
from lendcircle.services.ledger import (
    LedgerInputs,
    ZERO,
    compute_interest_due,
    credit_ceiling,
    record_changes,
    roll_forward,
    to_amount,
)
from lendcircle.services.settings import get_default_subscription
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Dict, List, Optional, Tuple
import logging
import re

logger = logging.getLogger(__name__)

PERIOD_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Record fields fed by loan payments
PAYMENT_FIELDS = ("interest_paid", "principal_paid", "penalty")


@dataclass
class InitializeResult:
    success: bool
    period_key: str
    records_created: int = 0
    error: Optional[str] = None


def make_period_key(year: int, month: int) -> str:
    if not 1 <= int(month) <= 12:
        raise ValidationError("Month must be between 1 and 12")
    return f"{int(year):04d}-{int(month):02d}"


def parse_period_key(period_key: str) -> Tuple[int, int]:
    """Split a ``YYYY-MM`` key into (year, month)."""
    match = PERIOD_KEY_RE.match(period_key or "")
    if not match:
        raise ValidationError(f"Invalid period key '{period_key}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid period key '{period_key}', month must be 01-12")
    return year, month


def period_key_for_date(day: date) -> str:
    return make_period_key(day.year, day.month)


def month_label(year: int, month: int) -> str:
    """Short label such as 'Jan 2025'."""
    return date(year, month, 1).strftime("%b %Y")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def get_record(db: Session, record_id: UUID) -> MonthlyLoanRecord:
    record = db.query(MonthlyLoanRecord).filter(MonthlyLoanRecord.id == record_id).first()
    if not record:
        raise NotFoundError("Monthly record not found")
    return record


def _previous_closing(db: Session, member_id: UUID, period_key: str) -> Decimal:
    """Closing balance of the member's latest record before the period, or zero."""
    previous = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member_id,
        MonthlyLoanRecord.period_key < period_key
    ).order_by(MonthlyLoanRecord.period_key.desc()).first()
    return previous.closing_outstanding if previous else ZERO


def initialize_month(
    db: Session,
    period_key: str,
    created_by: UUID = None
) -> InitializeResult:
    """
    Create the draft records for a period.

    One record per member with role ``member`` that does not have one yet.
    Running it again for the same period creates nothing. The opening balance
    is carried forward from the member's most recent earlier period.
    """
    year, month = parse_period_key(period_key)

    members = db.query(Profile).filter(Profile.role == ProfileRole.MEMBER).all()
    existing = {
        row[0] for row in db.query(MonthlyLoanRecord.member_id).filter(
            MonthlyLoanRecord.period_key == period_key
        ).all()
    }
    default_subscription = get_default_subscription(db)
    ceiling = credit_ceiling()

    created = 0
    try:
        for member in members:
            if member.id in existing:
                continue

            opening = _previous_closing(db, member.id, period_key)
            subscription = member.monthly_subscription or default_subscription
            figures = roll_forward(
                LedgerInputs(opening_outstanding=opening, monthly_subscription=subscription),
                ceiling,
            )
            record = MonthlyLoanRecord(
                member_id=member.id,
                period_key=period_key,
                period_year=year,
                period_month=month,
                opening_outstanding=opening,
                credit_limit=ceiling,
                interest_due=compute_interest_due(opening),
                monthly_subscription=subscription,
                status=RecordStatus.DRAFT,
                version=1,
                created_by=created_by,
                **figures.as_record_values()
            )
            db.add(record)
            created += 1

        db.commit()
    except IntegrityError as e:
        # Another admin initialized the same period concurrently
        db.rollback()
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        logger.warning(f"Initializing {period_key} failed: {error_msg}")
        return InitializeResult(success=False, period_key=period_key, error=error_msg)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error initializing {period_key}: {e}", exc_info=True)
        return InitializeResult(success=False, period_key=period_key, error=str(e))

    logger.info(f"Initialized {period_key}: {created} record(s) created, {len(existing)} already present")
    return InitializeResult(success=True, period_key=period_key, records_created=created)


def _conflict_error(db: Session, record_id: UUID, expected_version: Optional[int]) -> Exception:
    """Explain why a compare-and-swap update matched no row."""
    db.rollback()
    record = get_record(db, record_id)
    if record.is_finalized:
        return RecordFinalizedError(f"Monthly record for {record.period_key} is finalized and cannot be changed")
    return StaleRecordError(
        f"Monthly record was changed by someone else (expected version {expected_version}, "
        f"current version {record.version}). Reload and try again."
    )


def update_record(
    db: Session,
    record_id: UUID,
    changes: Dict,
    expected_version: Optional[int] = None,
    updated_by: UUID = None
) -> MonthlyLoanRecord:
    """
    Edit the events of a draft record and recompute its derived fields.

    The write only applies while the record is still a draft at the version
    that was read (``expected_version`` if given, else the version loaded
    here), so a concurrent edit or finalize is reported instead of lost.
    """
    record = get_record(db, record_id)

    changes = dict(changes)
    notes = changes.pop("notes", None)
    values = record_changes(record, changes)

    version = record.version if expected_version is None else expected_version
    values["version"] = version + 1
    values["updated_at"] = datetime.utcnow()
    if notes is not None:
        values["notes"] = notes

    matched = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.id == record.id,
        MonthlyLoanRecord.status == RecordStatus.DRAFT,
        MonthlyLoanRecord.version == version
    ).update(values, synchronize_session=False)

    if matched == 0:
        raise _conflict_error(db, record_id, version)

    db.commit()
    db.refresh(record)
    logger.info(f"Updated monthly record {record.id} ({record.period_key}) to version {record.version}")
    return record


def finalize_record(
    db: Session,
    record_id: UUID,
    admin_id: UUID = None
) -> MonthlyLoanRecord:
    """Lock a draft record. A finalized record can never be edited again."""
    record = get_record(db, record_id)
    if record.is_finalized:
        raise RecordFinalizedError(f"Monthly record for {record.period_key} is already finalized")

    matched = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.id == record.id,
        MonthlyLoanRecord.status == RecordStatus.DRAFT
    ).update({
        "status": RecordStatus.FINALIZED,
        "finalized_by": admin_id,
        "finalized_at": datetime.utcnow(),
        "version": MonthlyLoanRecord.version + 1,
    }, synchronize_session=False)

    if matched == 0:
        db.rollback()
        raise RecordFinalizedError(f"Monthly record for {record.period_key} is already finalized")

    db.commit()
    db.refresh(record)
    logger.info(f"Finalized monthly record {record.id} ({record.period_key}) closing={record.closing_outstanding}")
    return record


def refresh_monthly_records(
    db: Session,
    period_key: str,
    member_id: UUID = None
) -> int:
    """
    Re-aggregate recorded payments into the period's draft records.

    For every draft record with payments in the period, each of interest,
    principal and penalty that the payments carry is replaced with the
    payment total. Components the payments do not carry keep their manually
    entered values; finalized records are skipped.
    Returns the number of records updated.
    """
    parse_period_key(period_key)

    totals_query = db.query(
        LoanPayment.member_id,
        func.coalesce(func.sum(LoanPayment.interest_component), 0),
        func.coalesce(func.sum(LoanPayment.principal_component), 0),
        func.coalesce(func.sum(LoanPayment.penalty_component), 0),
    ).filter(LoanPayment.period_key == period_key)
    if member_id:
        totals_query = totals_query.filter(LoanPayment.member_id == member_id)
    totals = {row[0]: row[1:] for row in totals_query.group_by(LoanPayment.member_id).all()}

    records_query = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.period_key == period_key,
        MonthlyLoanRecord.status == RecordStatus.DRAFT
    )
    if member_id:
        records_query = records_query.filter(MonthlyLoanRecord.member_id == member_id)

    updated = 0
    for record in records_query.all():
        if record.member_id not in totals:
            continue
        carried = dict(zip(PAYMENT_FIELDS, totals[record.member_id]))
        changes = {name: total for name, total in carried.items() if _money(total) > 0}
        if not changes:
            continue
        update_record(db, record.id, changes)
        updated += 1

    logger.info(f"Refreshed {updated} record(s) for {period_key}")
    return updated


def post_payment(
    db: Session,
    member_id: UUID,
    period_key: str,
    interest=ZERO,
    principal=ZERO,
    penalty=ZERO
) -> Optional[MonthlyLoanRecord]:
    """
    Add one payment's components onto the member's draft record for the period.

    Values already on the record, including hand-entered ones, are kept and
    the payment is added on top. Returns None when the member has no record
    for the period.
    """
    record = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member_id,
        MonthlyLoanRecord.period_key == period_key
    ).first()
    if not record:
        return None

    amounts = dict(zip(PAYMENT_FIELDS, (interest, principal, penalty)))
    changes = {
        name: (getattr(record, name) or ZERO) + _money(amount)
        for name, amount in amounts.items()
        if _money(amount) > 0
    }
    if not changes:
        return record
    return update_record(db, record.id, changes)


def _guarded_update(db: Session, record: MonthlyLoanRecord, values: dict) -> bool:
    """Write values only while the record is still the draft that was read."""
    values = dict(values)
    values["version"] = record.version + 1
    values["updated_at"] = datetime.utcnow()
    matched = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.id == record.id,
        MonthlyLoanRecord.status == RecordStatus.DRAFT,
        MonthlyLoanRecord.version == record.version
    ).update(values, synchronize_session=False)
    return matched == 1


def bulk_update_settings(
    db: Session,
    monthly_subscription=None,
    credit_limit=None,
    period_key: str = None,
    status: RecordStatus = None
) -> int:
    """
    Mass-update subscription and/or credit limit on draft records.

    Filtered by period key when given. Finalized records are never touched,
    so asking for ``status=finalized`` is rejected. A record finalized or
    edited while the update runs is skipped. Returns the update count.
    """
    if monthly_subscription is None and credit_limit is None:
        raise ValidationError("Provide monthly_subscription and/or credit_limit")
    if status == RecordStatus.FINALIZED:
        raise RecordFinalizedError("Finalized records cannot be bulk-updated")

    events = {}
    if monthly_subscription is not None:
        events["monthly_subscription"] = to_amount(monthly_subscription, "monthly_subscription")
    limit = to_amount(credit_limit, "credit_limit") if credit_limit is not None else None

    query = db.query(MonthlyLoanRecord).filter(MonthlyLoanRecord.status == RecordStatus.DRAFT)
    if period_key:
        parse_period_key(period_key)
        query = query.filter(MonthlyLoanRecord.period_key == period_key)

    updated = 0
    skipped = 0
    for record in query.all():
        values = record_changes(record, events, credit_limit=limit)
        if _guarded_update(db, record, values):
            updated += 1
        else:
            skipped += 1

    db.commit()
    if skipped:
        logger.warning(f"Bulk update skipped {skipped} record(s) changed or finalized meanwhile")
    logger.info(f"Bulk update touched {updated} draft record(s) (period={period_key or 'all'})")
    return updated


def delete_month(db: Session, period_key: str) -> int:
    """
    Delete a period's draft records and the loan payments booked into it,
    so the period can be initialized again.

    Refused once any record of the period is finalized; the draft delete is
    rolled back in that case. Loan balances are left as they are.
    """
    parse_period_key(period_key)

    deleted = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.period_key == period_key,
        MonthlyLoanRecord.status == RecordStatus.DRAFT
    ).delete(synchronize_session=False)

    finalized = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.period_key == period_key,
        MonthlyLoanRecord.status == RecordStatus.FINALIZED
    ).count()
    if finalized:
        db.rollback()
        raise RecordFinalizedError(f"{period_key} has {finalized} finalized record(s) and cannot be deleted")

    payments = db.query(LoanPayment).filter(
        LoanPayment.period_key == period_key
    ).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Deleted {deleted} draft record(s) and {payments} payment(s) for {period_key}")
    return deleted


def list_periods(db: Session, limit: int = 12, member_id: UUID = None) -> List[dict]:
    """Distinct periods, newest first, with draft/finalized counts."""
    finalized_count = func.sum(case((MonthlyLoanRecord.status == RecordStatus.FINALIZED, 1), else_=0))
    query = db.query(
        MonthlyLoanRecord.period_key,
        MonthlyLoanRecord.period_year,
        MonthlyLoanRecord.period_month,
        func.count(MonthlyLoanRecord.id),
        finalized_count,
    )
    if member_id:
        query = query.filter(MonthlyLoanRecord.member_id == member_id)

    rows = query.group_by(
        MonthlyLoanRecord.period_key,
        MonthlyLoanRecord.period_year,
        MonthlyLoanRecord.period_month,
    ).order_by(
        MonthlyLoanRecord.period_year.desc(),
        MonthlyLoanRecord.period_month.desc(),
    ).limit(limit).all()

    periods = []
    for period_key, year, month, record_count, finalized in rows:
        finalized = int(finalized or 0)
        periods.append({
            "period_key": period_key,
            "period_year": year,
            "period_month": month,
            "month_label": month_label(year, month),
            "status": RecordStatus.FINALIZED.value if finalized == record_count else RecordStatus.DRAFT.value,
            "record_count": record_count,
            "finalized_count": finalized,
        })
    return periods


def get_period_records(
    db: Session,
    period_key: str,
    member_id: UUID = None
) -> List[Tuple[MonthlyLoanRecord, Profile]]:
    """Records of a period joined with their member, ordered by member code."""
    parse_period_key(period_key)
    query = db.query(MonthlyLoanRecord, Profile).join(
        Profile, Profile.id == MonthlyLoanRecord.member_id
    ).filter(MonthlyLoanRecord.period_key == period_key)
    if member_id:
        query = query.filter(MonthlyLoanRecord.member_id == member_id)
    return query.order_by(Profile.member_code, Profile.full_name).all()


def list_member_records(db: Session, member_id: UUID, limit: int = 12) -> List[MonthlyLoanRecord]:
    return db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member_id
    ).order_by(MonthlyLoanRecord.period_key.desc()).limit(limit).all()


def period_report(db: Session, period_key: str) -> dict:
    """Monthly statement totals for a period."""
    parse_period_key(period_key)

    def total(column):
        return func.coalesce(func.sum(column), 0)

    row = db.query(
        func.count(MonthlyLoanRecord.id),
        total(MonthlyLoanRecord.monthly_subscription),
        total(MonthlyLoanRecord.interest_paid),
        total(MonthlyLoanRecord.principal_paid),
        total(MonthlyLoanRecord.additional_principal),
        total(MonthlyLoanRecord.new_loan_taken),
        total(MonthlyLoanRecord.penalty),
        total(MonthlyLoanRecord.total_monthly_income),
        total(MonthlyLoanRecord.closing_outstanding),
        func.sum(case((MonthlyLoanRecord.status == RecordStatus.FINALIZED, 1), else_=0)),
    ).filter(MonthlyLoanRecord.period_key == period_key).one()

    record_count = row[0]
    if record_count == 0:
        raise NotFoundError(f"No records found for {period_key}")

    year, month = parse_period_key(period_key)
    finalized = int(row[9] or 0)
    return {
        "period_key": period_key,
        "month_label": month_label(year, month),
        "record_count": record_count,
        "draft_count": record_count - finalized,
        "finalized_count": finalized,
        "total_subscription": _money(row[1]),
        "total_interest": _money(row[2]),
        "total_principal": _money(row[3]),
        "total_additional_principal": _money(row[4]),
        "total_new_loans": _money(row[5]),
        "total_penalty": _money(row[6]),
        "total_income": _money(row[7]),
        "total_outstanding": _money(row[8]),
    }
