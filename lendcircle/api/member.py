from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from lendcircle.db.base import get_db
from lendcircle.core.dependencies import get_current_user, require_member
from lendcircle.models.profile import Profile
from lendcircle.models.loan import LoanStatus, LoanRequestStatus
from lendcircle.schemas.monthly import MemberDashboard, RecordResponse
from lendcircle.schemas.loan import LoanResponse, LoanRequestCreate, LoanRequestResponse
from lendcircle.services import loan as loan_service
from lendcircle.services.monthly import list_member_records
from lendcircle.services.ledger import ZERO, clamp_available, compute_interest_due, credit_ceiling
from lendcircle.services.errors import LendingCircleError
from lendcircle.api.errors import http_error
from lendcircle.api.months import record_response
from typing import List

router = APIRouter(prefix="/api/member", tags=["member"])


@router.get("/dashboard", response_model=MemberDashboard)
def get_dashboard(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Own balances from the latest monthly record, plus loan and request counts."""
    records = list_member_records(db, current_user.id, limit=6)
    latest = records[0] if records else None

    outstanding = latest.closing_outstanding if latest else ZERO
    credit_limit = latest.credit_limit if latest else credit_ceiling()
    active_loans = [loan for loan in loan_service.list_loans(db, member_id=current_user.id)
                    if loan.status in (LoanStatus.APPROVED, LoanStatus.ACTIVE)]
    pending = loan_service.list_requests(db, member_id=current_user.id, status=LoanRequestStatus.PENDING)

    return MemberDashboard(
        member_id=current_user.id,
        full_name=current_user.full_name,
        member_code=current_user.member_code,
        period_key=latest.period_key if latest else None,
        monthly_subscription=latest.monthly_subscription if latest else current_user.monthly_subscription,
        outstanding=outstanding,
        credit_limit=credit_limit,
        available_credit=clamp_available(credit_limit - outstanding),
        interest_due=compute_interest_due(outstanding),
        active_loans=len(active_loans),
        pending_requests=len(pending),
        recent_records=[record_response(record, current_user) for record in records]
    )


@router.get("/records", response_model=List[RecordResponse])
def get_my_records(
    limit: int = Query(12, ge=1, le=120),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    records = list_member_records(db, current_user.id, limit=limit)
    return [record_response(record, current_user) for record in records]


@router.get("/loans", response_model=List[LoanResponse])
def get_my_loans(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return loan_service.list_loans(db, member_id=current_user.id)


@router.get("/loan-requests", response_model=List[LoanRequestResponse])
def get_my_loan_requests(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return loan_service.list_requests(db, member_id=current_user.id)


@router.post("/loan-requests", response_model=LoanRequestResponse)
def request_loan(
    body: LoanRequestCreate,
    current_user: Profile = Depends(require_member),
    db: Session = Depends(get_db)
):
    """Ask the admins for a loan (members only)."""
    try:
        return loan_service.create_request(
            db,
            current_user.id,
            body.amount,
            purpose=body.purpose,
            duration_months=body.duration_months
        )
    except LendingCircleError as e:
        raise http_error(e)
