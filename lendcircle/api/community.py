from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from lendcircle.db.base import get_db
from lendcircle.core.config import settings
from lendcircle.core.dependencies import get_current_user
from lendcircle.models.profile import Profile
from lendcircle.models.system import NoticePriority
from lendcircle.schemas.system import NoticeResponse
from lendcircle.schemas.loan import LoanCalculation, LoanSchedule
from lendcircle.services.notice import list_notices
from lendcircle.services.calculator import calculate_schedule
from lendcircle.services.errors import LendingCircleError
from lendcircle.api.errors import http_error
from typing import List, Optional

router = APIRouter(prefix="/api", tags=["community"])


@router.get("/notices", response_model=List[NoticeResponse])
def get_notices(
    priority: Optional[NoticePriority] = None,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Notice board, newest first."""
    return list_notices(db, priority=priority)


@router.post("/loans/calculate", response_model=LoanSchedule)
def calculate_loan(
    body: LoanCalculation,
    current_user: Profile = Depends(get_current_user)
):
    """Repayment schedule for a prospective loan."""
    rate = body.interest_rate if body.interest_rate is not None else settings.DEFAULT_LOAN_INTEREST_RATE
    try:
        return calculate_schedule(body.amount, rate, body.duration_months)
    except LendingCircleError as e:
        raise http_error(e)
