from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from lendcircle.db.base import get_db
from lendcircle.core.dependencies import get_current_user, require_admin
from lendcircle.core.audit import audit
from lendcircle.models.profile import Profile
from lendcircle.schemas.monthly import (
    MonthInitialize,
    InitializeResponse,
    PeriodSummary,
    PeriodReport,
    RecordResponse,
)
from lendcircle.services import monthly as monthly_service
from lendcircle.services.errors import LendingCircleError
from lendcircle.api.errors import http_error, parse_uuid
from typing import List, Optional

router = APIRouter(prefix="/api/months", tags=["months"])


def record_response(record, member: Profile = None) -> RecordResponse:
    response = RecordResponse.model_validate(record)
    if member is not None:
        response.member_name = member.full_name
        response.member_code = member.member_code
    return response


def _scoped_member(current_user: Profile, member_id: Optional[str]):
    """Admins may look at anyone; members only ever see their own records."""
    if not current_user.is_admin:
        return current_user.id
    return parse_uuid(member_id, "member ID") if member_id else None


@router.get("", response_model=List[PeriodSummary])
def list_months(
    limit: int = Query(12, ge=1, le=120),
    member_id: Optional[str] = None,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Distinct periods, newest first."""
    return monthly_service.list_periods(db, limit=limit, member_id=_scoped_member(current_user, member_id))


@router.post("", response_model=InitializeResponse)
def initialize_month(
    body: MonthInitialize,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create draft records for every member for the period (Admin only)."""
    try:
        period_key = body.period_key or monthly_service.make_period_key(body.period_year, body.period_month)
        result = monthly_service.initialize_month(db, period_key, created_by=current_user.id)
    except LendingCircleError as e:
        raise http_error(e)

    if not result.success:
        raise HTTPException(status_code=400, detail=result.error or f"Failed to initialize {period_key}")

    audit(current_user, "Initialize month", f"period={result.period_key} created={result.records_created}")
    return InitializeResponse(
        success=result.success,
        period_key=result.period_key,
        records_created=result.records_created,
        error=result.error
    )


@router.get("/{period_key}/records", response_model=List[RecordResponse])
def get_month_records(
    period_key: str,
    member_id: Optional[str] = None,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        rows = monthly_service.get_period_records(db, period_key, member_id=_scoped_member(current_user, member_id))
    except LendingCircleError as e:
        raise http_error(e)
    return [record_response(record, member) for record, member in rows]


@router.post("/{period_key}/refresh")
def refresh_month(
    period_key: str,
    member_id: Optional[str] = None,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Re-aggregate the period's loan payments into its draft records (Admin only)."""
    member_uuid = parse_uuid(member_id, "member ID") if member_id else None
    try:
        updated = monthly_service.refresh_monthly_records(db, period_key, member_id=member_uuid)
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)
    return {"message": f"Refreshed {updated} record(s) for {period_key}", "updated_count": updated}


@router.get("/{period_key}/report", response_model=PeriodReport)
def month_report(
    period_key: str,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        return monthly_service.period_report(db, period_key)
    except LendingCircleError as e:
        raise http_error(e)


@router.delete("/{period_key}")
def delete_month(
    period_key: str,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete a period's records while none of them is finalized (Admin only)."""
    try:
        deleted = monthly_service.delete_month(db, period_key)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Delete month", f"period={period_key} deleted={deleted}")
    return {"message": f"Deleted {deleted} record(s) for {period_key}", "deleted_count": deleted}
