from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from lendcircle.db.base import get_db
from lendcircle.core.dependencies import require_admin
from lendcircle.core.audit import audit
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.models.loan import LoanStatus, LoanRequestStatus
from lendcircle.models.system import NoticePriority
from lendcircle.schemas.auth import UserResponse
from lendcircle.schemas.member import MemberCreate, MemberUpdate, RoleChange
from lendcircle.schemas.loan import (
    LoanCreate,
    LoanTopUp,
    LoanResponse,
    LoanRequestApprove,
    LoanRequestReject,
    LoanRequestResponse,
)
from lendcircle.schemas.monthly import BulkUpdateRequest, BulkUpdateResponse, CashBillRequest
from lendcircle.schemas.system import NoticeCreate, NoticeUpdate, NoticeResponse, SettingsUpdate
from lendcircle.services import member as member_service
from lendcircle.services import loan as loan_service
from lendcircle.services import notice as notice_service
from lendcircle.services import settings as settings_service
from lendcircle.services.monthly import bulk_update_settings
from lendcircle.services.cash_bill import render_cash_bill
from lendcircle.services.errors import LendingCircleError
from lendcircle.api.errors import http_error, parse_uuid
from datetime import date
from typing import Dict, List, Optional

router = APIRouter(prefix="/api/admin", tags=["admin"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _loan_response(db: Session, loan, disbursed_on: Optional[date]) -> LoanResponse:
    """Loan with a warning when its disbursement is not on the monthly ledger."""
    warning = loan_service.disbursement_warning(db, loan.member_id, disbursed_on or date.today())
    return LoanResponse.model_validate(loan).model_copy(update={"warning": warning})


# Members

@router.get("/members", response_model=List[UserResponse])
def list_members(
    role: Optional[ProfileRole] = None,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return [UserResponse.from_profile(m) for m in member_service.list_members(db, role=role)]


@router.post("/members", response_model=UserResponse)
def create_member(
    body: MemberCreate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a member login (Admin only)."""
    try:
        member = member_service.create_member(
            db,
            email=body.email,
            password=body.password,
            full_name=body.full_name,
            phone=body.phone,
            role=body.role,
            member_code=body.member_code,
            monthly_subscription=body.monthly_subscription
        )
    except (LendingCircleError, IntegrityError) as e:
        raise http_error(e)
    audit(current_user, "Create member", f"member={member.member_code} email={member.email}")
    return UserResponse.from_profile(member)


@router.patch("/members/{member_id}", response_model=UserResponse)
def update_member(
    member_id: str,
    body: MemberUpdate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    member_uuid = parse_uuid(member_id, "member ID")
    try:
        member = member_service.update_member(db, member_uuid, **body.model_dump(exclude_unset=True))
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)
    audit(current_user, "Update member", f"member={member.member_code}")
    return UserResponse.from_profile(member)


@router.post("/members/{member_id}/role", response_model=UserResponse)
def change_role(
    member_id: str,
    body: RoleChange,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Promote a member to admin or demote an admin (Admin only)."""
    member_uuid = parse_uuid(member_id, "member ID")
    if member_uuid == current_user.id and body.role != ProfileRole.ADMIN:
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")
    try:
        member = member_service.set_role(db, member_uuid, body.role)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Change role", f"member={member.email} role={body.role.value}")
    return UserResponse.from_profile(member)


@router.delete("/members/{member_id}")
def delete_member(
    member_id: str,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    member_uuid = parse_uuid(member_id, "member ID")
    if member_uuid == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    try:
        member_service.delete_member(db, member_uuid)
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)
    audit(current_user, "Delete member", f"member={member_id}")
    return {"message": "Member deleted successfully"}


# Loans

@router.get("/loans", response_model=List[LoanResponse])
def list_loans(
    member_id: Optional[str] = None,
    status: Optional[LoanStatus] = None,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    member_uuid = parse_uuid(member_id, "member ID") if member_id else None
    return loan_service.list_loans(db, member_id=member_uuid, status=status)


@router.post("/loans", response_model=LoanResponse)
def create_loan(
    body: LoanCreate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Open an active loan for a member directly (Admin only)."""
    try:
        loan = loan_service.create_loan(
            db,
            body.member_id,
            body.amount,
            interest_rate=body.interest_rate,
            purpose=body.purpose,
            approved_by=current_user.id,
            duration_months=body.duration_months,
            disbursed_on=body.disbursed_on
        )
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)
    audit(current_user, "Create loan", f"loan={loan.id} member={loan.member_id} amount={loan.amount}")
    return _loan_response(db, loan, body.disbursed_on)


@router.post("/loans/{loan_id}/top-up", response_model=LoanResponse)
def top_up_loan(
    loan_id: str,
    body: LoanTopUp,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    loan_uuid = parse_uuid(loan_id, "loan ID")
    try:
        loan = loan_service.add_top_up(
            db,
            loan_uuid,
            body.amount,
            approved_by=current_user.id,
            disbursed_on=body.disbursed_on
        )
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)
    audit(current_user, "Top up loan", f"loan={loan.id} amount={body.amount}")
    return _loan_response(db, loan, body.disbursed_on)


# Loan requests

@router.get("/loan-requests", response_model=List[LoanRequestResponse])
def list_loan_requests(
    status: Optional[LoanRequestStatus] = None,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return loan_service.list_requests(db, status=status)


@router.post("/loan-requests/{request_id}/approve", response_model=LoanResponse)
def approve_loan_request(
    request_id: str,
    body: LoanRequestApprove,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Approve a pending request, optionally for a smaller amount (Admin only)."""
    request_uuid = parse_uuid(request_id, "loan request ID")
    try:
        loan = loan_service.approve_request(
            db,
            request_uuid,
            current_user.id,
            approved_amount=body.approved_amount,
            remark=body.remark,
            interest_rate=body.interest_rate,
            disbursed_on=body.disbursed_on
        )
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)
    audit(current_user, "Approve loan request", f"request={request_id} amount={loan.amount}")
    return _loan_response(db, loan, body.disbursed_on)


@router.post("/loan-requests/{request_id}/reject", response_model=LoanRequestResponse)
def reject_loan_request(
    request_id: str,
    body: LoanRequestReject,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    request_uuid = parse_uuid(request_id, "loan request ID")
    try:
        loan_request = loan_service.reject_request(db, request_uuid, current_user.id, remark=body.remark)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Reject loan request", f"request={request_id}")
    return loan_request


# Notices

@router.get("/notices", response_model=List[NoticeResponse])
def list_notices(
    priority: Optional[NoticePriority] = None,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return notice_service.list_notices(db, priority=priority)


@router.post("/notices", response_model=NoticeResponse)
def create_notice(
    body: NoticeCreate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        notice = notice_service.create_notice(db, body.title, body.content, current_user.id, priority=body.priority)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Create notice", f"notice={notice.id} title={notice.title}")
    return notice


@router.patch("/notices/{notice_id}", response_model=NoticeResponse)
def update_notice(
    notice_id: str,
    body: NoticeUpdate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    notice_uuid = parse_uuid(notice_id, "notice ID")
    try:
        notice = notice_service.update_notice(db, notice_uuid, **body.model_dump(exclude_unset=True))
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Update notice", f"notice={notice.id}")
    return notice


@router.delete("/notices/{notice_id}")
def delete_notice(
    notice_id: str,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    notice_uuid = parse_uuid(notice_id, "notice ID")
    try:
        notice_service.delete_notice(db, notice_uuid)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Delete notice", f"notice={notice_id}")
    return {"message": "Notice deleted successfully"}


# Settings

@router.get("/settings")
def get_settings(
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Dict[str, str]]:
    """Get system settings (Admin only)."""
    return {"settings": settings_service.get_settings(db)}


@router.put("/settings")
def update_settings(
    body: SettingsUpdate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update system settings (Admin only)."""
    try:
        values = settings_service.update_settings(db, body.settings, updated_by=current_user.id)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Update settings", ", ".join(f"{k}={v}" for k, v in sorted(body.settings.items())))
    return {"message": "Settings updated successfully", "settings": values}


@router.post("/bulk-update-settings", response_model=BulkUpdateResponse)
def bulk_update(
    body: BulkUpdateRequest,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Set subscription and/or credit limit on every matching draft record (Admin only)."""
    try:
        updated = bulk_update_settings(
            db,
            monthly_subscription=body.monthly_subscription,
            credit_limit=body.available_loan_amount,
            period_key=body.period_key,
            status=body.status
        )
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Bulk update records", f"period={body.period_key or 'all'} updated={updated}")
    return BulkUpdateResponse(message=f"Successfully updated {updated} records", updated_count=updated)


@router.post("/cash-bill-excel")
def cash_bill_excel(
    body: CashBillRequest,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Download the meeting cash bills as an .xlsx workbook (Admin only)."""
    try:
        content, filename, rows = render_cash_bill(db, period_key=body.period_key, member_id=body.member_id)
    except LendingCircleError as e:
        raise http_error(e)
    audit(current_user, "Download cash bill", f"period={body.period_key or 'latest'} bills={len(rows)}")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
