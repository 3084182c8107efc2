from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from lendcircle.db.base import get_db
from lendcircle.core.dependencies import get_current_user, require_admin
from lendcircle.core.audit import audit
from lendcircle.models.profile import Profile
from lendcircle.schemas.monthly import RecordResponse, RecordUpdate
from lendcircle.services import monthly as monthly_service
from lendcircle.services.errors import LendingCircleError
from lendcircle.api.errors import http_error, parse_uuid
from lendcircle.api.months import record_response

router = APIRouter(prefix="/api/records", tags=["records"])


@router.get("/{record_id}", response_model=RecordResponse)
def get_record(
    record_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    record_uuid = parse_uuid(record_id, "record ID")
    try:
        record = monthly_service.get_record(db, record_uuid)
    except LendingCircleError as e:
        raise http_error(e)

    if not current_user.is_admin and record.member_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this record")
    return record_response(record, record.member)


@router.patch("/{record_id}", response_model=RecordResponse)
def update_record(
    record_id: str,
    body: RecordUpdate,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Edit a draft record's ledger events (Admin only)."""
    record_uuid = parse_uuid(record_id, "record ID")
    changes = body.model_dump(exclude_unset=True, exclude={"expected_version"})
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        raise HTTPException(status_code=400, detail="No changes given")

    try:
        record = monthly_service.update_record(
            db,
            record_uuid,
            changes,
            expected_version=body.expected_version,
            updated_by=current_user.id
        )
    except (LendingCircleError, IntegrityError) as e:
        db.rollback()
        raise http_error(e)

    audit(current_user, "Edit monthly record", f"record={record.id} period={record.period_key} fields={','.join(sorted(changes))}")
    return record_response(record, record.member)


@router.post("/{record_id}/finalize", response_model=RecordResponse)
def finalize_record(
    record_id: str,
    current_user: Profile = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Lock a draft record for good (Admin only)."""
    record_uuid = parse_uuid(record_id, "record ID")
    try:
        record = monthly_service.finalize_record(db, record_uuid, admin_id=current_user.id)
    except LendingCircleError as e:
        raise http_error(e)

    audit(current_user, "Finalize monthly record", f"record={record.id} period={record.period_key} closing={record.closing_outstanding}")
    return record_response(record, record.member)
