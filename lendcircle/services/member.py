from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from lendcircle.core.security import get_password_hash
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.models.loan import Loan, LoanRequest
from lendcircle.models.monthly import MonthlyLoanRecord, RecordStatus
from lendcircle.services.errors import NotFoundError, ValidationError
from lendcircle.services.ledger import to_amount
from uuid import UUID
from typing import List, Optional
import logging
import re

logger = logging.getLogger(__name__)


def whatsapp_link(phone: Optional[str]) -> Optional[str]:
    """wa.me link built from the digits of a phone number."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    return f"https://wa.me/{digits}" if digits else None


def next_member_code(db: Session) -> str:
    """Next free voucher-style member code (V-001, V-002, ...)."""
    number = db.query(Profile).filter(Profile.member_code.isnot(None)).count() + 1
    while True:
        code = f"V-{number:03d}"
        if not db.query(Profile).filter(Profile.member_code == code).first():
            return code
        number += 1


def get_member(db: Session, member_id: UUID) -> Profile:
    member = db.query(Profile).filter(Profile.id == member_id).first()
    if not member:
        raise NotFoundError("Member not found")
    return member


def list_members(db: Session, role: Optional[ProfileRole] = None) -> List[Profile]:
    query = db.query(Profile)
    if role:
        query = query.filter(Profile.role == role)
    return query.order_by(Profile.member_code, Profile.full_name).all()


def create_member(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    phone: str = None,
    role: ProfileRole = ProfileRole.MEMBER,
    member_code: str = None,
    monthly_subscription=None
) -> Profile:
    """Create a member profile. Member code is assigned when not given."""
    if db.query(Profile).filter(Profile.email == email).first():
        raise ValidationError("Email already registered")

    if member_code:
        if db.query(Profile).filter(Profile.member_code == member_code).first():
            raise ValidationError(f"Member code {member_code} is already in use")
    else:
        member_code = next_member_code(db)

    member = Profile(
        email=email,
        password_hash=get_password_hash(password),
        full_name=full_name,
        phone=phone,
        whatsapp_link=whatsapp_link(phone),
        role=role,
        member_code=member_code,
        monthly_subscription=to_amount(monthly_subscription, "monthly_subscription"),
    )
    db.add(member)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        logger.error(f"IntegrityError creating member {email}: {error_msg}", exc_info=True)
        raise ValidationError(error_msg)

    db.refresh(member)
    logger.info(f"Created {role.value} {member.member_code} ({email})")
    return member


def update_member(
    db: Session,
    member_id: UUID,
    full_name: str = None,
    phone: str = None,
    role: ProfileRole = None,
    monthly_subscription=None,
    fine=None
) -> Profile:
    """Admin edit of a member profile. Only the given fields change."""
    member = get_member(db, member_id)

    if full_name is not None:
        member.full_name = full_name
    if phone is not None:
        member.phone = phone or None
        member.whatsapp_link = whatsapp_link(phone)
    if role is not None:
        member.role = role
    if monthly_subscription is not None:
        member.monthly_subscription = to_amount(monthly_subscription, "monthly_subscription")
    if fine is not None:
        member.fine = to_amount(fine, "fine")

    db.commit()
    db.refresh(member)
    return member


def set_role(db: Session, member_id: UUID, role: ProfileRole) -> Profile:
    """Promote a member to admin or demote an admin to member."""
    member = get_member(db, member_id)
    old_role = member.role
    member.role = role
    db.commit()
    db.refresh(member)
    logger.info(f"Changed role of {member.email} from {old_role.value} to {role.value}")
    return member


def delete_member(db: Session, member_id: UUID) -> None:
    """Hard delete a member without loans or finalized history.

    Draft monthly records and loan requests of the member are removed with it.
    """
    member = get_member(db, member_id)

    if db.query(Loan).filter(Loan.member_id == member_id).first():
        raise ValidationError("Cannot delete a member who has loans")

    finalized = db.query(MonthlyLoanRecord).filter(
        MonthlyLoanRecord.member_id == member_id,
        MonthlyLoanRecord.status == RecordStatus.FINALIZED
    ).first()
    if finalized:
        raise ValidationError("Cannot delete a member with finalized monthly records")

    db.query(MonthlyLoanRecord).filter(MonthlyLoanRecord.member_id == member_id).delete(synchronize_session=False)
    db.query(LoanRequest).filter(LoanRequest.member_id == member_id).delete(synchronize_session=False)
    db.delete(member)
    db.commit()
    logger.info(f"Deleted member {member_id}")
