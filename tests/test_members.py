from datetime import date
from decimal import Decimal

import pytest

from lendcircle.core.security import verify_password
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.models.system import NoticePriority
from lendcircle.services import member as member_service
from lendcircle.services import monthly
from lendcircle.services import notice as notice_service
from lendcircle.services import settings as settings_service
from lendcircle.services.loan import create_loan
from lendcircle.services.errors import NotFoundError, ValidationError


def test_create_member_assigns_code_and_hashes_password(db, member):
    created = member_service.create_member(db, "meena@circle.org", "secret-pass", "Meena Shah", phone="98765-00000")

    assert created.member_code == "V-002"
    assert created.role == ProfileRole.MEMBER
    assert created.password_hash != "secret-pass"
    assert verify_password("secret-pass", created.password_hash)
    assert created.whatsapp_link == "https://wa.me/9876500000"


def test_duplicate_email_is_rejected(db, member):
    with pytest.raises(ValidationError):
        member_service.create_member(db, "asha@circle.org", "x-pass", "Someone Else")


def test_duplicate_member_code_is_rejected(db, member):
    with pytest.raises(ValidationError):
        member_service.create_member(db, "new@circle.org", "x-pass", "New Member", member_code="V-001")


def test_update_member_changes_given_fields(db, member):
    updated = member_service.update_member(db, member.id, phone="+91 11111 22222", fine="250")

    assert updated.full_name == "Asha Patel"
    assert updated.phone == "+91 11111 22222"
    assert updated.whatsapp_link == "https://wa.me/911111122222"
    assert updated.fine == Decimal("250")


def test_set_role_promotes_member(db, member):
    assert member_service.set_role(db, member.id, ProfileRole.ADMIN).is_admin


def test_delete_member_with_only_drafts(db, member):
    monthly.initialize_month(db, "2025-01")

    member_service.delete_member(db, member.id)

    assert db.query(Profile).filter(Profile.email == "asha@circle.org").first() is None


def test_delete_member_with_loans_is_refused(db, member):
    create_loan(db, member.id, "10000", disbursed_on=date(2025, 1, 5))

    with pytest.raises(ValidationError):
        member_service.delete_member(db, member.id)


def test_unknown_member_is_not_found(db):
    import uuid
    with pytest.raises(NotFoundError):
        member_service.get_member(db, uuid.uuid4())


def test_settings_fall_back_to_defaults(db):
    values = settings_service.get_settings(db)

    assert values["default_monthly_subscription"] == "2100"
    assert values["loan_issue_day"] == "11"
    assert values["loan_calculation_rule"] == "dynamic"


def test_settings_upsert(db, admin):
    values = settings_service.update_settings(db, {"loan_issue_day": "15"}, updated_by=admin.id)
    values = settings_service.update_settings(db, {"loan_issue_day": "20"}, updated_by=admin.id)

    assert values["loan_issue_day"] == "20"
    assert settings_service.get_default_subscription(db) == Decimal("2100.00")


@pytest.mark.parametrize("values", [
    {"loan_issue_day": "31"},
    {"loan_calculation_rule": "compound"},
    {"default_monthly_subscription": "-5"},
    {"default_monthly_subscription": "lots"},
])
def test_invalid_settings_are_rejected(db, values):
    with pytest.raises(ValidationError):
        settings_service.update_settings(db, values)
    assert settings_service.get_settings(db) == settings_service.default_settings()


def test_notice_lifecycle(db, admin):
    notice = notice_service.create_notice(db, " Meeting moved ", "Now on the 12th", admin.id, priority=NoticePriority.HIGH)
    assert notice.title == "Meeting moved"

    notice_service.create_notice(db, "Reminder", "Bring passbooks", admin.id)
    assert len(notice_service.list_notices(db)) == 2
    assert [n.title for n in notice_service.list_notices(db, priority=NoticePriority.HIGH)] == ["Meeting moved"]

    updated = notice_service.update_notice(db, notice.id, priority=NoticePriority.LOW)
    assert updated.priority == NoticePriority.LOW

    notice_service.delete_notice(db, notice.id)
    with pytest.raises(NotFoundError):
        notice_service.get_notice(db, notice.id)


def test_notice_needs_title(db, admin):
    with pytest.raises(ValidationError):
        notice_service.create_notice(db, "   ", "content", admin.id)
