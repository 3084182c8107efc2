from sqlalchemy.orm import Session
from lendcircle.core.config import settings as app_settings
from lendcircle.models.system import SystemSettings
from lendcircle.services.errors import ValidationError
from decimal import Decimal, InvalidOperation
from uuid import UUID
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

LOAN_CALCULATION_RULES = ("dynamic", "fixed")


def default_settings() -> Dict[str, str]:
    """Values used when a key has never been saved."""
    return {
        "default_monthly_subscription": str(app_settings.DEFAULT_MONTHLY_SUBSCRIPTION),
        "loan_issue_day": "11",
        "loan_calculation_rule": "dynamic",
    }


def get_settings(db: Session) -> Dict[str, str]:
    """Stored settings merged over the defaults."""
    values = default_settings()
    for setting in db.query(SystemSettings).all():
        if setting.setting_value is not None:
            values[setting.setting_key] = setting.setting_value
    return values


def _validate_setting(key: str, value: str) -> None:
    if key == "default_monthly_subscription":
        try:
            amount = Decimal(value)
        except InvalidOperation:
            raise ValidationError("default_monthly_subscription must be a number")
        if not amount.is_finite() or amount < 0:
            raise ValidationError("default_monthly_subscription must be a non-negative number")
    elif key == "loan_issue_day":
        if not value.isdigit() or not 1 <= int(value) <= 28:
            raise ValidationError("loan_issue_day must be a day between 1 and 28")
    elif key == "loan_calculation_rule":
        if value not in LOAN_CALCULATION_RULES:
            raise ValidationError(f"loan_calculation_rule must be one of: {', '.join(LOAN_CALCULATION_RULES)}")


def update_settings(
    db: Session,
    values: Dict[str, str],
    updated_by: Optional[UUID] = None
) -> Dict[str, str]:
    """Upsert settings. All values are validated before anything is written."""
    for key, value in values.items():
        _validate_setting(key, value)

    for key, value in values.items():
        setting = db.query(SystemSettings).filter(
            SystemSettings.setting_key == key
        ).first()

        if setting:
            setting.setting_value = value
            setting.updated_by = updated_by
        else:
            setting = SystemSettings(
                setting_key=key,
                setting_value=value,
                setting_type="general",
                updated_by=updated_by
            )
            db.add(setting)

    db.commit()
    logger.info("Updated system settings: %s", ", ".join(sorted(values)))
    return get_settings(db)


def get_default_subscription(db: Session) -> Decimal:
    """Monthly subscription for members without their own amount."""
    value = get_settings(db)["default_monthly_subscription"]
    try:
        return Decimal(value).quantize(Decimal("0.01"))
    except InvalidOperation:
        logger.warning("Invalid default_monthly_subscription %r, using configured default", value)
        return Decimal(app_settings.DEFAULT_MONTHLY_SUBSCRIPTION).quantize(Decimal("0.01"))
