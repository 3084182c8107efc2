"""
Seed initial data: default system settings.
Usage: python scripts/seed_data.py
"""
from lendcircle.db.base import SessionLocal
from lendcircle.models.system import SystemSettings
from lendcircle.services.settings import default_settings

DESCRIPTIONS = {
    "default_monthly_subscription": "Subscription for members without their own amount",
    "loan_issue_day": "Day of the month loans are issued",
    "loan_calculation_rule": "dynamic: interest on the running balance; fixed: interest on the original amount",
}


def seed_settings(db):
    """Store the default settings that are not saved yet."""
    print("Seeding system settings...")
    for key, value in default_settings().items():
        existing = db.query(SystemSettings).filter(SystemSettings.setting_key == key).first()
        if not existing:
            db.add(SystemSettings(
                setting_key=key,
                setting_value=value,
                setting_type="general",
                description=DESCRIPTIONS.get(key)
            ))
    db.commit()
    print("System settings seeded")


def main():
    db = SessionLocal()
    try:
        seed_settings(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
