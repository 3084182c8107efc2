"""
Create the first admin login.
Usage: python scripts/create_admin.py --email admin@circle.local --password ...
"""
from lendcircle.db.base import SessionLocal
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.services.member import create_member
from lendcircle.services.errors import ValidationError


def create_admin(email: str, password: str, full_name: str = "Circle Admin"):
    """Create an admin profile unless the email is already registered."""
    db = SessionLocal()
    try:
        existing = db.query(Profile).filter(Profile.email == email).first()
        if existing:
            print(f"User with email {email} already exists (role: {existing.role.value})")
            return

        admin = create_member(
            db,
            email=email,
            password=password,
            full_name=full_name,
            role=ProfileRole.ADMIN
        )
        print("Admin user created successfully!")
        print(f"   Email: {admin.email}")
        print(f"   Member code: {admin.member_code}")
        print("\nPlease change the password after first login!")
    except ValidationError as e:
        print(f"Error creating admin user: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", required=True, help="Admin password")
    parser.add_argument("--full-name", default="Circle Admin", help="Display name")

    args = parser.parse_args()

    create_admin(email=args.email, password=args.password, full_name=args.full_name)
