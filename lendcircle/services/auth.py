from sqlalchemy.orm import Session
from lendcircle.core.config import settings
from lendcircle.core.security import verify_password, create_access_token
from lendcircle.models.profile import Profile
from datetime import timedelta
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def authenticate_user(db: Session, email: str, password: str) -> Optional[Profile]:
    """
    Authenticate a profile by email and password.

    Returns:
        Profile if the credentials match, None otherwise
    """
    user = db.query(Profile).filter(Profile.email == email).first()
    if not user:
        logger.debug(f"User not found: {email}")
        return None

    if not verify_password(password, user.password_hash):
        logger.debug(f"Password mismatch for {email}")
        return None

    return user


def create_access_token_for_user(user: Profile) -> str:
    """Create access token for a profile."""
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=access_token_expires
    )
