from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from lendcircle.db.base import get_db
from lendcircle.models.profile import Profile, ProfileRole
from lendcircle.core.security import decode_access_token
import uuid

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Profile:
    """Get current authenticated profile from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id_str: str = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(user_id_str)
    except (ValueError, TypeError):
        raise credentials_exception

    user = db.query(Profile).filter(Profile.id == user_id).first()
    if user is None:
        raise credentials_exception

    return user


def require_role(role: ProfileRole):
    """Dependency factory for requiring a specific role."""
    async def role_checker(current_user: Profile = Depends(get_current_user)) -> Profile:
        if current_user.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have required role: {role.value}"
            )
        return current_user
    return role_checker


require_admin = require_role(ProfileRole.ADMIN)
require_member = require_role(ProfileRole.MEMBER)
