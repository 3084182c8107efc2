from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from lendcircle.db.base import get_db
from lendcircle.schemas.auth import UserLogin, Token, UserResponse
from lendcircle.services.auth import authenticate_user, create_access_token_for_user
from lendcircle.core.dependencies import get_current_user
from lendcircle.core.audit import audit
from lendcircle.models.profile import Profile

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token_for_user(user)
    audit(user, "Login", f"email={user.email}")
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
def logout(current_user: Profile = Depends(get_current_user)):
    """Record logout in audit log (token invalidation is handled client-side)."""
    audit(current_user, "Logout", f"email={current_user.email}")
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: Profile = Depends(get_current_user)):
    return UserResponse.from_profile(current_user)
