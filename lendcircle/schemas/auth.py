from pydantic import BaseModel, EmailStr
from typing import Optional
from decimal import Decimal


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    member_code: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_link: Optional[str] = None
    monthly_subscription: Optional[Decimal] = None
    fine: Optional[Decimal] = None

    @classmethod
    def from_profile(cls, obj):
        """Convert a Profile row to response model."""
        return cls(
            id=str(obj.id),
            email=obj.email,
            full_name=obj.full_name,
            role=obj.role.value,
            member_code=obj.member_code,
            phone=obj.phone,
            whatsapp_link=obj.whatsapp_link,
            monthly_subscription=obj.monthly_subscription,
            fine=obj.fine
        )

    class Config:
        from_attributes = True
