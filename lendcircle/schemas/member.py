from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from decimal import Decimal
from lendcircle.models.profile import ProfileRole


class MemberCreate(BaseModel):
    """Schema for an admin creating a member."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    role: ProfileRole = ProfileRole.MEMBER
    member_code: Optional[str] = Field(None, description="Voucher code such as V-012; assigned when omitted")
    monthly_subscription: Optional[Decimal] = None


class MemberUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[ProfileRole] = None
    monthly_subscription: Optional[Decimal] = None
    fine: Optional[Decimal] = None


class RoleChange(BaseModel):
    role: ProfileRole
