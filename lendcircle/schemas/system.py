from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime
from uuid import UUID
from lendcircle.models.system import NoticePriority


class NoticeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    priority: NoticePriority = NoticePriority.MEDIUM


class NoticeUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    priority: Optional[NoticePriority] = None


class NoticeResponse(BaseModel):
    id: UUID
    title: str
    content: str
    priority: NoticePriority
    created_by: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    """Setting key to new value, e.g. ``{"default_monthly_subscription": "2500"}``."""
    settings: Dict[str, str]
