from sqlalchemy import Column, String, ForeignKey, DateTime, Enum as SQLEnum, Text, Uuid, text, func
import uuid
from lendcircle.db.base import Base
import enum


class NoticePriority(str, enum.Enum):
    """Notice priority tier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SystemSettings(Base):
    """Admin-editable business defaults (subscription, loan issue day, ...)."""
    __tablename__ = "system_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    setting_key = Column(String(100), nullable=False, unique=True, index=True)
    setting_value = Column(Text, nullable=True)
    setting_type = Column(String(50), nullable=False, default="general")
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now())
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)


class Notice(Base):
    """Admin-authored announcement."""
    __tablename__ = "notices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    priority = Column(SQLEnum(NoticePriority, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=NoticePriority.MEDIUM, nullable=False)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
