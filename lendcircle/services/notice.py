from sqlalchemy.orm import Session
from lendcircle.models.system import Notice, NoticePriority
from lendcircle.services.errors import NotFoundError, ValidationError
from uuid import UUID
from typing import List, Optional


def get_notice(db: Session, notice_id: UUID) -> Notice:
    notice = db.query(Notice).filter(Notice.id == notice_id).first()
    if not notice:
        raise NotFoundError("Notice not found")
    return notice


def list_notices(db: Session, priority: Optional[NoticePriority] = None, limit: int = 50) -> List[Notice]:
    """Newest first."""
    query = db.query(Notice)
    if priority:
        query = query.filter(Notice.priority == priority)
    return query.order_by(Notice.created_at.desc()).limit(limit).all()


def create_notice(
    db: Session,
    title: str,
    content: str,
    created_by: UUID,
    priority: NoticePriority = NoticePriority.MEDIUM
) -> Notice:
    if not title or not title.strip():
        raise ValidationError("Notice title is required")
    if not content or not content.strip():
        raise ValidationError("Notice content is required")

    notice = Notice(
        title=title.strip(),
        content=content.strip(),
        priority=priority,
        created_by=created_by,
    )
    db.add(notice)
    db.commit()
    db.refresh(notice)
    return notice


def update_notice(
    db: Session,
    notice_id: UUID,
    title: str = None,
    content: str = None,
    priority: NoticePriority = None
) -> Notice:
    notice = get_notice(db, notice_id)
    if title is not None:
        if not title.strip():
            raise ValidationError("Notice title is required")
        notice.title = title.strip()
    if content is not None:
        if not content.strip():
            raise ValidationError("Notice content is required")
        notice.content = content.strip()
    if priority is not None:
        notice.priority = priority
    db.commit()
    db.refresh(notice)
    return notice


def delete_notice(db: Session, notice_id: UUID) -> None:
    notice = get_notice(db, notice_id)
    db.delete(notice)
    db.commit()
