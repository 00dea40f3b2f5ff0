from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from .. import schemas
from ..auth import require_staff
from ..config import ANNOUNCEMENT_TTL_HOURS
from ..database import get_db
from ..models import Announcement, User
from ..utils import local_now

router = APIRouter()


@router.get("/announcements/", response_model=List[schemas.AnnouncementResponse])
def list_announcements(db: Session = Depends(get_db)):
    """
    List announcements that are still within their lifetime, newest first.

    Announcements past their lifetime are hidden even before housekeeping deletes them.
    """
    cutoff = local_now() - timedelta(hours=ANNOUNCEMENT_TTL_HOURS)
    return (
        db.query(Announcement)
        .filter(Announcement.created_at >= cutoff)
        .order_by(Announcement.created_at.desc())
        .all()
    )


@router.post("/announcements/", response_model=schemas.AnnouncementResponse, status_code=status.HTTP_201_CREATED)
def create_announcement(
    payload: schemas.AnnouncementCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    if not payload.title.strip() or not payload.content.strip():
        raise HTTPException(status_code=400, detail="Title and content are required")
    announcement = Announcement(
        title=payload.title.strip(),
        content=payload.content.strip(),
        image_url=payload.image_url,
        created_at=local_now(),
    )
    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    return announcement


@router.delete("/announcements/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise HTTPException(status_code=404, detail="Announcement not found")
    db.delete(announcement)
    db.commit()
    return None
