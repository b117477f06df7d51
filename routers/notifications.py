from typing import List

from fastapi import APIRouter, HTTPException
from sqlalchemy import update
from sqlmodel import func, select

from db import SessionDep
from models import Notification
from schemas import NotificationRead
from .auth import ActorDep

router = APIRouter(tags=["notifications"])


@router.get("/", response_model=List[NotificationRead])
def list_notifications(session: SessionDep, actor: ActorDep, limit: int = 50):
    """The caller's notifications, newest first."""
    return session.exec(
        select(Notification)
        .where(Notification.user_id == actor.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(min(max(limit, 1), 200))
    ).all()


@router.get("/unread-count")
def unread_count(session: SessionDep, actor: ActorDep):
    count = session.exec(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == actor.id, Notification.is_read.is_(False))
    ).one()
    return {"unread": count}


@router.post("/read-all")
def mark_all_read(session: SessionDep, actor: ActorDep):
    result = session.exec(
        update(Notification)
        .where(Notification.user_id == actor.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    session.commit()
    return {"updated": result.rowcount}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: int, session: SessionDep, actor: ActorDep):
    notification = session.get(Notification, notification_id)
    if notification is None or notification.user_id != actor.id:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.is_read = True
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification
