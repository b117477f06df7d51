from typing import Dict, List

import structlog
from fastapi import APIRouter, HTTPException
from sqlalchemy import or_, update
from sqlmodel import select

import notifications
from db import SessionDep
from models import Message, Profile, Role
from schemas import Conversation, MessageCreate, MessageRead
from .auth import ActorDep

router = APIRouter(tags=["messages"])
logger = structlog.get_logger()


def _ensure_can_message(actor) -> None:
    # NGOs need an activated account to coordinate pickups
    if actor.role == Role.NGO:
        actor.require_active_ngo()


@router.post("/", response_model=MessageRead, status_code=201)
def send_message(message_in: MessageCreate, session: SessionDep, actor: ActorDep):
    _ensure_can_message(actor)
    if message_in.receiver_id == actor.id:
        raise HTTPException(status_code=400, detail="You cannot message yourself")
    if session.get(Profile, message_in.receiver_id) is None:
        raise HTTPException(status_code=404, detail="Recipient not found")
    if not message_in.content.strip():
        raise HTTPException(status_code=400, detail="Message cannot be empty")

    message = Message(
        sender_id=actor.id,
        receiver_id=message_in.receiver_id,
        content=message_in.content,
        is_read=False,
    )
    session.add(message)
    notifications.enqueue_new_message(session, message_in.receiver_id)
    session.commit()
    session.refresh(message)
    logger.info("message.sent", message_id=message.id, sender_id=actor.id, receiver_id=message.receiver_id)
    return message


@router.get("/conversations", response_model=List[Conversation])
def list_conversations(session: SessionDep, actor: ActorDep):
    """
    One row per counterpart: last message, its time, and how many of their
    messages are still unread. Most recent conversation first.
    """
    _ensure_can_message(actor)
    messages = session.exec(
        select(Message)
        .where(or_(Message.sender_id == actor.id, Message.receiver_id == actor.id))
        .order_by(Message.created_at, Message.id)
    ).all()

    latest: Dict[int, Message] = {}
    unread: Dict[int, int] = {}
    for message in messages:
        other = message.receiver_id if message.sender_id == actor.id else message.sender_id
        latest[other] = message
        if message.receiver_id == actor.id and not message.is_read:
            unread[other] = unread.get(other, 0) + 1

    profiles = {
        p.id: p
        for p in session.exec(select(Profile).where(Profile.id.in_(list(latest)))).all()
    } if latest else {}

    conversations = [
        Conversation(
            user_id=other,
            name=profiles[other].display_name if other in profiles else "Unknown",
            last_message=message.content,
            last_message_at=message.created_at,
            unread_count=unread.get(other, 0),
        )
        for other, message in latest.items()
    ]
    conversations.sort(key=lambda c: c.last_message_at, reverse=True)
    return conversations


@router.get("/with/{user_id}", response_model=List[MessageRead])
def conversation_thread(user_id: int, session: SessionDep, actor: ActorDep):
    """The thread with one user, oldest first; their messages are marked read."""
    _ensure_can_message(actor)
    thread = session.exec(
        select(Message)
        .where(
            or_(
                (Message.sender_id == actor.id) & (Message.receiver_id == user_id),
                (Message.sender_id == user_id) & (Message.receiver_id == actor.id),
            )
        )
        .order_by(Message.created_at, Message.id)
    ).all()

    if any(m.receiver_id == actor.id and not m.is_read for m in thread):
        session.exec(
            update(Message)
            .where(
                Message.sender_id == user_id,
                Message.receiver_id == actor.id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        session.commit()
        for message in thread:
            session.refresh(message)
    return thread
