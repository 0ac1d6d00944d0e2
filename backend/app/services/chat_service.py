from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.chat import Chat, Message, MessageRead, MessageType

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


class ChatNotFound(LookupError):
    pass


class MessageNotFound(LookupError):
    pass


class ChatAccessDenied(PermissionError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _participants(chat: Chat) -> set[str]:
    return {str(p) for p in (chat.participants or [])}


def create_chat(db: Session, participants: list[str], product_id: str | None = None) -> Chat:
    members: list[str] = []
    for p in participants:
        uid = str(p or "").strip()
        if uid and uid not in members:
            members.append(uid)
    if len(members) < 2:
        raise ValueError("A chat needs at least two distinct participants")

    chat = Chat(participants=members, product_id=(product_id or None), is_active=True, updated_at=utcnow())
    db.add(chat)
    db.commit()
    db.refresh(chat)
    logger.info("chat.create chat_id=%s participants=%s product_id=%s", chat.id, len(members), product_id)
    return chat


def get_chat(db: Session, chat_id: int) -> Chat:
    chat = db.get(Chat, chat_id)
    if chat is None:
        raise ChatNotFound(f"Chat not found: {chat_id}")
    return chat


def require_participant(chat: Chat, user_id: str) -> None:
    if str(user_id) not in _participants(chat):
        raise ChatAccessDenied("Not a participant of this chat")


def list_chats(db: Session, user_id: str) -> list[Chat]:
    # participants is a JSON column; membership is filtered in Python to stay portable.
    rows = db.query(Chat).filter(Chat.is_active.is_(True)).order_by(Chat.updated_at.desc(), Chat.id.desc()).all()
    uid = str(user_id)
    return [c for c in rows if uid in _participants(c)]


def post_message(
    db: Session,
    chat_id: int,
    sender_id: str,
    content: str,
    message_type: MessageType | str = MessageType.TEXT,
    attachments: list[str] | None = None,
) -> Message:
    chat = get_chat(db, chat_id)
    require_participant(chat, sender_id)
    if not chat.is_active:
        raise ChatAccessDenied("Chat is not active")

    text = str(content or "").strip()
    if not text:
        raise ValueError("Message content is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")

    message = Message(
        chat_id=chat.id,
        sender_id=str(sender_id),
        content=text,
        message_type=MessageType(message_type),
        attachments=[str(a) for a in (attachments or [])],
        is_active=True,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def update_last_message(db: Session, chat: Chat, message: Message) -> Chat:
    """Point ``chat`` at ``message`` and bump its activity timestamp.

    Posting a message does not do this on its own; callers run it after
    ``post_message`` so the write stays visible at the call site.
    """
    if message.chat_id != chat.id:
        raise ValueError("Message does not belong to this chat")
    chat.last_message_id = message.id
    chat.updated_at = utcnow()
    db.commit()
    db.refresh(chat)
    return chat


def list_messages(db: Session, chat_id: int, user_id: str, limit: int = 50, offset: int = 0) -> list[Message]:
    chat = get_chat(db, chat_id)
    require_participant(chat, user_id)
    limit = max(1, min(int(limit or 50), 200))
    offset = max(0, int(offset or 0))
    return (
        db.query(Message)
        .filter(Message.chat_id == chat.id, Message.is_active.is_(True))
        .order_by(Message.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def mark_as_read(db: Session, message_id: int, user_id: str) -> Message:
    message = db.get(Message, message_id)
    if message is None:
        raise MessageNotFound(f"Message not found: {message_id}")
    require_participant(message.chat, user_id)

    uid = str(user_id)
    if any(r.user_id == uid for r in message.read_by):
        return message

    db.add(MessageRead(message_id=message.id, user_id=uid, read_at=utcnow()))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent request recorded the same receipt
        db.rollback()
    db.refresh(message)
    return message
