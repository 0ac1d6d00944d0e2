from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.schemas.chat import ChatCreate, ChatResponse, MessageCreate, MessageResponse
from app.services import chat_service
from app.services.chat_service import ChatAccessDenied, ChatNotFound, MessageNotFound


router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("/chats", response_model=ChatResponse, status_code=201)
def create_chat(
    body: ChatCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    participants = [current_user.id, *body.participants]
    try:
        return chat_service.create_chat(db, participants, product_id=body.product_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/chats", response_model=list[ChatResponse])
def list_chats(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    return chat_service.list_chats(db, current_user.id)


@router.get("/chats/{chat_id}/messages", response_model=list[MessageResponse])
def list_messages(
    chat_id: int,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return chat_service.list_messages(db, chat_id, current_user.id, limit=limit, offset=offset)
    except ChatNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    except ChatAccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/chats/{chat_id}/messages", response_model=MessageResponse, status_code=201)
def post_message(
    chat_id: int,
    body: MessageCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        message = chat_service.post_message(
            db,
            chat_id,
            current_user.id,
            body.content,
            message_type=body.message_type,
            attachments=body.attachments,
        )
    except ChatNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    except ChatAccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    chat_service.update_last_message(db, message.chat, message)
    return message


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
def mark_message_read(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return chat_service.mark_as_read(db, message_id, current_user.id)
    except MessageNotFound:
        raise HTTPException(status_code=404, detail="Message not found")
    except ChatAccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
