from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.models.chat import MessageType


class ChatCreate(BaseModel):
    participants: List[str] = Field(..., min_length=1)
    product_id: Optional[str] = None


class ChatResponse(BaseModel):
    id: int
    participants: List[str]
    product_id: Optional[str] = None
    last_message_id: Optional[int] = None
    is_active: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    message_type: MessageType = MessageType.TEXT
    attachments: List[str] = []


class MessageReadOut(BaseModel):
    user_id: str
    read_at: datetime

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: int
    chat_id: int
    sender_id: str
    content: str
    message_type: MessageType
    attachments: List[str] = []
    read_by: List[MessageReadOut] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
