from datetime import datetime
from typing import Literal, Optional

from pydantic import field_validator

from app.schemas.base import CamelModel

SenderType = Literal["human", "ai"]


class CustomerInfo(CamelModel):
    number: str
    name: Optional[str] = None


class ChatMessage(CamelModel):
    id: int
    session_id: str
    sender_type: SenderType
    content: str
    customer_name: Optional[str] = None
    customer_number: str = ""
    created_at: Optional[datetime] = None


class ConversationSummary(CamelModel):
    session_id: str
    customer_name: Optional[str] = None
    customer_number: str = ""
    last_message_content: Optional[str] = None
    last_message_at: Optional[datetime] = None
    message_count: int
    last_customer_message_id: Optional[int] = None


class ConversationListResponse(CamelModel):
    conversations: list[ConversationSummary]


class MessageListResponse(CamelModel):
    messages: list[ChatMessage]


class SavedMessage(CamelModel):
    id: int
    date_time: Optional[datetime] = None


class HumanControlRequest(CamelModel):
    session_id: str
    is_human_in_control: bool

    @field_validator("session_id")
    @classmethod
    def strip_session_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("sessionId required")
        return value


class HumanControlResponse(CamelModel):
    session_id: str
    is_human_in_control: bool


class SendMessageRequest(CamelModel):
    message: Optional[str] = None
    customer_number: Optional[str] = None
    customer_name: Optional[str] = None


class SendMessageResponse(CamelModel):
    success: bool
    id: int
    date_time: Optional[datetime] = None
