from sqlalchemy import BigInteger, Column, Integer, Text, func
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.types import JSON

from app.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class ChatHistory(Base):
    """One logged WhatsApp message. Rows are append-only."""

    __tablename__ = "chatbot_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    session_id = Column(Text, nullable=False, index=True)
    message = Column(JSONType, nullable=False)  # {"type": "human" | "ai", "content": str, ...}
    customer = Column(JSONType)  # {"number": digits, "name": optional}
    date_time = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), index=True)
