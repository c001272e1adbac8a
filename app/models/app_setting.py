from sqlalchemy import Column, Text, func
from sqlalchemy.dialects.postgresql import TIMESTAMP

from app.database import Base
from app.models.chat_history import JSONType


class AppSetting(Base):
    """Global key/value settings; one row per key."""

    __tablename__ = "app_settings"

    key = Column(Text, primary_key=True)
    value = Column(JSONType)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
