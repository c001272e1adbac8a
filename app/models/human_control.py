from sqlalchemy import Boolean, Column, Text, func
from sqlalchemy.dialects.postgresql import TIMESTAMP

from app.database import Base


class HumanControl(Base):
    __tablename__ = "whatsapp_human_control"

    session_id = Column(Text, primary_key=True)
    is_human_controlled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
