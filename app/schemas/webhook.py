from typing import Optional

from pydantic import BaseModel


class IncomingMessage(BaseModel):
    """The first text message found in a provider delivery."""

    wa_id: str
    text: str
    customer_name: Optional[str] = None


class WebhookAck(BaseModel):
    status: str = "ok"
