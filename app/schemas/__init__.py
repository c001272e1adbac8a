from app.schemas.conversation import ChatMessage, ConversationSummary, CustomerInfo
from app.schemas.knowledge import KnowledgeMatch, KnowledgeSource
from app.schemas.settings import AIModeSettings, AIModeSettingsUpdate
from app.schemas.webhook import IncomingMessage, WebhookAck

__all__ = [
    "ChatMessage",
    "ConversationSummary",
    "CustomerInfo",
    "KnowledgeMatch",
    "KnowledgeSource",
    "AIModeSettings",
    "AIModeSettingsUpdate",
    "IncomingMessage",
    "WebhookAck",
]
