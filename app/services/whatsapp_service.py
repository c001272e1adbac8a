from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.services.message_service import normalize_digits
from app.services.result import NOT_CONFIGURED, SEND_ERROR, Result

logger = get_logger("whatsapp_service")


class WhatsAppService:
    """Outbound text messages through the WhatsApp Cloud API. One attempt, no retry."""

    BASE_URL = "https://graph.facebook.com/{version}/{phone_number_id}/messages"

    def __init__(self, phone_number_id: str, access_token: str, api_version: str = "v20.0"):
        self.access_token = access_token
        self.url = self.BASE_URL.format(version=api_version, phone_number_id=phone_number_id)

    @classmethod
    def from_settings(cls) -> Optional["WhatsAppService"]:
        if not settings.whatsapp_phone_number_id or not settings.whatsapp_access_token:
            return None
        return cls(settings.whatsapp_phone_number_id, settings.whatsapp_access_token, settings.whatsapp_api_version)

    def send_message(self, phone_number: str, text: str) -> Result[bool]:
        """Send a text message to a phone number (any formatting, digits are extracted)."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": normalize_digits(phone_number),
            "type": "text",
            "text": {"body": text},
        }
        try:
            with httpx.Client(timeout=30.0) as client:
                response = client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self.access_token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.debug(f"WhatsApp API unreachable: {e}")
            return Result.failure(str(e), SEND_ERROR)

        logger.debug(f"WhatsApp API status: {response.status_code}")
        if response.status_code >= 300:
            return Result.failure(f"{response.status_code}: {response.text}", SEND_ERROR)
        return Result.success(True)


def send_whatsapp_message(phone_number: str, text: str) -> Result[bool]:
    """Send with credentials from settings."""
    service = WhatsAppService.from_settings()
    if service is None:
        return Result.failure("Missing WHATSAPP_PHONE_NUMBER_ID or WHATSAPP_ACCESS_TOKEN", NOT_CONFIGURED)
    return service.send_message(phone_number, text)
