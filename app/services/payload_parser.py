"""Extract the first text message from a WhatsApp Cloud API delivery.

Deliveries reach us in three shapes. Each shape has its own matcher that
either returns the ``{"messages": [...], "contacts": [...]}`` value or None;
matchers run in order and the first hit wins.
"""

from typing import Callable, Optional

from app.schemas.webhook import IncomingMessage

PayloadMatcher = Callable[[object], Optional[dict]]


def match_business_account(body: object) -> Optional[dict]:
    """``{"object": "whatsapp_business_account", "entry": [{"changes": [{"value": {...}}]}]}``"""
    if not isinstance(body, dict) or body.get("object") != "whatsapp_business_account":
        return None
    try:
        value = body["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(value, dict) and value.get("messages"):
        return value
    return None


def match_array(body: object) -> Optional[dict]:
    """``[{"messages": [...], "contacts": [...]}]``"""
    if not isinstance(body, list) or not body:
        return None
    first = body[0]
    if isinstance(first, dict) and first.get("messages"):
        return first
    return None


def match_bare_object(body: object) -> Optional[dict]:
    """``{"messages": [...], "contacts": [...]}``"""
    if isinstance(body, dict) and "messages" in body:
        return body
    return None


PAYLOAD_MATCHERS: tuple[PayloadMatcher, ...] = (match_business_account, match_array, match_bare_object)


def _first_text_message(messages: object) -> Optional[dict]:
    if not isinstance(messages, list):
        return None
    for message in messages:
        if isinstance(message, dict) and message.get("type") == "text":
            return message
    return None


def extract_incoming_message(body: object) -> Optional[IncomingMessage]:
    """First text message plus sender id and profile name, or None when nothing is actionable."""
    payload = None
    for matcher in PAYLOAD_MATCHERS:
        payload = matcher(body)
        if payload is not None:
            break
    if payload is None:
        return None

    message = _first_text_message(payload.get("messages"))
    if message is None:
        return None
    text_obj = message.get("text")
    text = text_obj.get("body") if isinstance(text_obj, dict) else None
    if not isinstance(text, str) or not text:
        return None

    contacts = payload.get("contacts")
    contact = contacts[0] if isinstance(contacts, list) and contacts and isinstance(contacts[0], dict) else {}
    wa_id = contact.get("wa_id") or message.get("from")
    if not wa_id:
        return None

    profile = contact.get("profile")
    name = profile.get("name") if isinstance(profile, dict) else None

    return IncomingMessage(wa_id=str(wa_id), text=text, customer_name=name or None)
