"""Global AI reply mode: dev (allowlist only) or live (everyone), plus prompt and model."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import upsert_insert
from app.logging_config import get_logger
from app.models import AppSetting
from app.schemas.settings import AIModeSettings, AIModeSettingsUpdate
from app.services.message_service import normalize_digits
from app.services.result import DB_ERROR, Result

logger = get_logger("ai_mode_service")

SETTINGS_KEY = "whatsapp_ai"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful WhatsApp assistant. Be concise and professional. "
    "If you don't know something or the user asks for a human, say so."
)
DEFAULT_MODEL = "gpt-4o-mini"


def default_settings() -> AIModeSettings:
    seeded = normalize_digits(settings.whatsapp_allowed_ai_number)
    return AIModeSettings(
        dev_mode=True,
        allowed_numbers=[seeded] if seeded else [],
        system_prompt=DEFAULT_SYSTEM_PROMPT,
        model=DEFAULT_MODEL,
    )


def _normalize_numbers(numbers: list) -> list[str]:
    normalized = []
    for number in numbers:
        digits = normalize_digits(str(number))
        if digits and digits not in normalized:
            normalized.append(digits)
    return normalized


def _from_stored(value: Optional[dict]) -> AIModeSettings:
    """Overlay a stored document on the defaults, ignoring malformed fields."""
    defaults = default_settings()
    if not isinstance(value, dict):
        return defaults

    dev_mode = value.get("devMode")
    allowed = value.get("allowedNumbers")
    prompt = value.get("systemPrompt")
    model = value.get("model")

    allowed_numbers = _normalize_numbers(allowed) if isinstance(allowed, list) else []
    return AIModeSettings(
        dev_mode=dev_mode if isinstance(dev_mode, bool) else defaults.dev_mode,
        allowed_numbers=allowed_numbers or defaults.allowed_numbers,
        system_prompt=prompt.strip() if isinstance(prompt, str) and prompt.strip() else defaults.system_prompt,
        model=model.strip() if isinstance(model, str) and model.strip() else defaults.model,
    )


def get_ai_mode_settings(db: Session) -> AIModeSettings:
    """Current settings; defaults when the row is missing or unreadable."""
    try:
        row = db.query(AppSetting).filter(AppSetting.key == SETTINGS_KEY).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"AI mode settings read failed, using defaults: {e}")
        return default_settings()

    return _from_stored(row.value if row else None)


def merge_settings(current: AIModeSettings, update: AIModeSettingsUpdate) -> AIModeSettings:
    """Apply the fields present in ``update``; omitted fields keep their current value."""
    provided = update.model_fields_set
    merged = current.model_copy()

    if "dev_mode" in provided and update.dev_mode is not None:
        merged.dev_mode = update.dev_mode
    if "allowed_numbers" in provided:
        merged.allowed_numbers = _normalize_numbers(update.allowed_numbers or [])
    if "system_prompt" in provided:
        merged.system_prompt = (update.system_prompt or "").strip() or current.system_prompt
    if "model" in provided:
        merged.model = (update.model or "").strip() or DEFAULT_MODEL
    return merged


def set_ai_mode_settings(db: Session, update: AIModeSettingsUpdate) -> Result[AIModeSettings]:
    """Merge ``update`` onto the stored settings and upsert the row."""
    current = get_ai_mode_settings(db)
    merged = merge_settings(current, update)

    stmt = upsert_insert(db, AppSetting).values(
        key=SETTINGS_KEY,
        value=merged.model_dump(by_alias=True),
        updated_at=datetime.now(timezone.utc),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["key"],
        set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"AI mode settings write failed: {e}")
        return Result.failure(str(e), DB_ERROR)

    logger.info(
        "AI mode settings updated",
        extra={"context": {"dev_mode": merged.dev_mode, "allowed_numbers": len(merged.allowed_numbers)}},
    )
    return Result.success(merged)


def is_number_allowed(ai_settings: AIModeSettings, phone: str) -> bool:
    if not ai_settings.dev_mode:
        return True
    digits = normalize_digits(phone)
    return bool(digits) and digits in ai_settings.allowed_numbers


def is_number_allowed_for_ai(db: Session, phone: str) -> bool:
    """Live mode lets everyone through; dev mode only the allowlist."""
    return is_number_allowed(get_ai_mode_settings(db), phone)
