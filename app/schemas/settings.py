from typing import Optional

from pydantic import field_validator

from app.schemas.base import CamelModel


class AIModeSettings(CamelModel):
    dev_mode: bool
    allowed_numbers: list[str]
    system_prompt: str
    model: str


class AIModeSettingsUpdate(CamelModel):
    """Partial update; fields left unset keep their current value."""

    dev_mode: Optional[bool] = None
    allowed_numbers: Optional[list[str]] = None
    system_prompt: Optional[str] = None
    model: Optional[str] = None

    @field_validator("allowed_numbers", mode="before")
    @classmethod
    def split_allowed_numbers(cls, value: object) -> Optional[list[str]]:
        if value is None:
            return None
        if isinstance(value, str):
            return [item.strip() for item in value.split(",")]
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value]
        raise ValueError("allowedNumbers must be a list or comma-separated string")
