from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

NOT_CONFIGURED = "not_configured"
STORAGE_UNAVAILABLE = "storage_unavailable"
DB_ERROR = "db_error"
EMBEDDING_ERROR = "embedding_error"
KNOWLEDGE_ERROR = "knowledge_error"
AI_ERROR = "ai_error"
SEND_ERROR = "send_error"
VALIDATION_ERROR = "validation_error"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown", value: Optional[T] = None) -> "Result[T]":
        """Failed result. ``value`` lets read paths hand back an empty collection next to the error."""
        return Result(ok=False, value=value, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
