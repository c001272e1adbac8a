from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database import upsert_insert
from app.logging_config import get_logger
from app.models import HumanControl
from app.services.result import DB_ERROR, Result

logger = get_logger("human_control_service")


def is_human_in_control(db: Session, session_id: str) -> bool:
    """True only for a stored ``True`` row. Missing rows and read errors leave the AI in charge."""
    try:
        row = db.query(HumanControl).filter(HumanControl.session_id == session_id).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Human control read failed for {session_id}, defaulting to AI: {e}")
        return False
    return bool(row) and row.is_human_controlled is True


def set_human_control(db: Session, session_id: str, is_human_controlled: bool) -> Result[bool]:
    """Upsert the control flag in one statement. Last writer wins."""
    stmt = upsert_insert(db, HumanControl).values(
        session_id=session_id,
        is_human_controlled=is_human_controlled,
        updated_at=datetime.now(timezone.utc),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["session_id"],
        set_={"is_human_controlled": stmt.excluded.is_human_controlled, "updated_at": stmt.excluded.updated_at},
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Human control write failed for {session_id}: {e}")
        return Result.failure(str(e), DB_ERROR)

    logger.info(
        "Human control updated",
        extra={"context": {"session_id": session_id, "is_human_controlled": is_human_controlled}},
    )
    return Result.success(is_human_controlled)
