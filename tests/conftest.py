import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import settings  # noqa: E402
from app.database import get_db, init_db  # noqa: E402
from app.main import app  # noqa: E402

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep tests independent of whatever credentials the host environment carries."""
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "whatsapp_phone_number_id", None)
    monkeypatch.setattr(settings, "whatsapp_access_token", None)
    monkeypatch.setattr(settings, "alert_bot_token", None)
    monkeypatch.setattr(settings, "alert_chat_id", None)
    monkeypatch.setattr(settings, "whatsapp_session_id_prefix", "APP-")
    monkeypatch.setattr(settings, "whatsapp_allowed_ai_number", "27690001111")
    monkeypatch.setattr(settings, "admin_token", ADMIN_TOKEN)
    monkeypatch.setattr(settings, "whatsapp_webhook_verify_token", "verify-me")


@pytest.fixture
def sqlite_session():
    """Real session on an in-memory SQLite database with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(sqlite_session):
    app.dependency_overrides[get_db] = lambda: sqlite_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}
