from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db, init_db
from app.logging_config import get_logger, setup_logging
from app.models import AppSetting, ChatHistory, HumanControl
from app.routers import admin, knowledge, webhook

setup_logging(debug=settings.debug)

logger = get_logger("main")

app = FastAPI(
    title="WhatsApp Helpdesk API",
    description="WhatsApp Business helpdesk: AI replies, human handoff and knowledge base",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(admin.router)
app.include_router(knowledge.router)


@app.on_event("startup")
def create_tables() -> None:
    init_db()
    logger.info("Database tables ready")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "messages": db.query(ChatHistory).count(),
        "human_control": db.query(HumanControl).count(),
        "settings": db.query(AppSetting).count(),
    }
