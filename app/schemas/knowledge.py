from datetime import datetime
from typing import Optional

from app.schemas.base import CamelModel


class KnowledgeMatch(CamelModel):
    source: str
    content: str
    similarity: float


class KnowledgeSource(CamelModel):
    source: str
    chunk_count: int
    created_at: Optional[datetime] = None


class KnowledgeSourceList(CamelModel):
    sources: list[KnowledgeSource]


class IngestRequest(CamelModel):
    source: str = ""
    content: str = ""


class IngestResponse(CamelModel):
    success: bool
    chunks_inserted: int


class DocumentIn(CamelModel):
    """A document whose text was already extracted upstream (PDF, Word, Markdown)."""

    filename: str
    text: str = ""


class DocumentsIngestRequest(CamelModel):
    documents: list[DocumentIn]
    source: Optional[str] = None


class DocumentIngestResult(CamelModel):
    source: str
    chunks_inserted: int = 0
    error: Optional[str] = None


class DocumentsIngestResponse(CamelModel):
    success: bool
    results: list[DocumentIngestResult]
