from fastapi import APIRouter, Depends, HTTPException, Response

from app.logging_config import get_logger
from app.routers.admin import require_admin
from app.schemas.knowledge import (
    DocumentsIngestRequest,
    DocumentsIngestResponse,
    IngestRequest,
    IngestResponse,
    KnowledgeSourceList,
)
from app.services.ingest_service import ingest_documents, ingest_knowledge
from app.services.knowledge_service import delete_by_source, list_sources
from app.services.result import VALIDATION_ERROR

logger = get_logger("knowledge")

router = APIRouter(prefix="/admin/knowledge", tags=["knowledge"], dependencies=[Depends(require_admin)])


@router.get("", response_model=KnowledgeSourceList)
def get_sources():
    result = list_sources()
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return KnowledgeSourceList(sources=result.value)


@router.post("", response_model=IngestResponse)
def ingest_text(data: IngestRequest):
    """Replace everything stored under ``source`` with chunks of ``content``."""
    source = data.source.strip()
    if not source:
        raise HTTPException(status_code=400, detail="source is required")

    result = ingest_knowledge(source, data.content)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return IngestResponse(success=True, chunks_inserted=result.value)


@router.post("/documents", response_model=DocumentsIngestResponse)
def ingest_document_batch(data: DocumentsIngestRequest, response: Response):
    if not data.documents:
        raise HTTPException(status_code=400, detail="No documents provided")

    result = ingest_documents(data.documents, source=data.source)
    if not result.ok:
        status_code = 400 if result.error_code == VALIDATION_ERROR else 500
        raise HTTPException(status_code=status_code, detail=result.error)

    success = all(item.error is None for item in result.value)
    if not success:
        response.status_code = 500
        logger.warning(
            "Document ingest finished with errors",
            extra={"context": {"failed": [item.source for item in result.value if item.error]}},
        )
    return DocumentsIngestResponse(success=success, results=result.value)


@router.delete("/{source}")
def delete_source(source: str):
    result = delete_by_source(source)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return {"success": True}
