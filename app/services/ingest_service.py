"""Ingestion pipeline: text -> chunks -> embeddings -> Knowledge Store."""

import re
from typing import List, Optional

import httpx

from app.logging_config import get_logger
from app.schemas.knowledge import DocumentIn, DocumentIngestResult
from app.services import knowledge_service
from app.services.llm import OpenAIError, get_llm_provider
from app.services.result import EMBEDDING_ERROR, NOT_CONFIGURED, VALIDATION_ERROR, Result

logger = get_logger("ingest_service")

MAX_CHUNK_CHARS = 1500
CHUNK_OVERLAP = 200
EMBEDDING_BATCH_SIZE = 50
DOCUMENT_SEPARATOR = "\n\n---\n\n"

_SENTENCE_ENDINGS = (". ", ".\n", "? ", "! ")
_FILENAME_EXTENSION = re.compile(r"\.(md|pdf|docx?|txt)$", re.IGNORECASE)


def _break_point(window: str, min_break: int) -> int:
    """Offset of the last paragraph break, else last sentence end, past ``min_break``; -1 if none."""
    paragraph = window.rfind("\n\n")
    if paragraph > min_break:
        return paragraph
    sentence = max(window.rfind(ending) for ending in _SENTENCE_ENDINGS)
    if sentence > min_break:
        return sentence
    return -1


def chunk_text(text: str, max_chars: int = MAX_CHUNK_CHARS, overlap: int = CHUNK_OVERLAP) -> List[str]:
    """Split text into chunks of at most ``max_chars``, preferring natural breaks.

    Consecutive chunks share ``overlap`` characters. Stops as soon as the
    cursor would not move forward.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return []

    length = len(trimmed)
    chunks: List[str] = []
    start = 0

    while start < length:
        end = min(start + max_chars, length)
        if end < length:
            break_at = _break_point(trimmed[start:end], max_chars // 2)
            if break_at >= 0:
                end = start + break_at + 1

        chunk = trimmed[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= length:
            break
        next_start = end - overlap
        if next_start <= start:
            break
        start = next_start

    return chunks


def generate_embeddings(texts: List[str]) -> Result[List[List[float]]]:
    """One vector per text, in input order, requested in batches of 50."""
    provider = get_llm_provider()
    if provider is None:
        return Result.failure("OPENAI_API_KEY not set", NOT_CONFIGURED)

    vectors: List[List[float]] = []
    try:
        for start in range(0, len(texts), EMBEDDING_BATCH_SIZE):
            vectors.extend(provider.embed(texts[start : start + EMBEDDING_BATCH_SIZE]))
    except (OpenAIError, httpx.HTTPError) as e:
        return Result.failure(str(e), EMBEDDING_ERROR)

    return Result.success(vectors)


def ingest_knowledge(source: str, content: str) -> Result[int]:
    """Replace the chunks stored under ``source`` with chunks of ``content``.

    Embeddings are computed before anything is deleted, so a failed embedding
    call leaves the previous chunks in place. A failed delete aborts before
    inserting.
    """
    chunks = chunk_text(content)
    if not chunks:
        return Result.success(0)

    embeddings = generate_embeddings(chunks)
    if not embeddings.ok:
        logger.error(f"Embeddings failed for source '{source}': {embeddings.error}")
        return Result.failure(f"Embeddings failed: {embeddings.error}", embeddings.error_code, value=0)

    collection = knowledge_service.ensure_collection()
    if not collection.ok:
        return Result.failure(collection.error, collection.error_code, value=0)

    deleted = knowledge_service.delete_by_source(source)
    if not deleted.ok:
        return Result.failure(deleted.error, deleted.error_code, value=0)

    inserted = knowledge_service.insert_chunks(source, chunks, embeddings.value)
    if not inserted.ok:
        return Result.failure(inserted.error, inserted.error_code, value=0)

    logger.info(
        "Knowledge ingested",
        extra={"context": {"source": source, "chunks": inserted.value, "chars": len(content)}},
    )
    return Result.success(inserted.value)


def source_from_filename(name: str) -> str:
    """``Pricing 2024.pdf`` -> ``Pricing 2024``."""
    return _FILENAME_EXTENSION.sub("", name).strip() or name


def ingest_documents(documents: List[DocumentIn], source: Optional[str] = None) -> Result[List[DocumentIngestResult]]:
    """Ingest pre-extracted documents, one source per file or all merged under ``source``."""
    single_source = (source or "").strip()

    if single_source:
        texts = [doc.text.strip() for doc in documents if doc.filename and doc.text.strip()]
        combined = DOCUMENT_SEPARATOR.join(texts)
        if not combined.strip():
            return Result.failure("No text could be extracted from any file", VALIDATION_ERROR, value=[])
        result = ingest_knowledge(single_source, combined)
        return Result.success(
            [DocumentIngestResult(source=single_source, chunks_inserted=result.value or 0, error=result.error)]
        )

    results: List[DocumentIngestResult] = []
    for doc in documents:
        if not doc.filename:
            continue
        doc_source = source_from_filename(doc.filename)
        text = doc.text.strip()
        if not text:
            results.append(DocumentIngestResult(source=doc_source, error="No text could be extracted"))
            continue
        result = ingest_knowledge(doc_source, text)
        results.append(DocumentIngestResult(source=doc_source, chunks_inserted=result.value or 0, error=result.error))

    return Result.success(results)
