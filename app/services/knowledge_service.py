"""Knowledge Store on Qdrant and similarity search over it.

Each chunk is one Qdrant point: the embedding as vector and
``{"source", "content", "created_at"}`` as payload. A source label groups the
chunks of one logical document and is the unit of replace/delete.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.schemas.knowledge import KnowledgeMatch, KnowledgeSource
from app.services.alert_service import alert_warning
from app.services.llm import OpenAIError, get_llm_provider
from app.services.result import EMBEDDING_ERROR, KNOWLEDGE_ERROR, NOT_CONFIGURED, Result

logger = get_logger("knowledge_service")

UPSERT_BATCH_SIZE = 256
SCROLL_PAGE_SIZE = 256
DEFAULT_TOP_K = 5

CONTEXT_INSTRUCTION = (
    "Use the following knowledge base context to answer when it is relevant. "
    "If the answer is not in the context, say you are not sure instead of guessing."
)


def _collection_url(suffix: str = "") -> str:
    return f"{settings.qdrant_host.rstrip('/')}/collections/{settings.qdrant_collection}{suffix}"


def _headers() -> dict:
    return {"api-key": settings.qdrant_api_key} if settings.qdrant_api_key else {}


def _source_filter(source: str) -> dict:
    return {"must": [{"key": "source", "match": {"value": source}}]}


def ensure_collection() -> Result[bool]:
    """Create the collection (cosine, keyword index on ``source``) when it does not exist yet."""
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.get(_collection_url(), headers=_headers())
            if response.status_code == 200:
                return Result.success(False)

            response = client.put(
                _collection_url(),
                headers=_headers(),
                json={"vectors": {"size": settings.embedding_dimensions, "distance": "Cosine"}},
            )
            if response.status_code != 200:
                return Result.failure(f"Qdrant create collection error: {response.status_code} - {response.text}", KNOWLEDGE_ERROR)

            response = client.put(
                _collection_url("/index"),
                headers=_headers(),
                json={"field_name": "source", "field_schema": "keyword"},
            )
            if response.status_code != 200:
                logger.warning(f"Qdrant source index not created: {response.status_code} - {response.text}")
    except httpx.HTTPError as e:
        return Result.failure(f"Qdrant unreachable: {e}", KNOWLEDGE_ERROR)

    logger.info(f"Created Qdrant collection {settings.qdrant_collection}")
    return Result.success(True)


def delete_by_source(source: str) -> Result[bool]:
    """Delete every chunk under ``source``. Unknown sources (or no collection yet) are a no-op."""
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.post(
                _collection_url("/points/delete?wait=true"),
                headers=_headers(),
                json={"filter": _source_filter(source)},
            )
    except httpx.HTTPError as e:
        return Result.failure(f"Qdrant unreachable: {e}", KNOWLEDGE_ERROR)

    if response.status_code == 404:
        return Result.success(True)
    if response.status_code != 200:
        logger.error(f"Qdrant delete error: {response.status_code} - {response.text}")
        return Result.failure(f"Qdrant delete error: {response.status_code} - {response.text}", KNOWLEDGE_ERROR)

    logger.info(f"Deleted knowledge source '{source}'")
    return Result.success(True)


def insert_chunks(source: str, chunks: List[str], embeddings: List[List[float]]) -> Result[int]:
    """Insert chunks with their vectors; ``embeddings[i]`` belongs to ``chunks[i]``."""
    created_at = datetime.now(timezone.utc).isoformat()
    points = [
        {
            "id": str(uuid4()),
            "vector": vector,
            "payload": {"source": source, "content": content, "created_at": created_at},
        }
        for content, vector in zip(chunks, embeddings)
    ]

    try:
        with httpx.Client(timeout=60.0) as client:
            for start in range(0, len(points), UPSERT_BATCH_SIZE):
                response = client.put(
                    _collection_url("/points?wait=true"),
                    headers=_headers(),
                    json={"points": points[start : start + UPSERT_BATCH_SIZE]},
                )
                if response.status_code != 200:
                    return Result.failure(
                        f"Qdrant insert error: {response.status_code} - {response.text}", KNOWLEDGE_ERROR
                    )
    except httpx.HTTPError as e:
        return Result.failure(f"Qdrant unreachable: {e}", KNOWLEDGE_ERROR)

    return Result.success(len(points))


def list_sources() -> Result[List[KnowledgeSource]]:
    """Chunk count and newest ``created_at`` per source label."""
    by_source: dict[str, dict] = {}
    offset = None

    try:
        with httpx.Client(timeout=30.0) as client:
            while True:
                body = {"limit": SCROLL_PAGE_SIZE, "with_payload": ["source", "created_at"], "with_vector": False}
                if offset is not None:
                    body["offset"] = offset
                response = client.post(_collection_url("/points/scroll"), headers=_headers(), json=body)
                if response.status_code == 404:
                    return Result.success([])
                if response.status_code != 200:
                    return Result.failure(
                        f"Qdrant scroll error: {response.status_code} - {response.text}", KNOWLEDGE_ERROR, value=[]
                    )

                result = response.json().get("result") or {}
                for point in result.get("points") or []:
                    payload = point.get("payload") or {}
                    source = payload.get("source") or ""
                    created_at = payload.get("created_at") or ""
                    entry = by_source.setdefault(source, {"chunk_count": 0, "created_at": ""})
                    entry["chunk_count"] += 1
                    if created_at > entry["created_at"]:
                        entry["created_at"] = created_at

                offset = result.get("next_page_offset")
                if offset is None:
                    break
    except httpx.HTTPError as e:
        return Result.failure(f"Qdrant unreachable: {e}", KNOWLEDGE_ERROR, value=[])
    except ValueError as e:
        return Result.failure(f"Qdrant scroll returned a malformed body: {e}", KNOWLEDGE_ERROR, value=[])

    return Result.success(
        [
            KnowledgeSource(source=source, chunk_count=entry["chunk_count"], created_at=entry["created_at"] or None)
            for source, entry in by_source.items()
        ]
    )


def get_query_embedding(query: str) -> Result[List[float]]:
    """Embed a query with the ingestion embedding model."""
    provider = get_llm_provider()
    if provider is None:
        return Result.failure("OPENAI_API_KEY not set", NOT_CONFIGURED)
    try:
        vector = provider.embed_one(query)
    except (OpenAIError, httpx.HTTPError, ValueError) as e:
        return Result.failure(str(e), EMBEDDING_ERROR)
    if not vector:
        return Result.failure("Empty query embedding", EMBEDDING_ERROR)
    return Result.success(vector)


def search_knowledge(query: str, top_k: int = DEFAULT_TOP_K) -> List[KnowledgeMatch]:
    """Top ``top_k`` chunks by cosine similarity.

    Best effort: a blank query, missing configuration or any embedding/search
    failure gives an empty list.
    """
    trimmed = (query or "").strip()
    if not trimmed:
        return []

    embedding = get_query_embedding(trimmed)
    if not embedding.ok:
        logger.warning(f"Knowledge search skipped: {embedding.error}")
        return []

    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.post(
                _collection_url("/points/search"),
                headers=_headers(),
                json={"vector": embedding.value, "limit": top_k, "with_payload": True},
            )
        if response.status_code != 200:
            logger.error(f"Qdrant search error: {response.status_code} - {response.text}")
            alert_warning("Qdrant search failed", {"status": response.status_code, "query": trimmed[:50]})
            return []
        body = response.json()
    except httpx.HTTPError as e:
        logger.error(f"Qdrant search unreachable: {e}")
        alert_warning("Qdrant search failed", {"error": str(e), "query": trimmed[:50]})
        return []
    except ValueError as e:
        logger.error(f"Qdrant search returned invalid JSON: {e}")
        alert_warning("Qdrant search failed", {"error": str(e), "query": trimmed[:50]})
        return []

    points = body.get("result") if isinstance(body, dict) else None
    matches = []
    for point in points or []:
        if not isinstance(point, dict):
            continue
        payload = point.get("payload") or {}
        score = point.get("score")
        matches.append(
            KnowledgeMatch(
                source=payload.get("source") or "",
                content=payload.get("content") or "",
                similarity=score if isinstance(score, (int, float)) else 0.0,
            )
        )

    matches.sort(key=lambda m: m.similarity, reverse=True)
    logger.info(f"Knowledge search: found {len(matches)} results for '{trimmed[:30]}...'")
    return matches[:top_k]


def format_knowledge_context(matches: List[KnowledgeMatch]) -> Optional[str]:
    """Context block appended to the system prompt, or None when nothing usable was found."""
    parts = [m.content for m in matches if m.content]
    if not parts:
        return None
    return f"{CONTEXT_INSTRUCTION}\n\n---\n" + "\n\n---\n".join(parts)
