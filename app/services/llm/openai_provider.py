from typing import List, Optional

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")


class OpenAIError(Exception):
    """Non-200 answer from the OpenAI API."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"OpenAI API error: {status_code} - {body}")


class OpenAIProvider(LLMProvider):
    """OpenAI API provider (chat completions and embeddings)."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.embedding_model = embedding_model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, path: str, payload: dict) -> dict:
        with httpx.Client(timeout=self.timeout_seconds) as client:
            response = client.post(f"{self.base_url}{path}", headers=self._headers(), json=payload)

        logger.debug(f"OpenAI {path} status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"OpenAI error on {path}: {response.text}")
            raise OpenAIError(response.status_code, response.text)
        try:
            data = response.json()
        except ValueError:
            raise OpenAIError(response.status_code, f"invalid JSON body: {response.text[:200]}") from None
        if not isinstance(data, dict):
            raise OpenAIError(response.status_code, "unexpected response body")
        return data

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        """Generate response from OpenAI."""
        model = model or self.default_model
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

        data = self._post(
            "/chat/completions",
            {
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_completion_tokens": max_tokens,
            },
        )

        content = ""
        if data.get("choices"):
            message = data["choices"][0].get("message") or {}
            content = message.get("content") or ""
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )

    def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        """Embed one batch. Results are re-sorted by the ``index`` the API reports."""
        if not texts:
            return []
        data = self._post("/embeddings", {"model": model or self.embedding_model, "input": texts})

        items = sorted(data.get("data") or [], key=lambda item: item.get("index", 0))
        vectors = [item.get("embedding") or [] for item in items]
        if len(vectors) != len(texts):
            raise OpenAIError(200, f"expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors


def get_llm_provider() -> Optional[OpenAIProvider]:
    """Provider built from current settings, or None when no API key is configured."""
    if not settings.openai_api_key:
        return None
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        embedding_model=settings.embedding_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.llm_timeout_seconds,
    )
