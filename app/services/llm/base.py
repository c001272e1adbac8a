from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Completion and embedding capability.

    One provider serves both so that ingestion and query-time retrieval embed
    with the same model.
    """

    embedding_model: str

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        """Chat completion over ``[{"role", "content"}]`` turns."""

    @abstractmethod
    def embed(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        """Embed texts; the i-th vector belongs to the i-th input."""

    def embed_one(self, text: str) -> List[float]:
        vectors = self.embed([text])
        return vectors[0] if vectors else []
