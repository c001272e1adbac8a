from app.services.llm.base import LLMProvider, LLMResponse
from app.services.llm.openai_provider import OpenAIError, OpenAIProvider, get_llm_provider

__all__ = ["LLMProvider", "LLMResponse", "OpenAIError", "OpenAIProvider", "get_llm_provider"]
