"""Language-model capability used by the dialog engine, detector and sanitizer.

Every provider is reached through ``ChatOpenAI``: Gemini and Ollama both
expose OpenAI-compatible endpoints, so selecting a provider only changes the
base URL and key at construction time.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from jirani.config import (
    GEMINI_BASE_URL,
    GOOGLE_API_KEY,
    LLM_PROVIDER,
    LLM_TIMEOUT_SECONDS,
    MODEL_NAME,
    MODEL_TEMPERATURE,
    OLLAMA_BASE_URL,
    OPENAI_API_KEY,
)

logger = logging.getLogger(__name__)

_NULL_ANSWERS = {"", "null", "none", "n/a", "unknown", "no location"}


class LLMError(Exception):
    """The model could not produce an answer (error, timeout, bad config)."""


class LLMClient(ABC):
    """Text generation and single-field extraction."""

    @abstractmethod
    async def generate(
        self, system_prompt: str, user_prompt: str, context: str = ""
    ) -> str:
        """Return the model's reply. Raises LLMError on failure."""

    @abstractmethod
    async def extract_field(self, instructions: str, text: str) -> Optional[str]:
        """Return the extracted value, or None when the model says there is none."""


class ChatModelClient(LLMClient):
    """LLMClient backed by a LangChain chat model with a hard timeout."""

    def __init__(
        self,
        model_factory: Callable[[], BaseChatModel],
        timeout: float = LLM_TIMEOUT_SECONDS,
    ) -> None:
        self._model_factory = model_factory
        self._model: BaseChatModel | None = None
        self.timeout = timeout

    def _get_model(self) -> BaseChatModel:
        if self._model is None:
            self._model = self._model_factory()
        return self._model

    async def _ask(self, messages: list[BaseMessage]) -> str:
        try:
            resp = await asyncio.wait_for(
                self._get_model().ainvoke(messages), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise LLMError(f"model call timed out after {self.timeout}s") from exc
        except Exception as exc:  # provider SDKs raise a zoo of types
            raise LLMError(str(exc)) from exc

        content = resp.content
        if isinstance(content, list):
            content = "".join(
                part if isinstance(part, str) else part.get("text", "")
                for part in content
            )
        return str(content).strip()

    async def generate(
        self, system_prompt: str, user_prompt: str, context: str = ""
    ) -> str:
        messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
        if context:
            messages.append(
                SystemMessage(content=f"Conversation so far:\n{context}")
            )
        messages.append(HumanMessage(content=user_prompt))
        return await self._ask(messages)

    async def extract_field(self, instructions: str, text: str) -> Optional[str]:
        answer = await self._ask(
            [SystemMessage(content=instructions), HumanMessage(content=text)]
        )
        value = answer.strip().strip("`'\"").strip()
        if value.lower().rstrip(".") in _NULL_ANSWERS:
            return None
        return value


def _chat_model(provider: str) -> BaseChatModel:
    if provider == "openai":
        return ChatOpenAI(
            model=MODEL_NAME,
            temperature=MODEL_TEMPERATURE,
            api_key=OPENAI_API_KEY or None,
            max_retries=1,
        )
    if provider == "gemini":
        return ChatOpenAI(
            model=MODEL_NAME,
            temperature=MODEL_TEMPERATURE,
            api_key=GOOGLE_API_KEY,
            base_url=GEMINI_BASE_URL,
            max_retries=1,
        )
    if provider == "ollama":
        return ChatOpenAI(
            model=MODEL_NAME,
            temperature=MODEL_TEMPERATURE,
            api_key="ollama",
            base_url=OLLAMA_BASE_URL,
            max_retries=0,
        )
    raise ValueError(f"Unsupported LLM provider: {provider!r}")


def build_llm_client(provider: str = LLM_PROVIDER) -> LLMClient:
    """Pick the provider adapter once, from configuration."""
    if provider not in ("openai", "gemini", "ollama"):
        raise ValueError(f"Unsupported LLM provider: {provider!r}")
    logger.info("Using %s chat model %s", provider, MODEL_NAME)
    return ChatModelClient(lambda: _chat_model(provider))
