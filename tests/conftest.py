"""Pytest fixtures: a scripted language model and throwaway storage."""

from typing import Callable, Optional, Union

import pytest

from jirani.graph.builder import build_engine
from jirani.llm.client import LLMClient, LLMError

SANITIZED = "A bag was reported stolen by a man near a shopping centre in the afternoon."


def yaya_or_westlands(text: str) -> Optional[str]:
    lowered = text.lower()
    if "yaya" in lowered:
        return "Yaya Centre"
    if "westlands" in lowered:
        return "Westlands"
    return None


class FakeLLM(LLMClient):
    """Scripted model.

    ``replies`` are popped in order for conversational turns; sanitizer
    prompts always get ``summary``. ``fail`` makes every call raise.
    """

    def __init__(
        self,
        replies: Optional[list] = None,
        location: Union[str, None, Callable[[str], Optional[str]]] = yaya_or_westlands,
        summary: str = SANITIZED,
        fail: bool = False,
    ) -> None:
        self.replies = list(replies or [])
        self.location = location
        self.summary = summary
        self.fail = fail
        self.generate_calls: list[tuple[str, str, str]] = []
        self.extract_calls: list[str] = []

    async def generate(self, system_prompt: str, user_prompt: str, context: str = "") -> str:
        self.generate_calls.append((system_prompt, user_prompt, context))
        if self.fail:
            raise LLMError("model unavailable")
        if "rewrite citizen safety reports" in system_prompt:
            return self.summary
        if self.replies:
            return self.replies.pop(0)
        return "Asante for reaching out. How can I help you stay safe today?"

    async def extract_field(self, instructions: str, text: str) -> Optional[str]:
        self.extract_calls.append(text)
        if self.fail:
            raise LLMError("model unavailable")
        if callable(self.location):
            return self.location(text)
        return self.location

    @property
    def reply_calls(self) -> list[tuple[str, str, str]]:
        return [c for c in self.generate_calls if "rewrite citizen safety reports" not in c[0]]


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "jirani-test.db"


@pytest.fixture
def fallback_path(tmp_path):
    return tmp_path / "reports.json"


@pytest.fixture
def engine(fake_llm, db_path, fallback_path):
    """Dialog engine over a temporary SQLite file and JSON fallback."""
    return build_engine(llm=fake_llm, db_path=db_path, fallback_path=fallback_path)
