from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pytest

# Settings and the engine are built at import time, so point them at a scratch
# database and a dummy key before anything from `tutor` is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="tutor-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ.pop("NEWS_API_KEY", None)
os.environ.pop("OPENROUTER_API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from tutor.db import Base, engine  # noqa: E402
from tutor.llm import get_llm  # noqa: E402
from tutor.main import app  # noqa: E402
from tutor.routers.auth import User, get_current_user  # noqa: E402


Reply = Union[str, Dict[str, Any], List[Any], Exception]


class FakeLLM:
    """Stands in for GeminiClient; replays scripted replies in order."""

    def __init__(self) -> None:
        self.replies: List[Reply] = []
        self.prompts: List[str] = []
        self.parts: List[List[Dict[str, Any]]] = []
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *replies: Reply) -> "FakeLLM":
        self.replies.extend(replies)
        return self

    def _next(self) -> str:
        if not self.replies:
            raise RuntimeError("FakeLLM: no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply, ensure_ascii=False)
        return reply

    async def generate(self, prompt: str, **kwargs: Any) -> str:
        self.prompts.append(prompt)
        self.calls.append(kwargs)
        return self._next()

    async def generate_multimodal(self, parts: List[Dict[str, Any]], **kwargs: Any) -> str:
        self.parts.append(parts)
        self.calls.append(kwargs)
        return self._next()

    async def aclose(self) -> None:
        pass

    @property
    def last_prompt(self) -> Optional[str]:
        return self.prompts[-1] if self.prompts else None


@pytest.fixture(autouse=True)
def _fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture()
def client(llm: FakeLLM):
    async def _fake_llm():
        yield llm

    app.dependency_overrides[get_llm] = _fake_llm
    app.dependency_overrides[get_current_user] = lambda: User(username="tester")
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def anon_client(llm: FakeLLM):
    async def _fake_llm():
        yield llm

    app.dependency_overrides[get_llm] = _fake_llm
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
