"""
Shared fixtures: sample PDFs, question payloads and scripted completion clients.

``ScriptedClient`` runs the real OpenAI-compatible code path against a fake
SDK object, so streaming, rendering and error wrapping are exercised without
network access. ``TextOnlyClient`` implements only ``complete_text`` and
therefore uses the degraded single-snapshot streaming.
"""

import base64
import json
from types import SimpleNamespace
from typing import List, Sequence, Union

import pytest

from pdfquiz.schemas.chat import ChatMessage
from pdfquiz.schemas.quiz import Difficulty, EncodedDocument, GenerationRequest
from pdfquiz.services.completion import CompletionClient, OpenAICompatibleClient

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< >>\n%%EOF\n"


class FakeAPIError(Exception):
    """Stands in for an SDK transport error."""


def make_questions(n: int) -> List[dict]:
    return [
        {"question": f"Q{i + 1}", "options": ["a", "b", "c", "d"], "answer": "a"}
        for i in range(n)
    ]


def chunk_text(text: str, size: int) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


# ── Fake SDK ─────────────────────────────────────────────────────────────────

class FakeStream:
    def __init__(self, deltas: Sequence[Union[str, Exception]]):
        self._deltas = list(deltas)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._deltas:
            raise StopAsyncIteration
        delta = self._deltas.pop(0)
        if isinstance(delta, Exception):
            raise delta
        return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=delta))])

    async def close(self):
        self.closed = True


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: List[dict] = []
        self.streams: List[FakeStream] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if kwargs.get("stream"):
            stream = FakeStream(reply if isinstance(reply, list) else [reply])
            self.streams.append(stream)
            return stream
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=reply))]
        )


class ScriptedClient(OpenAICompatibleClient):
    """
    Each reply is consumed by one call: a string (full reply), a list of
    strings (streamed deltas, possibly ending in an exception) or an exception.
    """

    name = "Scripted"
    _transport_errors = (FakeAPIError,)

    def __init__(self, *replies, json_mode: bool = False):
        self.completions = FakeCompletions(replies)
        sdk = SimpleNamespace(chat=SimpleNamespace(completions=self.completions))
        super().__init__(sdk, "test-model", json_mode=json_mode)


class TextOnlyClient(CompletionClient):
    name = "TextOnly"

    def __init__(self, *replies):
        super().__init__()
        self.replies = list(replies)
        self.calls: List[Sequence[ChatMessage]] = []

    async def complete_text(self, messages, *, max_tokens, expect_json=False):
        self.calls.append(messages)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def document():
    return EncodedDocument(
        name="biology.pdf",
        media_type="application/pdf",
        payload=base64.b64encode(PDF_BYTES).decode("ascii"),
    )


@pytest.fixture
def generation_request(document):
    return GenerationRequest(document=document, question_count=4, difficulty=Difficulty.medium)


@pytest.fixture
def four_questions_reply():
    return "Here are your questions: " + json.dumps(make_questions(4))
