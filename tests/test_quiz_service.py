import asyncio
import json

import pytest

from pdfquiz.core.errors import TransportError
from pdfquiz.schemas.chat import StreamSnapshot
from pdfquiz.schemas.quiz import PipelineFailure, Quiz, QuizFailed, QuizPartial, QuizValidated
from pdfquiz.services.completion import CompletionClient
from pdfquiz.services.quiz_service import QuizGenerationPipeline

from conftest import FakeAPIError, ScriptedClient, TextOnlyClient, chunk_text, make_questions


async def collect(events):
    return [e async for e in events]


# ── One-shot ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_returns_validated_quiz(generation_request, four_questions_reply):
    pipeline = QuizGenerationPipeline(TextOnlyClient(four_questions_reply))

    result = await pipeline.run(generation_request)

    assert isinstance(result, Quiz)
    assert len(result) == 4
    assert [q.question for q in result] == ["Q1", "Q2", "Q3", "Q4"]
    assert all(q.answer in q.options and len(q.options) == 4 for q in result)


@pytest.mark.asyncio
async def test_run_reports_cardinality_mismatch(generation_request):
    reply = "Here are your questions: " + json.dumps(make_questions(3))
    pipeline = QuizGenerationPipeline(TextOnlyClient(reply))

    result = await pipeline.run(generation_request)

    assert isinstance(result, PipelineFailure)
    assert result.stage == "cardinality-mismatch"
    assert (result.expected, result.actual) == (4, 3)


@pytest.mark.asyncio
async def test_run_reports_extraction_failure(generation_request):
    pipeline = QuizGenerationPipeline(TextOnlyClient("I cannot help with that"))

    result = await pipeline.run(generation_request)

    assert isinstance(result, PipelineFailure)
    assert result.stage == "extraction"


@pytest.mark.asyncio
async def test_schema_mismatch_is_all_or_nothing(generation_request):
    items = make_questions(4)
    items[3]["answer"] = "e"
    pipeline = QuizGenerationPipeline(TextOnlyClient(json.dumps(items)))

    result = await pipeline.run(generation_request)

    assert isinstance(result, PipelineFailure)
    assert (result.stage, result.index, result.field) == ("schema-mismatch", 3, "answer")


@pytest.mark.asyncio
async def test_transport_error_becomes_failure(generation_request):
    pipeline = QuizGenerationPipeline(ScriptedClient(FakeAPIError("401 unauthorized")))

    result = await pipeline.run(generation_request)

    assert isinstance(result, PipelineFailure)
    assert result.stage == "transport"
    assert "401 unauthorized" in result.message


@pytest.mark.asyncio
async def test_runs_are_independent(generation_request, four_questions_reply):
    client = TextOnlyClient("nothing useful", four_questions_reply)
    pipeline = QuizGenerationPipeline(client)

    first = await pipeline.run(generation_request)
    second = await pipeline.run(generation_request)

    assert isinstance(first, PipelineFailure)
    assert isinstance(second, Quiz)
    assert client.calls[0] == client.calls[1]


# ── Streaming ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stream_prefixes_grow(generation_request, four_questions_reply):
    client = ScriptedClient(chunk_text(four_questions_reply, 9))
    pipeline = QuizGenerationPipeline(client)

    events = await collect(pipeline.stream(generation_request))

    partials = [e for e in events if isinstance(e, QuizPartial)]
    assert [len(p.questions) for p in partials] == [1, 2, 3, 4]
    for earlier, later in zip(partials, partials[1:]):
        assert later.questions[:len(earlier.questions)] == earlier.questions
    assert all(p.expected == 4 for p in partials)

    terminal = events[-1]
    assert isinstance(terminal, QuizValidated)
    assert list(terminal.quiz) == partials[-1].questions
    assert sum(isinstance(e, (QuizValidated, QuizFailed)) for e in events) == 1


@pytest.mark.asyncio
async def test_streaming_cardinality_failure_is_terminal(generation_request):
    reply = json.dumps(make_questions(3))
    pipeline = QuizGenerationPipeline(ScriptedClient(chunk_text(reply, 20)))

    events = await collect(pipeline.stream(generation_request))

    assert [len(e.questions) for e in events if isinstance(e, QuizPartial)] == [1, 2, 3]
    assert isinstance(events[-1], QuizFailed)
    assert events[-1].failure.stage == "cardinality-mismatch"
    assert (events[-1].failure.expected, events[-1].failure.actual) == (4, 3)


@pytest.mark.asyncio
async def test_streaming_degraded_client_yields_only_terminal(generation_request, four_questions_reply):
    pipeline = QuizGenerationPipeline(TextOnlyClient(four_questions_reply))

    events = await collect(pipeline.stream(generation_request))

    assert len(events) == 1
    assert isinstance(events[0], QuizValidated)


@pytest.mark.asyncio
async def test_streaming_transport_error(generation_request):
    client = ScriptedClient(['[{"question": "Q1", "options": ["a","b","c","d"], "answer": "a"}, ',
                             FakeAPIError("connection reset")])
    pipeline = QuizGenerationPipeline(client)

    events = await collect(pipeline.stream(generation_request))

    assert isinstance(events[0], QuizPartial)
    assert isinstance(events[-1], QuizFailed)
    assert events[-1].failure.stage == "transport"
    assert client.completions.streams[0].closed


@pytest.mark.asyncio
async def test_streaming_honours_cancellation(generation_request, four_questions_reply):
    client = ScriptedClient(chunk_text(four_questions_reply, 9))
    pipeline = QuizGenerationPipeline(client)
    cancel = asyncio.Event()

    seen = []
    async for event in pipeline.stream(generation_request, cancel=cancel):
        seen.append(event)
        if len(seen) == 2:
            cancel.set()

    assert len(seen) == 2
    assert all(isinstance(e, QuizPartial) for e in seen)
    assert client.completions.streams[0].closed


class StalledClient(CompletionClient):
    """Emits one partial and then never answers."""

    def __init__(self):
        super().__init__()
        self.closed = False

    async def complete_text(self, messages, *, max_tokens, expect_json=False):
        raise TransportError("not used")

    async def complete_streaming(self, messages, item_model, *, max_tokens):
        try:
            yield StreamSnapshot(items=[item_model.model_validate(make_questions(1)[0])], text="[")
            await asyncio.sleep(3600)
        finally:
            self.closed = True


@pytest.mark.asyncio
async def test_streaming_deadline_fails_and_releases_stream(generation_request):
    client = StalledClient()
    pipeline = QuizGenerationPipeline(client)
    deadline = asyncio.get_running_loop().time() + 0.05

    events = await collect(pipeline.stream(generation_request, deadline=deadline))

    assert isinstance(events[0], QuizPartial)
    assert isinstance(events[-1], QuizFailed)
    assert events[-1].failure.stage == "transport"
    assert "timed out" in events[-1].failure.message
    assert client.closed
