"""
Quiz generation
===============
prompt → completion → extraction → validation.

``run`` returns the finished result in one go. ``stream`` reports progress
as growing ``QuizPartial`` prefixes and always ends with exactly one
``QuizValidated`` or ``QuizFailed`` unless the caller cancels first.
Nothing is retried: a failed run is final and the caller decides whether to
submit again.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Union

from pdfquiz.core.errors import TransportError
from pdfquiz.schemas.chat import StreamSnapshot
from pdfquiz.schemas.quiz import (
    GenerationRequest,
    PipelineFailure,
    Question,
    Quiz,
    QuizEvent,
    QuizFailed,
    QuizPartial,
    QuizValidated,
)
from pdfquiz.services.completion import CompletionClient
from pdfquiz.services.extraction import extract_json_array
from pdfquiz.services.prompts import build_quiz_messages
from pdfquiz.services.validation import validate_quiz

logger = logging.getLogger(__name__)


class QuizGenerationPipeline:

    def __init__(self, client: CompletionClient, max_tokens: int = 2048):
        self._client = client
        self._max_tokens = max_tokens

    async def run(self, request: GenerationRequest) -> Union[Quiz, PipelineFailure]:
        logger.info(
            f"[QUIZ] Starting: {request.question_count} questions, "
            f"difficulty={request.difficulty.value}, file={request.document.name}"
        )
        messages = build_quiz_messages(request)
        try:
            raw = await self._client.complete_text(
                messages, max_tokens=self._max_tokens, expect_json=True
            )
        except TransportError as e:
            logger.error(f"[QUIZ] ✗ transport: {e.message}")
            return PipelineFailure(stage="transport", message=e.message)

        return self._finish(raw, request.question_count)

    async def stream(
        self,
        request: GenerationRequest,
        *,
        cancel: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
    ) -> AsyncIterator[QuizEvent]:
        """
        ``cancel`` stops the run quietly once set. ``deadline`` is an
        event-loop time (``loop.time()``); reaching it ends the run with a
        transport failure. Either way the upstream stream is closed.
        """
        expected = request.question_count
        logger.info(
            f"[QUIZ] Streaming: {expected} questions, difficulty={request.difficulty.value}"
        )
        snapshots = self._client.complete_streaming(
            build_quiz_messages(request), Question, max_tokens=self._max_tokens
        )
        emitted = 0
        try:
            while True:
                if cancel is not None and cancel.is_set():
                    logger.info(f"[QUIZ] Cancelled by caller after {emitted} partial questions")
                    return
                try:
                    snapshot = await self._next_snapshot(snapshots, deadline)
                except StopAsyncIteration:
                    break

                if snapshot.final:
                    result = self._finish(snapshot.text, expected)
                    if isinstance(result, PipelineFailure):
                        yield QuizFailed(failure=result)
                    else:
                        yield QuizValidated(quiz=result)
                    return

                if len(snapshot.items) > emitted:
                    emitted = len(snapshot.items)
                    yield QuizPartial(questions=snapshot.items, expected=expected)
        except TransportError as e:
            logger.error(f"[QUIZ] ✗ transport: {e.message}")
            yield QuizFailed(failure=PipelineFailure(stage="transport", message=e.message))
            return
        except asyncio.TimeoutError:
            logger.error(f"[QUIZ] ✗ deadline reached after {emitted} partial questions")
            yield QuizFailed(
                failure=PipelineFailure(stage="transport", message="Quiz generation timed out.")
            )
            return
        finally:
            await snapshots.aclose()

        yield QuizFailed(
            failure=PipelineFailure(stage="transport", message="Stream ended without a final reply.")
        )

    @staticmethod
    async def _next_snapshot(
        snapshots: AsyncIterator[StreamSnapshot], deadline: Optional[float]
    ) -> StreamSnapshot:
        if deadline is None:
            return await anext(snapshots)
        remaining = deadline - asyncio.get_running_loop().time()
        return await asyncio.wait_for(anext(snapshots), timeout=max(remaining, 0))

    @staticmethod
    def _finish(raw: str, expected: int) -> Union[Quiz, PipelineFailure]:
        logger.debug(f"[QUIZ] Raw reply (first 500 chars): {raw[:500]}")
        extracted = extract_json_array(raw)
        if isinstance(extracted, PipelineFailure):
            logger.warning(f"[QUIZ] ✗ {extracted.stage}: {extracted.message}")
            return extracted

        result = validate_quiz(extracted, expected)
        if isinstance(result, PipelineFailure):
            logger.warning(f"[QUIZ] ✗ {result.stage}: {result.message}")
        else:
            logger.info(f"[QUIZ] ✓ Generated {len(result)} questions")
        return result
