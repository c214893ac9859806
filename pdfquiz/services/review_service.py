"""
Quiz review
===========
Best-effort by policy: the quiz is already done, so a failed review call
degrades to ``FALLBACK_REVIEW`` instead of surfacing an error.

``score_answers`` is the local, model-free half of the feedback screen.
"""

import re
import logging
from typing import List, Sequence

from pdfquiz.core.errors import TransportError
from pdfquiz.schemas.quiz import (
    FALLBACK_REVIEW,
    AnswerScore,
    PipelineFailure,
    Question,
    Review,
    ReviewRequest,
)
from pdfquiz.services.completion import CompletionClient
from pdfquiz.services.extraction import extract_json_object
from pdfquiz.services.prompts import build_review_messages
from pdfquiz.services.validation import validate_review

logger = logging.getLogger(__name__)


class ReviewPipeline:

    def __init__(self, client: CompletionClient, max_tokens: int = 512):
        self._client = client
        self._max_tokens = max_tokens

    async def run(self, request: ReviewRequest) -> Review:
        logger.info(f"[REVIEW] Starting: {len(request.questions)} questions")
        try:
            raw = await self._client.complete_text(
                build_review_messages(request), max_tokens=self._max_tokens, expect_json=True
            )
        except TransportError as e:
            logger.error(f"[REVIEW] ✗ transport: {e.message}")
            return FALLBACK_REVIEW

        logger.debug(f"[REVIEW] Raw reply (first 500 chars): {raw[:500]}")
        extracted = extract_json_object(raw)
        if isinstance(extracted, PipelineFailure):
            return FALLBACK_REVIEW

        review = validate_review(extracted)
        if review is None:
            return FALLBACK_REVIEW

        logger.info("[REVIEW] ✓ Review generated")
        return review


# ── Local scoring ─────────────────────────────────────────────────────────────

def extract_topics(questions: Sequence[Question]) -> List[str]:
    """Capitalised words longer than three characters, in first-seen order."""
    topics: List[str] = []
    for q in questions:
        for word in q.question.split():
            if len(word) > 3 and word[0] == word[0].upper():
                topic = re.sub(r"[^a-zA-Z0-9]", "", word)
                if topic and topic not in topics:
                    topics.append(topic)
    return topics


def score_answers(questions: Sequence[Question], user_answers: Sequence[str]) -> AnswerScore:
    answers = list(user_answers) + [None] * (len(questions) - len(user_answers))
    missed = [i for i, q in enumerate(questions) if answers[i] != q.answer]
    correct = [q for i, q in enumerate(questions) if i not in missed]

    mastered = extract_topics(correct)
    return AnswerScore(
        correct=len(correct),
        total=len(questions),
        missed=missed,
        missed_topics=extract_topics([questions[i] for i in missed]),
        topics_left=[t for t in extract_topics(questions) if t not in mastered],
    )
