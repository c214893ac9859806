import logging
from typing import Any, Optional, Union

from pydantic import ValidationError

from pdfquiz.schemas.quiz import PipelineFailure, Question, Quiz, Review

logger = logging.getLogger(__name__)


def validate_quiz(value: Any, expected_count: int) -> Union[Quiz, PipelineFailure]:
    """
    All-or-nothing quiz validation.

    1. ``value`` must be a list
    2. Its length must equal ``expected_count`` exactly
    3. Every element must be a well-formed ``Question``

    The first problem found is returned as a ``PipelineFailure``; a single bad
    element rejects the whole quiz.
    """
    if not isinstance(value, list):
        return PipelineFailure(
            stage="schema-mismatch",
            message=f"Expected a JSON array of questions, got {type(value).__name__}",
        )

    if len(value) != expected_count:
        return PipelineFailure(
            stage="cardinality-mismatch",
            message=f"Expected {expected_count} questions, received {len(value)}",
            expected=expected_count,
            actual=len(value),
        )

    questions = []
    for index, item in enumerate(value):
        try:
            questions.append(Question.model_validate(item))
        except ValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else "item"
            return PipelineFailure(
                stage="schema-mismatch",
                message=f"Question at index {index} has an invalid '{field}': {error['msg']}",
                index=index,
                field=field,
            )

    return Quiz(questions)


def validate_review(value: Any) -> Optional[Review]:
    """Return a ``Review`` when ``value`` carries both non-blank fields, else None."""
    if not isinstance(value, dict):
        return None
    try:
        return Review.model_validate(
            {"review": value.get("review"), "recommendations": value.get("recommendations")}
        )
    except ValidationError as e:
        logger.warning(f"[REVIEW] Reply failed validation: {e.errors()[0]['msg']}")
        return None
