from functools import lru_cache

from fastapi import Depends

from pdfquiz.core.config import settings
from pdfquiz.services.completion import CompletionClient, build_completion_client
from pdfquiz.services.quiz_service import QuizGenerationPipeline
from pdfquiz.services.review_service import ReviewPipeline
from pdfquiz.services.title_service import TitleGenerator


@lru_cache
def get_completion_client() -> CompletionClient:
    """Built once per process. Missing credentials raise on every call until fixed."""
    return build_completion_client(settings)


def get_quiz_pipeline(
    client: CompletionClient = Depends(get_completion_client),
) -> QuizGenerationPipeline:
    return QuizGenerationPipeline(client, max_tokens=settings.QUIZ_MAX_TOKENS)


def get_review_pipeline(
    client: CompletionClient = Depends(get_completion_client),
) -> ReviewPipeline:
    return ReviewPipeline(client, max_tokens=settings.REVIEW_MAX_TOKENS)


def get_title_generator(
    client: CompletionClient = Depends(get_completion_client),
) -> TitleGenerator:
    return TitleGenerator(client, max_tokens=settings.TITLE_MAX_TOKENS)
