import time
import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from pdfquiz.core.config import settings
from pdfquiz.core.errors import InvalidInputError, TransportError
from pdfquiz.api.deps import get_quiz_pipeline, get_review_pipeline, get_title_generator
from pdfquiz.schemas.api import (
    ErrorResponse,
    ProcessingMeta,
    QuizEnvelope,
    QuizGenerationBody,
    TitleBody,
    TitleResponse,
    clamp_question_count,
)
from pdfquiz.schemas.quiz import AnswerScore, GenerationRequest, PipelineFailure, Review, ReviewRequest
from pdfquiz.services.file_service import count_pages, encode_data_url, encode_document
from pdfquiz.services.quiz_service import QuizGenerationPipeline
from pdfquiz.services.review_service import ReviewPipeline, score_answers
from pdfquiz.services.title_service import DEFAULT_TITLE, TitleGenerator

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_BYTES = settings.MAX_FILE_SIZE_MB * 1024 * 1024


# ── Helpers ──────────────────────────────────────────────────────────────────

def _build_request(body: QuizGenerationBody) -> GenerationRequest:
    if not body.files:
        raise InvalidInputError("Please upload a PDF file.")
    upload = body.files[0]
    document = encode_data_url(upload.name, upload.media_type, upload.data, MAX_BYTES)
    return GenerationRequest(
        document=document,
        question_count=clamp_question_count(
            body.question_count, settings.DEFAULT_QUESTION_COUNT, settings.MAX_QUESTION_COUNT
        ),
        difficulty=body.difficulty,
    )


def _failure_response(failure: PipelineFailure) -> JSONResponse:
    # Pipeline failures keep a 2xx status; clients branch on the payload shape.
    body = ErrorResponse(error=failure.message, detail=failure.stage)
    return JSONResponse(status_code=200, content=body.model_dump())


def _timeout_response() -> JSONResponse:
    body = ErrorResponse(
        error=f"AI processing timed out after {settings.AI_TIMEOUT_SECONDS}s.",
        detail="The document may be too complex. Try a shorter PDF.",
    )
    return JSONResponse(status_code=504, content=body.model_dump())


async def _sse_wrapper(generator):
    """Wraps an async generator of pydantic events into SSE format."""
    try:
        async for event in generator:
            yield f"data: {event.model_dump_json()}\n\n"
        yield "data: [DONE]\n\n"
    except Exception as e:
        logger.error(f"SSE stream error: {e}", exc_info=True)
        yield f"data: {ErrorResponse(error=str(e)).model_dump_json(exclude_none=True)}\n\n"
        yield "data: [DONE]\n\n"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. QUIZ
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/generate-quiz", tags=["Quiz"])
async def generate_quiz(
    body: QuizGenerationBody,
    pipeline: QuizGenerationPipeline = Depends(get_quiz_pipeline),
):
    """Generate exactly ``questionCount`` questions from the first uploaded PDF."""
    request = _build_request(body)
    try:
        result = await asyncio.wait_for(pipeline.run(request), timeout=settings.AI_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return _timeout_response()

    if isinstance(result, PipelineFailure):
        return _failure_response(result)
    return result.model_dump()


@router.post("/generate-quiz/stream", tags=["Quiz"])
async def generate_quiz_stream(
    body: QuizGenerationBody,
    pipeline: QuizGenerationPipeline = Depends(get_quiz_pipeline),
):
    """Stream partial quizzes and the final result via Server-Sent Events."""
    request = _build_request(body)
    deadline = asyncio.get_running_loop().time() + settings.AI_TIMEOUT_SECONDS
    return StreamingResponse(
        _sse_wrapper(pipeline.stream(request, deadline=deadline)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. REVIEW & FEEDBACK
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/quiz-review", response_model=Review, tags=["Review"])
async def review_quiz(
    request: ReviewRequest,
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    """Personalised review of a completed quiz. Degrades to a fixed fallback."""
    return await pipeline.run(request)


@router.post("/quiz-feedback", response_model=AnswerScore, tags=["Review"])
async def quiz_feedback(request: ReviewRequest):
    """Score answers locally and list the topics still to master."""
    return score_answers(request.questions, request.user_answers)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. TITLE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/quiz-title", response_model=TitleResponse, tags=["Quiz"])
async def quiz_title(
    body: TitleBody,
    generator: TitleGenerator = Depends(get_title_generator),
):
    return TitleResponse(title=await generator.generate(body.filename))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 4. FILE UPLOAD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post(
    "/v1/quiz/upload",
    response_model=QuizEnvelope,
    tags=["Quiz"],
    summary="Upload a PDF and receive a titled quiz",
)
async def upload_quiz(
    file: UploadFile = File(...),
    question_count: int = Form(default=4),
    difficulty: str = Form(default="medium"),
    pipeline: QuizGenerationPipeline = Depends(get_quiz_pipeline),
    titles: TitleGenerator = Depends(get_title_generator),
):
    """
    Multipart variant of /generate-quiz:
    1. Validates the uploaded PDF (type, size, magic bytes)
    2. Generates the quiz and its title concurrently
    3. Returns a QuizEnvelope with processing metadata
    """
    start = time.perf_counter()
    content = await file.read()
    filename = file.filename or "unknown.pdf"

    document = encode_document(filename, file.content_type or "", content, MAX_BYTES)
    request = GenerationRequest(
        document=document,
        question_count=clamp_question_count(
            question_count, settings.DEFAULT_QUESTION_COUNT, settings.MAX_QUESTION_COUNT
        ),
        difficulty=difficulty,
    )

    async def _title() -> str:
        try:
            return await titles.generate(filename)
        except TransportError as e:
            logger.warning(f"[TITLE] ✗ {e.message}")
            return DEFAULT_TITLE

    try:
        result, title = await asyncio.wait_for(
            asyncio.gather(pipeline.run(request), _title()),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        return _timeout_response()

    if isinstance(result, PipelineFailure):
        return _failure_response(result)

    elapsed = time.perf_counter() - start
    total_pages = await count_pages(content)
    logger.info(
        f"[PROCESS] ✓ {filename}, {total_pages} pages, "
        f"{len(result)} questions, {elapsed:.1f}s"
    )
    return QuizEnvelope(
        meta=ProcessingMeta(
            processing_time=f"{elapsed:.1f}s",
            file_name=filename,
            total_pages=total_pages,
            title=title,
        ),
        data=list(result),
    )
