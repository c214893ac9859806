"""
PDF Quiz Generation Service
===========================
FastAPI entry point.
  • Global exception handler: never crashes, always returns JSON with ``error``
  • /api/generate-quiz (+ /stream): PDF → exact-count multiple-choice quiz
  • /api/quiz-review, /api/quiz-feedback: review of an answered quiz
  • /api/quiz-title: short label from a file name
  • /api/v1/quiz/upload: multipart upload → titled quiz envelope
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pdfquiz.core.config import settings
from pdfquiz.core.errors import ConfigurationError, InvalidInputError, TransportError
from pdfquiz.schemas.api import ErrorResponse
from pdfquiz.api.v1.endpoints.quiz import router as quiz_router

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
)
logger = logging.getLogger(__name__)

# ── App ──────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="PDF Quiz Generation Service",
    description=(
        "Upload a PDF → receive an exact-length multiple-choice quiz, "
        "then a personalised review of your answers."
    ),
    version="1.0.0",
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)


def _error(status_code: int, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    logger.warning(f"Rejected input on {request.url.path}: {exc.message}")
    return _error(400, exc.message, exc.code)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc.message}")
    return _error(500, exc.message, exc.code)


@app.exception_handler(TransportError)
async def transport_error_handler(request: Request, exc: TransportError):
    logger.error(f"Transport error on {request.url.path}: {exc.message}")
    return _error(502, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return _error(422, f"Invalid request: {location} {first.get('msg', '')}".strip())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all: every unhandled exception returns a clean JSON envelope."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return _error(500, "An internal server error occurred.", str(exc))


# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Health Check ─────────────────────────────────────────────────────────────
@app.get("/", tags=["System"])
async def health_check():
    return {
        "status": "operational",
        "service": "PDF Quiz Generation Service",
        "version": app.version,
        "provider": settings.AI_PROVIDER,
    }


app.include_router(quiz_router, prefix="/api")
