"""
HTTP request/response contract.

Field names follow the browser client (camelCase); every failure payload
carries an ``error`` string so clients can branch on shape alone.
"""

import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pdfquiz.schemas.quiz import Question


def clamp_question_count(value: Any, default: int = 4, maximum: int = 20) -> int:
    """Non-numeric, NaN or non-positive → ``default``; otherwise clamped to [1, maximum]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value) or value <= 0:
        return default
    # Clamp before int() so infinity never reaches the conversion.
    return int(max(1, min(value, maximum)))


# ── Requests ─────────────────────────────────────────────────────────────────

class FilePayload(BaseModel):
    """A file as the browser sends it: ``data`` is a base64 data URL."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    media_type: str = Field(..., alias="type")
    data: str


class QuizGenerationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: List[FilePayload]
    question_count: Any = Field(default=None, alias="questionCount")
    difficulty: Optional[str] = None


class TitleBody(BaseModel):
    filename: str


# ── Responses ────────────────────────────────────────────────────────────────

class TitleResponse(BaseModel):
    title: str


class ProcessingMeta(BaseModel):
    """Metadata about the processing run."""
    processing_time: str = Field(..., description="e.g. '12.4s'")
    file_name: str
    total_pages: int
    title: str


class QuizEnvelope(BaseModel):
    """Success envelope for the multipart upload endpoint."""
    status: str = "success"
    meta: ProcessingMeta
    data: List[Question]


class ErrorResponse(BaseModel):
    """Every failure, whatever the status code."""
    error: str
    detail: Optional[str] = None
