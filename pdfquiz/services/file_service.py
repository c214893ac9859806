import base64
import binascii
import logging
import asyncio

import fitz  # PyMuPDF, used only for page-count metadata

from pdfquiz.core.errors import InvalidInputError
from pdfquiz.schemas.quiz import EncodedDocument

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 5 * 1024 * 1024
ACCEPTED_MEDIA_TYPES = frozenset({"application/pdf"})
PDF_MAGIC = b"%PDF"


def encode_document(
    name: str,
    media_type: str,
    content: bytes,
    max_bytes: int = MAX_DOCUMENT_BYTES,
) -> EncodedDocument:
    """
    Validate an uploaded file and wrap it as an ``EncodedDocument``.

    Checks, in order:
    1. Media type must be accepted (PDF only)
    2. File must not be empty
    3. File must not exceed the size ceiling
    4. Magic bytes must start with %PDF
    """
    media_type = (media_type or "").split(";", 1)[0].strip().lower()
    if media_type not in ACCEPTED_MEDIA_TYPES:
        raise InvalidInputError(
            f"Only PDF files are accepted. Got: '{media_type or 'unknown'}'"
        )

    if len(content) == 0:
        raise InvalidInputError("Uploaded file is empty.")

    if len(content) > max_bytes:
        raise InvalidInputError(
            f"File too large ({len(content) / (1024*1024):.1f} MB). "
            f"Maximum is {max_bytes / (1024*1024):.0f} MB."
        )

    if not content.startswith(PDF_MAGIC):
        raise InvalidInputError(
            "File does not appear to be a valid PDF (invalid magic bytes)."
        )

    return EncodedDocument(
        name=name or "document.pdf",
        media_type=media_type,
        payload=base64.b64encode(content).decode("ascii"),
    )


def decode_data_url(data: str) -> bytes:
    """Decode a browser ``data:<type>;base64,<payload>`` URL (or bare base64)."""
    payload = data.split(",", 1)[1] if data.startswith("data:") else data
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"File data is not valid base64: {e}")


def encode_data_url(
    name: str,
    media_type: str,
    data: str,
    max_bytes: int = MAX_DOCUMENT_BYTES,
) -> EncodedDocument:
    return encode_document(name, media_type, decode_data_url(data), max_bytes)


async def count_pages(content: bytes) -> int:
    """Return page count using PyMuPDF (no text extraction). 0 if unreadable."""
    def _count(data: bytes) -> int:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                return doc.page_count
        except Exception as e:
            logger.warning(f"[FILE] Could not count pages: {e}")
            return 0

    return await asyncio.to_thread(_count, content)
