from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from pdfquiz.schemas.quiz import EncodedDocument


class ChatMessage(BaseModel):
    """
    One provider-neutral chat turn.

    ``document`` marks the turn as carrying an attached file; each backend
    renders the attachment in whatever shape its API accepts.
    """
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str
    document: Optional[EncodedDocument] = None


class StreamSnapshot(BaseModel):
    """A decoding of the model reply received so far."""
    model_config = ConfigDict(frozen=True)

    items: List[Any] = []  # complete top-level array elements, in order
    text: str = ""
    final: bool = False
