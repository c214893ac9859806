"""
JSON recovery from free-form model replies.

The model is asked for bare JSON but routinely wraps it in prose or markdown
fences. Extraction takes the span from the first opening bracket to the last
closing bracket of the same kind and parses it. Nothing here raises: callers
get the parsed value or a ``PipelineFailure``.
"""

import json
import re
import logging
from typing import Any, List, Optional, Union

from pdfquiz.schemas.quiz import PipelineFailure

logger = logging.getLogger(__name__)

_ARRAY_SPAN = re.compile(r"\[.*\]", re.DOTALL)
_OBJECT_SPAN = re.compile(r"\{.*\}", re.DOTALL)


def _extract(raw_text: Optional[str], pattern: re.Pattern, kind: str) -> Union[Any, PipelineFailure]:
    if not raw_text or not raw_text.strip():
        return PipelineFailure(stage="extraction", message="Empty AI response received")

    match = pattern.search(raw_text)
    if not match:
        logger.error(f"[EXTRACT] No JSON {kind} found. Raw (first 500 chars): {raw_text[:500]}")
        return PipelineFailure(stage="extraction", message=f"No JSON {kind} found in response.")

    try:
        return json.loads(match.group(0))
    except (ValueError, RecursionError) as e:
        logger.error(f"[EXTRACT] JSON parse failed. Raw (first 500 chars): {raw_text[:500]}")
        return PipelineFailure(stage="extraction", message=f"AI returned invalid JSON: {e}")


def extract_json_array(raw_text: Optional[str]) -> Union[list, PipelineFailure]:
    """Parse the first-``[``-to-last-``]`` span of ``raw_text``."""
    return _extract(raw_text, _ARRAY_SPAN, "array")


def extract_json_object(raw_text: Optional[str]) -> Union[dict, PipelineFailure]:
    """Parse the first-``{``-to-last-``}`` span of ``raw_text``."""
    return _extract(raw_text, _OBJECT_SPAN, "object")


class PartialArrayDecoder:
    """
    Incrementally decode the elements of a JSON array from streamed text.

    ``feed`` returns the elements completed by the new chunk. Elements are
    only returned once fully closed, so callers never see a half-built
    question. Decoding stops for good at the end of the first array or at the
    first element that does not parse.
    """

    def __init__(self):
        self._buf = ""
        self._pos = 0
        self._started = False
        self._done = False
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._elem_start: Optional[int] = None
        self.items: List[Any] = []

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, chunk: str) -> List[Any]:
        self._buf += chunk
        completed: List[Any] = []

        while self._pos < len(self._buf) and not self._done:
            i = self._pos
            c = self._buf[i]
            self._pos += 1

            if not self._started:
                if c == "[":
                    self._started = True
                    self._depth = 1
                continue

            if self._in_string:
                if self._escape:
                    self._escape = False
                elif c == "\\":
                    self._escape = True
                elif c == '"':
                    self._in_string = False
                continue

            if c == '"':
                self._in_string = True
                self._mark_start(i)
            elif c in "[{":
                self._mark_start(i)
                self._depth += 1
            elif c in "]}":
                self._depth -= 1
                if self._depth == 1 and self._elem_start is not None:
                    self._emit(self._buf[self._elem_start:i + 1], completed)
                elif self._depth == 0:
                    if self._elem_start is not None:
                        self._emit(self._buf[self._elem_start:i], completed)
                    self._done = True
            elif self._depth == 1:
                if c == ",":
                    if self._elem_start is not None:
                        self._emit(self._buf[self._elem_start:i], completed)
                elif not c.isspace():
                    self._mark_start(i)

        return completed

    def _mark_start(self, i: int) -> None:
        if self._depth == 1 and self._elem_start is None:
            self._elem_start = i

    def _emit(self, fragment: str, completed: List[Any]) -> None:
        self._elem_start = None
        try:
            value = json.loads(fragment)
        except (ValueError, RecursionError):
            logger.debug(f"[EXTRACT] Stopping partial decode at unparsable element: {fragment[:200]}")
            self._done = True
            return
        self.items.append(value)
        completed.append(value)
