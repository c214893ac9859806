import logging

from pdfquiz.services.completion import CompletionClient
from pdfquiz.services.prompts import build_title_messages

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Quiz"
MAX_TITLE_WORDS = 3


class TitleGenerator:
    """Ask the model for a short quiz label based on the file name."""

    def __init__(self, client: CompletionClient, max_tokens: int = 10):
        self._client = client
        self._max_tokens = max_tokens

    async def generate(self, filename: str) -> str:
        raw = await self._client.complete_text(
            build_title_messages(filename), max_tokens=self._max_tokens
        )
        title = " ".join(raw.strip().strip("\"'").split()[:MAX_TITLE_WORDS])
        if not title:
            logger.info(f"[TITLE] Empty reply for {filename}, using default")
            return DEFAULT_TITLE
        logger.info(f"[TITLE] ✓ {filename} → {title}")
        return title
