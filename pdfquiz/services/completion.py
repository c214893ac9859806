"""
Completion capability
=====================
One interface, several providers:
  - Azure OpenAI deployment (default, true token streaming)
  - Groq (OpenAI-compatible, true token streaming)
  - Gemini (native PDF input, streaming degrades to a single final snapshot)

Credentials are checked when a client is built, so a misconfigured service
fails before any network call. Provider errors are re-raised as
``TransportError`` and never retried here.
"""

import base64
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Sequence, Type

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
import groq
from groq import AsyncGroq
import openai
from openai import AsyncAzureOpenAI
from pydantic import BaseModel, ValidationError

from pdfquiz.core.config import Settings
from pdfquiz.core.errors import ConfigurationError, TransportError
from pdfquiz.schemas.chat import ChatMessage, StreamSnapshot
from pdfquiz.services.extraction import PartialArrayDecoder

logger = logging.getLogger(__name__)


def _append_typed(items: List[Any], values: List[Any], item_model: Type[BaseModel]) -> bool:
    """Append ``values`` validated as ``item_model``; False once one is rejected."""
    for value in values:
        try:
            items.append(item_model.model_validate(value))
        except ValidationError:
            return False
    return True


class CompletionClient(ABC):
    """Send chat messages to a model and get its reply back."""

    name = "completion"

    def __init__(self, temperature: float = 0.7, json_mode: bool = False):
        self.temperature = temperature
        self.json_mode = json_mode

    @abstractmethod
    async def complete_text(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        expect_json: bool = False,
    ) -> str:
        """Return the full reply text. Raises ``TransportError``."""

    async def complete_streaming(
        self,
        messages: Sequence[ChatMessage],
        item_model: Type[BaseModel],
        *,
        max_tokens: int,
    ) -> AsyncIterator[StreamSnapshot]:
        """
        Yield snapshots whose ``items`` grow as array elements of type
        ``item_model`` complete. The last snapshot has ``final=True`` and the
        full reply text.

        Providers without token streaming yield only that final snapshot.
        """
        text = await self.complete_text(messages, max_tokens=max_tokens, expect_json=True)
        items: List[Any] = []
        _append_typed(items, PartialArrayDecoder().feed(text), item_model)
        yield StreamSnapshot(items=items, text=text, final=True)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# OPENAI-COMPATIBLE PROVIDERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class OpenAICompatibleClient(CompletionClient):
    """Shared chat.completions logic for the OpenAI and Groq SDKs."""

    _transport_errors: tuple = ()

    def __init__(self, client: Any, model: str, **kwargs):
        super().__init__(**kwargs)
        self._client = client
        self._model = model

    @staticmethod
    def _render(messages: Sequence[ChatMessage]) -> List[Dict[str, str]]:
        rendered = []
        for m in messages:
            content = m.content
            if m.document is not None:
                content = f"{content} {m.document.payload}"
            rendered.append({"role": m.role, "content": content})
        return rendered

    def _request_kwargs(self, messages: Sequence[ChatMessage], max_tokens: int, expect_json: bool) -> dict:
        kwargs = {
            "model": self._model,
            "messages": self._render(messages),
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        if self.json_mode and expect_json:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def complete_text(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        expect_json: bool = False,
    ) -> str:
        logger.info(f"[COMPLETION] Calling {self.name} ({self._model})...")
        try:
            completion = await self._client.chat.completions.create(
                **self._request_kwargs(messages, max_tokens, expect_json)
            )
        except self._transport_errors as e:
            logger.error(f"[COMPLETION] {self.name} failed: {str(e)[:200]}")
            raise TransportError(f"{self.name} request failed: {e}") from e

        result = completion.choices[0].message.content if completion.choices else None
        logger.info(f"[COMPLETION] ✓ {self.name} call succeeded")
        return result or ""

    async def complete_streaming(
        self,
        messages: Sequence[ChatMessage],
        item_model: Type[BaseModel],
        *,
        max_tokens: int,
    ) -> AsyncIterator[StreamSnapshot]:
        logger.info(f"[COMPLETION] Streaming from {self.name} ({self._model})...")
        try:
            stream = await self._client.chat.completions.create(
                **self._request_kwargs(messages, max_tokens, expect_json=True),
                stream=True,
            )
        except self._transport_errors as e:
            logger.error(f"[COMPLETION] {self.name} failed: {str(e)[:200]}")
            raise TransportError(f"{self.name} request failed: {e}") from e

        decoder = PartialArrayDecoder()
        items: List[Any] = []
        accepting = True
        text = ""
        try:
            async for chunk in stream:
                # content-filter chunks arrive without choices
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if not delta:
                    continue
                text += delta
                if not accepting:
                    continue
                before = len(items)
                accepting = _append_typed(items, decoder.feed(delta), item_model)
                if len(items) > before:
                    yield StreamSnapshot(items=list(items), text=text)
        except self._transport_errors as e:
            logger.error(f"[COMPLETION] {self.name} stream broke: {str(e)[:200]}")
            raise TransportError(f"{self.name} stream failed: {e}") from e
        finally:
            await stream.close()

        logger.info(f"[COMPLETION] ✓ {self.name} stream finished ({len(items)} items)")
        yield StreamSnapshot(items=items, text=text, final=True)


class AzureOpenAICompletionClient(OpenAICompatibleClient):
    name = "Azure OpenAI"
    _transport_errors = (openai.APIError,)

    def __init__(
        self,
        api_key: str | None,
        endpoint: str | None,
        deployment_id: str | None,
        api_version: str = "2025-01-01-preview",
        **kwargs,
    ):
        missing = [
            env
            for env, value in (
                ("AZURE_OPENAI_API_KEY", api_key),
                ("AZURE_OPENAI_ENDPOINT", endpoint),
                ("AZURE_OPENAI_DEPLOYMENT_ID", deployment_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing Azure OpenAI settings: {', '.join(missing)}")

        client = AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            azure_deployment=deployment_id,
            api_version=api_version,
        )
        super().__init__(client, deployment_id, **kwargs)


class GroqCompletionClient(OpenAICompatibleClient):
    name = "Groq"
    _transport_errors = (groq.APIError,)

    def __init__(self, api_key: str | None, model: str, **kwargs):
        if not api_key:
            raise ConfigurationError("Missing Groq settings: GROQ_API_KEY")
        super().__init__(AsyncGroq(api_key=api_key), model, **kwargs)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# GEMINI
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class GeminiCompletionClient(CompletionClient):
    """Gemini reads the PDF natively, so the attachment is sent as raw bytes."""

    name = "Gemini"

    def __init__(self, api_key: str | None, model: str, **kwargs):
        if not api_key:
            raise ConfigurationError("Missing Gemini settings: GOOGLE_API_KEY")
        super().__init__(**kwargs)
        genai.configure(api_key=api_key, transport="rest")
        self._model = model

    @staticmethod
    def _render(messages: Sequence[ChatMessage]) -> tuple[str, list]:
        system = "\n".join(m.content for m in messages if m.role == "system")
        parts: list = []
        for m in messages:
            if m.role == "system":
                continue
            parts.append(m.content)
            if m.document is not None:
                parts.append({
                    "mime_type": m.document.media_type,
                    "data": base64.b64decode(m.document.payload),
                })
        return system, parts

    async def complete_text(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        expect_json: bool = False,
    ) -> str:
        logger.info(f"[COMPLETION] Calling Gemini ({self._model})...")
        config: Dict[str, Any] = {"temperature": self.temperature, "max_output_tokens": max_tokens}
        if self.json_mode and expect_json:
            config["response_mime_type"] = "application/json"

        system, parts = self._render(messages)
        model = genai.GenerativeModel(
            model_name=self._model,
            system_instruction=system or None,
            generation_config=config,
        )
        try:
            response = await asyncio.to_thread(model.generate_content, parts)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"[COMPLETION] Gemini failed: {str(e)[:200]}")
            raise TransportError(f"Gemini request failed: {e}") from e

        try:
            result = response.text
        except ValueError as e:
            # raised when the candidate was blocked and carries no text parts
            logger.warning(f"[COMPLETION] Gemini returned no text: {e}")
            result = ""
        logger.info("[COMPLETION] ✓ Gemini call succeeded")
        return result


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# FACTORY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_completion_client(config: Settings) -> CompletionClient:
    """Build the client selected by ``AI_PROVIDER``. Raises ``ConfigurationError``."""
    common = {"temperature": config.AI_TEMPERATURE, "json_mode": config.AI_JSON_MODE}
    logger.info(f"[INIT] AI_PROVIDER set to: {config.AI_PROVIDER}")

    if config.AI_PROVIDER == "groq":
        return GroqCompletionClient(config.GROQ_API_KEY, config.GROQ_MODEL, **common)
    if config.AI_PROVIDER == "gemini":
        return GeminiCompletionClient(config.GOOGLE_API_KEY, config.GEMINI_MODEL, **common)
    return AzureOpenAICompletionClient(
        config.AZURE_OPENAI_API_KEY,
        config.AZURE_OPENAI_ENDPOINT,
        config.AZURE_OPENAI_DEPLOYMENT_ID,
        config.AZURE_OPENAI_API_VERSION,
        **common,
    )
