"""Provider identities, the correction request and the shared adapter logic."""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..errors import ApiResponseError, DEFAULT_TIMEOUT
from ..logger import get_logger
from ..prompts import build_user_message
from .transport import HttpTransport

logger = get_logger(__name__)

SSE_DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

ChunkCallback = Callable[[str], None]


@dataclass(frozen=True)
class ApiColor:
    r: int
    g: int
    b: int

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)


class Provider(Enum):
    """The four providers, in slot order."""

    OPENAI = (0, "OpenAI", ApiColor(16, 163, 127))
    ANTHROPIC = (1, "Anthropic", ApiColor(217, 119, 6))
    GEMINI = (2, "Gemini", ApiColor(66, 133, 244))
    DEEPSEEK = (3, "DeepSeek", ApiColor(124, 58, 237))

    def __init__(self, index: int, display_name: str, color: ApiColor):
        self.index = index
        self.display_name = display_name
        self.color = color

    @classmethod
    def from_index(cls, index: int) -> "Provider":
        for provider in cls:
            if provider.index == index:
                return provider
        raise ValueError(f"No provider in slot {index}")

    @classmethod
    def from_name(cls, name: str) -> "Provider":
        key = name.strip().lower()
        for provider in cls:
            if provider.display_name.lower() == key or provider.name.lower() == key:
                return provider
        raise ValueError(f"Unknown provider: {name}")

    def __str__(self) -> str:
        return self.display_name


@dataclass(frozen=True)
class CorrectionRequest:
    """Everything one provider needs for a single correction call."""

    text: str
    instruction_prompt: str
    system_prompt: str
    model: str
    api_key: str
    streaming: bool = True
    reasoning_effort: Optional[str] = None
    verbosity: Optional[str] = None

    @property
    def user_message(self) -> str:
        return build_user_message(self.instruction_prompt, self.text)


class ProviderAdapter(ABC):
    """
    Translates a CorrectionRequest into one provider's wire protocol.

    Subclasses describe the endpoint, headers and payload, and how to pull text
    out of a batch envelope or a single streaming frame. Validation, transport
    error classification and the SSE accumulation loop live here so all four
    providers behave the same way.
    """

    provider: Provider
    request_timeout: float = DEFAULT_TIMEOUT

    def __init__(self, transport: HttpTransport):
        self._transport = transport

    @property
    def name(self) -> str:
        return self.provider.display_name

    # ── Provider specifics ────────────────────────────────────

    @abstractmethod
    def endpoint(self, request: CorrectionRequest) -> str:
        """URL for this request (may depend on model and streaming mode)."""

    def headers(self, request: CorrectionRequest) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def build_payload(self, request: CorrectionRequest) -> Dict[str, Any]:
        """JSON body sent to the provider."""

    @abstractmethod
    def extract_text(self, body: Any) -> str:
        """Return the text of a batch response or raise ApiResponseError."""

    @abstractmethod
    def extract_delta(self, frame: Any) -> Optional[str]:
        """Return the text fragment of one decoded streaming frame, if any."""

    def is_stream_end(self, data: str, frame: Any) -> bool:
        """True when a frame marks the end of the stream."""
        return False

    # ── Shared flow ───────────────────────────────────────────

    @staticmethod
    def validate(request: CorrectionRequest) -> None:
        if not request.api_key:
            raise ApiResponseError("API key is empty")
        if not request.model:
            raise ApiResponseError("Model is empty")
        if not request.text:
            raise ApiResponseError("Text to correct is empty")

    async def correct(self, request: CorrectionRequest, on_event: Optional[ChunkCallback] = None) -> str:
        """
        Run one correction and return the trimmed final text.

        Args:
            request: The immutable request for this provider.
            on_event: Receives every streamed text fragment, in arrival order,
                before it is accumulated. Never called in batch mode.

        Raises:
            ApiError: Connection, Timeout or Response failure.
        """
        self.validate(request)

        url = self.endpoint(request)
        payload = self.build_payload(request)
        headers = self.headers(request)

        if request.streaming:
            return await self._stream(url, payload, headers, on_event)
        return await self._batch(url, payload, headers)

    async def _batch(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> str:
        body = await self._transport.post_json(
            url,
            payload,
            headers=headers,
            timeout=self.request_timeout,
        )
        try:
            text = self.extract_text(body)
        except (KeyError, IndexError, TypeError, AttributeError) as error:
            raise ApiResponseError(f"Failed to parse response: {error!r}") from error
        text = text.strip() if isinstance(text, str) else ""
        if not text:
            raise ApiResponseError("Empty content in response")
        return text

    async def _stream(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        on_event: Optional[ChunkCallback],
    ) -> str:
        collected: list[str] = []

        async with self._transport.stream_lines(url, payload, headers=headers) as lines:
            async for line in lines:
                data = parse_sse_data(line)
                if data is None:
                    continue
                if data == DONE_SENTINEL:
                    break

                try:
                    frame = json.loads(data)
                except ValueError:
                    logger.debug(f"{self.name}: skipping non-JSON frame")
                    continue

                if self.is_stream_end(data, frame):
                    break

                try:
                    fragment = self.extract_delta(frame)
                except (KeyError, IndexError, TypeError, AttributeError):
                    continue

                if not fragment:
                    continue

                if on_event is not None:
                    on_event(fragment)
                collected.append(fragment)

        accumulated = "".join(collected).strip()
        if not accumulated:
            raise ApiResponseError("No content in streaming response")
        return accumulated


def parse_sse_data(line: str) -> Optional[str]:
    """Return the payload of an SSE ``data:`` line, or None for other lines."""
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX):].strip()
