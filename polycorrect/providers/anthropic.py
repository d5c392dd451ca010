"""Anthropic Messages API adapter."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..errors import ApiResponseError
from .base import CorrectionRequest, Provider, ProviderAdapter

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096


class AnthropicAdapter(ProviderAdapter):
    provider = Provider.ANTHROPIC

    def endpoint(self, request: CorrectionRequest) -> str:
        return ANTHROPIC_API_URL

    def headers(self, request: CorrectionRequest) -> Dict[str, str]:
        headers = super().headers(request)
        headers["x-api-key"] = request.api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION
        return headers

    def build_payload(self, request: CorrectionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.user_message}],
            "max_tokens": DEFAULT_MAX_TOKENS,
            "system": request.system_prompt,
            "temperature": DEFAULT_TEMPERATURE,
        }
        if request.streaming:
            payload["stream"] = True
        return payload

    def extract_text(self, body: Any) -> str:
        blocks = body.get("content") if isinstance(body, dict) else None
        for block in blocks or []:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                return block["text"]
        raise ApiResponseError("No text content in response")

    def extract_delta(self, frame: Any) -> Optional[str]:
        # message_start, ping and content_block_start frames carry no text
        if frame.get("type") != "content_block_delta":
            return None
        delta = frame.get("delta") or {}
        text = delta.get("text")
        return text if isinstance(text, str) else None

    def is_stream_end(self, data: str, frame: Any) -> bool:
        return isinstance(frame, dict) and frame.get("type") == "message_stop"
