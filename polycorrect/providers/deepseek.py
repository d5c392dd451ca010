"""DeepSeek adapter (OpenAI-compatible chat completions)."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..errors import DEEPSEEK_TIMEOUT
from .base import CorrectionRequest, Provider, ProviderAdapter
from .openai import chat_messages, first_choice_content, first_choice_delta

DEEPSEEK_API_URL = "https://api.deepseek.com/chat/completions"

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096


class DeepSeekAdapter(ProviderAdapter):
    provider = Provider.DEEPSEEK
    request_timeout = DEEPSEEK_TIMEOUT

    def endpoint(self, request: CorrectionRequest) -> str:
        return DEEPSEEK_API_URL

    def headers(self, request: CorrectionRequest) -> Dict[str, str]:
        headers = super().headers(request)
        headers["Authorization"] = f"Bearer {request.api_key}"
        return headers

    def build_payload(self, request: CorrectionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": chat_messages(request),
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": DEFAULT_MAX_TOKENS,
        }
        if request.streaming:
            payload["stream"] = True
        return payload

    def extract_text(self, body: Any) -> str:
        return first_choice_content(body)

    def extract_delta(self, frame: Any) -> Optional[str]:
        return first_choice_delta(frame)
