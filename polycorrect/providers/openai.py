"""OpenAI chat-completions adapter."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..errors import ApiResponseError
from .base import CorrectionRequest, Provider, ProviderAdapter

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048

REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def is_reasoning_model(model: str) -> bool:
    """Reasoning models reject temperature and take reasoning_effort instead."""
    return model.lower().startswith(REASONING_MODEL_PREFIXES)


def chat_messages(request: CorrectionRequest) -> list[Dict[str, str]]:
    return [
        {"role": "system", "content": request.system_prompt},
        {"role": "user", "content": request.user_message},
    ]


def first_choice_content(body: Any) -> str:
    """Content of the first choice of an OpenAI-shaped completion."""
    choices = body.get("choices") if isinstance(body, dict) else None
    if not choices:
        raise ApiResponseError("No choices in response")
    message = choices[0].get("message") or {}
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ApiResponseError("No content in response")
    return content


def first_choice_delta(frame: Any) -> Optional[str]:
    """Delta text of the first choice of an OpenAI-shaped stream frame."""
    choices = frame.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content")
    return content if isinstance(content, str) else None


class OpenAIAdapter(ProviderAdapter):
    provider = Provider.OPENAI

    def endpoint(self, request: CorrectionRequest) -> str:
        return OPENAI_API_URL

    def headers(self, request: CorrectionRequest) -> Dict[str, str]:
        headers = super().headers(request)
        headers["Authorization"] = f"Bearer {request.api_key}"
        return headers

    def build_payload(self, request: CorrectionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": chat_messages(request),
            "stream": request.streaming,
        }
        if is_reasoning_model(request.model):
            payload["max_completion_tokens"] = DEFAULT_MAX_TOKENS
            if request.reasoning_effort:
                payload["reasoning_effort"] = request.reasoning_effort
            if request.verbosity and request.model.lower().startswith("gpt-5"):
                payload["verbosity"] = request.verbosity
        else:
            payload["temperature"] = DEFAULT_TEMPERATURE
            payload["max_tokens"] = DEFAULT_MAX_TOKENS
        return payload

    def extract_text(self, body: Any) -> str:
        return first_choice_content(body)

    def extract_delta(self, frame: Any) -> Optional[str]:
        return first_choice_delta(frame)
