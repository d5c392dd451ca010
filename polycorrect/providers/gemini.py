"""Google Gemini (Generative Language REST API) adapter."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import ApiResponseError
from .base import CorrectionRequest, Provider, ProviderAdapter

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


def _candidate_parts(body: Any) -> List[Dict[str, Any]]:
    candidates = body.get("candidates") if isinstance(body, dict) else None
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return content.get("parts") or []


class GeminiAdapter(ProviderAdapter):
    provider = Provider.GEMINI

    def endpoint(self, request: CorrectionRequest) -> str:
        if request.streaming:
            return f"{GEMINI_API_BASE}/{request.model}:streamGenerateContent?alt=sse&key={request.api_key}"
        return f"{GEMINI_API_BASE}/{request.model}:generateContent?key={request.api_key}"

    def build_payload(self, request: CorrectionRequest) -> Dict[str, Any]:
        return {
            "contents": [
                {"role": "user", "parts": [{"text": request.user_message}]},
            ],
            "system_instruction": {"parts": [{"text": request.system_prompt}]},
            "generationConfig": {"thinkingConfig": {"thinkingBudget": 0}},
        }

    def extract_text(self, body: Any) -> str:
        parts = _candidate_parts(body)
        if not parts or not parts[0].get("text"):
            raise ApiResponseError("No text content in response")
        return parts[0]["text"]

    def extract_delta(self, frame: Any) -> Optional[str]:
        texts = [part["text"] for part in _candidate_parts(frame) if isinstance(part.get("text"), str)]
        return "".join(texts) or None
