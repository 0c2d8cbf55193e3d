"""Adapter for the Google Gemini generateContent API."""

from typing import Any

from llm_proxy.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from llm_proxy.schemas import ChatRequest

from .base import VendorHttpRequest, decode_line, strip_vendor_prefix, text_at

GEMINI_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GoogleAdapter:
    vendor = "google"
    name = "Google"

    def build_request(self, request: ChatRequest, api_key: str | None) -> VendorHttpRequest:
        contents = [
            {
                "role": "model" if message.role == "assistant" else "user",
                "parts": [{"text": message.content}],
            }
            for message in request.non_system_messages()
        ]
        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": request.max_tokens or DEFAULT_MAX_TOKENS,
                "temperature": (
                    DEFAULT_TEMPERATURE if request.temperature is None else request.temperature
                ),
            },
        }
        system_instruction = request.first_system_message()
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        model_name = strip_vendor_prefix(request.model, self.vendor)
        action = "streamGenerateContent" if request.stream else "generateContent"
        return VendorHttpRequest(
            method="POST",
            url=f"{GEMINI_MODELS_URL}/{model_name}:{action}",
            headers={"Content-Type": "application/json"},
            json=body,
            params={"key": api_key or ""},
        )

    def is_stream_end(self, line: str) -> bool:
        return False

    def extract_stream_fragment(self, line: str) -> str | None:
        payload = decode_line(line.strip())
        return text_at(payload, "candidates", 0, "content", "parts", 0, "text") or None

    def extract_full_content(self, payload: Any) -> str:
        return text_at(payload, "candidates", 0, "content", "parts", 0, "text")
