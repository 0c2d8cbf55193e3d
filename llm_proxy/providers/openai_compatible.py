"""Adapter for vendors speaking the OpenAI chat completions protocol."""

from typing import Any

from llm_proxy.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from llm_proxy.schemas import ChatRequest

from .base import VendorHttpRequest, decode_line, strip_sse_prefix, strip_vendor_prefix, text_at

DONE_MARKER = "[DONE]"


class OpenAICompatibleAdapter:
    """Shared by OpenAI, Groq and DeepSeek; only the endpoint differs."""

    def __init__(self, vendor: str, name: str, chat_url: str) -> None:
        self.vendor = vendor
        self.name = name
        self._chat_url = chat_url

    def build_request(self, request: ChatRequest, api_key: str | None) -> VendorHttpRequest:
        return VendorHttpRequest(
            method="POST",
            url=self._chat_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": strip_vendor_prefix(request.model, self.vendor),
                "messages": request.wire_messages(),
                "stream": request.stream,
                "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
                "temperature": (
                    DEFAULT_TEMPERATURE if request.temperature is None else request.temperature
                ),
            },
        )

    def is_stream_end(self, line: str) -> bool:
        return strip_sse_prefix(line) == DONE_MARKER

    def extract_stream_fragment(self, line: str) -> str | None:
        data = strip_sse_prefix(line)
        if not data or data == DONE_MARKER:
            return None
        return text_at(decode_line(data), "choices", 0, "delta", "content") or None

    def extract_full_content(self, payload: Any) -> str:
        return text_at(payload, "choices", 0, "message", "content")
