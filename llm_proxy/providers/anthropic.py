"""Adapter for the Anthropic Messages API."""

from typing import Any

from llm_proxy.constants import ANTHROPIC_API_VERSION, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from llm_proxy.schemas import ChatRequest

from .base import (
    VendorHttpRequest,
    decode_line,
    dig,
    strip_sse_prefix,
    strip_vendor_prefix,
    text_at,
)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
CONTENT_BLOCK_DELTA = "content_block_delta"


class AnthropicAdapter:
    vendor = "anthropic"
    name = "Anthropic"

    def build_request(self, request: ChatRequest, api_key: str | None) -> VendorHttpRequest:
        body: dict[str, Any] = {
            "model": strip_vendor_prefix(request.model, self.vendor),
            "messages": [message.model_dump() for message in request.non_system_messages()],
            "stream": request.stream,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": (
                DEFAULT_TEMPERATURE if request.temperature is None else request.temperature
            ),
        }
        system = request.first_system_message()
        if system is not None:
            body["system"] = system

        return VendorHttpRequest(
            method="POST",
            url=ANTHROPIC_MESSAGES_URL,
            headers={
                "x-api-key": api_key or "",
                "Content-Type": "application/json",
                "anthropic-version": ANTHROPIC_API_VERSION,
            },
            json=body,
        )

    def is_stream_end(self, line: str) -> bool:
        return False

    def extract_stream_fragment(self, line: str) -> str | None:
        data = strip_sse_prefix(line)
        if not data:
            return None
        event = decode_line(data)
        if dig(event, "type") != CONTENT_BLOCK_DELTA:
            return None
        return text_at(event, "delta", "text") or None

    def extract_full_content(self, payload: Any) -> str:
        return text_at(payload, "content", 0, "text")
