"""Adapter for a local Ollama daemon."""

from typing import Any

from llm_proxy.schemas import ChatRequest

from .base import VendorHttpRequest, decode_line, text_at


class OllamaAdapter:
    vendor = "ollama"
    name = "Ollama"

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    @property
    def tags_url(self) -> str:
        return f"{self.base_url}/api/tags"

    def build_request(self, request: ChatRequest, api_key: str | None) -> VendorHttpRequest:
        options: dict[str, Any] = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens

        body: dict[str, Any] = {
            "model": request.model,
            "messages": request.wire_messages(),
            "stream": request.stream,
        }
        if options:
            body["options"] = options
        return VendorHttpRequest(
            method="POST",
            url=f"{self.base_url}/api/chat",
            headers={"Content-Type": "application/json"},
            json=body,
        )

    def is_stream_end(self, line: str) -> bool:
        return False

    def extract_stream_fragment(self, line: str) -> str | None:
        return text_at(decode_line(line.strip()), "message", "content") or None

    def extract_full_content(self, payload: Any) -> str:
        return text_at(payload, "message", "content")
