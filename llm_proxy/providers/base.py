"""Vendor adapter interface and shared wire helpers."""

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from llm_proxy.errors import MalformedStreamLineError
from llm_proxy.schemas import ChatRequest

SSE_DATA_PREFIX = "data: "


@dataclass(frozen=True)
class VendorHttpRequest:
    method: str
    url: str
    json: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    # Query parameters may carry credentials and are never logged or traced.
    params: dict[str, str] = field(default_factory=dict)


class VendorAdapter(Protocol):
    vendor: str
    name: str

    def build_request(self, request: ChatRequest, api_key: str | None) -> VendorHttpRequest:
        """Translate the canonical request into this vendor's HTTP request."""
        ...

    def extract_stream_fragment(self, line: str) -> str | None:
        """Return the text carried by one stream line, or None when it carries none.

        Raises MalformedStreamLineError when the line cannot be decoded.
        """
        ...

    def extract_full_content(self, payload: Any) -> str:
        """Return the text of a complete non-streaming response body."""
        ...

    def is_stream_end(self, line: str) -> bool:
        """Return True for an in-band end-of-stream marker."""
        ...


def dig(payload: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict) or step not in current:
            return None
        current = current[step]
    return current


def text_at(payload: Any, *path: str | int) -> str:
    value = dig(payload, *path)
    return value if isinstance(value, str) else ""


def strip_sse_prefix(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for any other line."""
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX) :].strip()


def decode_line(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedStreamLineError(raw) from e


def strip_vendor_prefix(model: str, vendor: str) -> str:
    return model.removeprefix(f"{vendor}-")
