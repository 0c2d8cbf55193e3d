"""Closed set of cloud vendor adapters keyed by vendor tag."""

from collections.abc import Mapping

from .anthropic import AnthropicAdapter
from .base import VendorAdapter
from .google import GoogleAdapter
from .openai_compatible import OpenAICompatibleAdapter

CLOUD_ADAPTERS: Mapping[str, VendorAdapter] = {
    "deepseek": OpenAICompatibleAdapter(
        "deepseek", "DeepSeek", "https://api.deepseek.com/v1/chat/completions"
    ),
    "google": GoogleAdapter(),
    "openai": OpenAICompatibleAdapter(
        "openai", "OpenAI", "https://api.openai.com/v1/chat/completions"
    ),
    "anthropic": AnthropicAdapter(),
    "groq": OpenAICompatibleAdapter(
        "groq", "Groq", "https://api.groq.com/openai/v1/chat/completions"
    ),
}
