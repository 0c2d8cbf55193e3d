"""Shared constants and literal types for the LLM proxy."""

from typing import Literal

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_SECRETS_DIR = "/run/secrets"
AWS_REGION = "ap-northeast-1"
LANGSMITH_API_KEY_SECRET_NAME = "langsmith_api_key"
LANGSMITH_PROJECT = "editor-llm-proxy"

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_REQUESTS_PER_IP = 2
RATE_LIMIT_WINDOW_SECONDS = 60.0
PROBE_TIMEOUT_SECONDS = 5.0
HTTP_TIMEOUT_SECONDS = 120.0

ANTHROPIC_API_VERSION = "2023-06-01"
HTML_DOCUMENT_END_MARKER = "</html>"
UNKNOWN_CLIENT_KEY = "unknown"

PREFERRED_LOCAL_MODEL_PATTERN = "deepseek-r1"
PREFERRED_CLOUD_MODELS = ("deepseek-chat", "google-gemini-1.5-pro")

ProviderCategory = Literal["local", "cloud"]
Role = Literal["system", "user", "assistant"]
OrchestratorName = Literal["direct", "langgraph"]

KEY_STATUS_VENDORS = (
    "deepseek",
    "google",
    "openai",
    "anthropic",
    "groq",
    "together",
    "fireworks",
    "huggingface",
)

# Secret names are looked up in order; production reads them as file names,
# development upper-cases them into environment variable names.
VENDOR_SECRET_NAMES: dict[str, tuple[str, ...]] = {
    "deepseek": ("deepseek_api_key",),
    "google": ("gemini_api_key", "google_api_key"),
    "openai": ("openai_api_key",),
    "anthropic": ("anthropic_api_key",),
    "groq": ("groq_api_key",),
    "together": ("together_api_key",),
    "fireworks": ("fireworks_api_key",),
    "huggingface": ("hf_token",),
}
