"""Static vendor catalog: endpoints, token ceilings and supported models."""

from dataclasses import dataclass
from typing import Literal

KeyAuthStyle = Literal["bearer", "x-api-key", "query"]


@dataclass(frozen=True)
class CatalogModel:
    vendor_model_id: str
    name: str
    is_thinker: bool = False
    is_new: bool = False


@dataclass(frozen=True)
class CloudVendor:
    id: str
    name: str
    base_url: str
    max_tokens: int
    models: tuple[CatalogModel, ...]

    def model_id(self, model: CatalogModel) -> str:
        return f"{self.id}-{model.vendor_model_id}"


@dataclass(frozen=True)
class KeyProbe:
    """How to check a vendor key against a lightweight endpoint."""

    vendor: str
    name: str
    url: str
    auth: KeyAuthStyle
    models_field: str | None = "data"
    minimal_completion: bool = False


CLOUD_CATALOG: dict[str, CloudVendor] = {
    "deepseek": CloudVendor(
        id="deepseek",
        name="DeepSeek API",
        base_url="https://api.deepseek.com",
        max_tokens=131_000,
        models=(
            CatalogModel("deepseek-chat", "DeepSeek Chat"),
            CatalogModel("deepseek-coder", "DeepSeek Coder"),
            CatalogModel("deepseek-reasoner", "DeepSeek Reasoner", is_thinker=True),
        ),
    ),
    "google": CloudVendor(
        id="google",
        name="Google Gemini",
        base_url="https://generativelanguage.googleapis.com",
        max_tokens=1_048_576,
        models=(
            CatalogModel("gemini-2.5-flash", "Gemini 2.5 Flash"),
            CatalogModel("gemini-2.0-flash-lite", "Gemini 2.0 Flash Lite", is_new=True),
            CatalogModel("gemini-2.0-flash", "Gemini 2.0 Flash", is_new=True),
        ),
    ),
    "openai": CloudVendor(
        id="openai",
        name="OpenAI",
        base_url="https://api.openai.com",
        max_tokens=128_000,
        models=(
            CatalogModel("gpt-4o", "GPT-4o"),
            CatalogModel("gpt-4o-mini", "GPT-4o Mini"),
            CatalogModel("gpt-4-turbo", "GPT-4 Turbo"),
        ),
    ),
    "anthropic": CloudVendor(
        id="anthropic",
        name="Anthropic Claude",
        base_url="https://api.anthropic.com",
        max_tokens=200_000,
        models=(
            CatalogModel("claude-opus-4-1-20250805", "Claude Opus 4.1"),
            CatalogModel("claude-sonnet-4-20250514", "Claude Sonnet 4"),
            CatalogModel("claude-3-opus-20240229", "Claude 3 Opus"),
        ),
    ),
    "groq": CloudVendor(
        id="groq",
        name="Groq",
        base_url="https://api.groq.com/openai",
        max_tokens=131_000,
        models=(
            CatalogModel("llama-3.3-70b-versatile", "Llama 3.3 70B"),
            CatalogModel("llama3-groq-70b-8192-tool-use-preview", "Llama 3 70B Tool Use"),
        ),
    ),
}

OLLAMA_PROVIDER_ID = "ollama"
OLLAMA_PROVIDER_NAME = "Ollama (Local)"
OLLAMA_MAX_TOKENS = 131_000

KEY_PROBES: dict[str, KeyProbe] = {
    "deepseek": KeyProbe("deepseek", "DeepSeek", "https://api.deepseek.com/v1/models", "bearer"),
    "google": KeyProbe(
        "google",
        "Google Gemini",
        "https://generativelanguage.googleapis.com/v1beta/models",
        "query",
        models_field="models",
    ),
    "openai": KeyProbe("openai", "OpenAI", "https://api.openai.com/v1/models", "bearer"),
    "anthropic": KeyProbe(
        "anthropic",
        "Anthropic",
        "https://api.anthropic.com/v1/messages",
        "x-api-key",
        models_field=None,
        minimal_completion=True,
    ),
    "groq": KeyProbe("groq", "Groq", "https://api.groq.com/openai/v1/models", "bearer"),
    "together": KeyProbe(
        "together",
        "Together AI",
        "https://api.together.xyz/models/info",
        "bearer",
        models_field=None,
    ),
    "fireworks": KeyProbe(
        "fireworks", "Fireworks AI", "https://api.fireworks.ai/inference/v1/models", "bearer"
    ),
}
ANTHROPIC_PROBE_MODEL = "claude-3-haiku-20240307"

# Vendors whose configured keys are checked by the validation endpoint.
VALIDATED_VENDORS = ("deepseek", "google", "openai", "anthropic", "groq")

CONNECTIVITY_TARGETS: tuple[tuple[str, str, str], ...] = (
    ("deepseek", "DeepSeek", "https://api.deepseek.com"),
    ("google", "Google Gemini", "https://generativelanguage.googleapis.com"),
    ("openai", "OpenAI", "https://api.openai.com"),
    ("anthropic", "Anthropic", "https://api.anthropic.com"),
    ("groq", "Groq", "https://api.groq.com"),
    ("together", "Together AI", "https://api.together.xyz"),
    ("fireworks", "Fireworks AI", "https://api.fireworks.ai"),
)
