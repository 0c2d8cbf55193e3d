"""Static checks of the deployment environment, reported without touching the network."""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlparse

from .config import env_flag
from .constants import DEFAULT_OLLAMA_BASE_URL
from .infra.secrets import SecretResolver

PLACEHOLDER_MARKERS = ("your_", "xxx")
MIN_KEY_LENGTH = 10

KEY_FORMAT_PATTERNS: dict[str, re.Pattern[str]] = {
    "DEEPSEEK_API_KEY": re.compile(r"^sk-[a-zA-Z0-9]{32,}$"),
    "OPENAI_API_KEY": re.compile(r"^sk-[a-zA-Z0-9]{32,}$"),
    "ANTHROPIC_API_KEY": re.compile(r"^sk-ant-[a-zA-Z0-9]{32,}$"),
    "GOOGLE_API_KEY": re.compile(r"^AIza[a-zA-Z0-9_-]{35,}$"),
    "GROQ_API_KEY": re.compile(r"^gsk_[a-zA-Z0-9]{32,}$"),
}


@dataclass(frozen=True)
class ProviderRequirement:
    name: str
    type: Literal["local", "cloud"]
    required: tuple[str, ...]


PROVIDER_REQUIREMENTS: dict[str, ProviderRequirement] = {
    "ollama": ProviderRequirement("Ollama", "local", ("OLLAMA_BASE_URL",)),
    "deepseek": ProviderRequirement("DeepSeek", "cloud", ("DEEPSEEK_API_KEY",)),
    "google": ProviderRequirement("Google Gemini", "cloud", ("GOOGLE_API_KEY",)),
    "openai": ProviderRequirement("OpenAI", "cloud", ("OPENAI_API_KEY",)),
    "anthropic": ProviderRequirement("Anthropic Claude", "cloud", ("ANTHROPIC_API_KEY",)),
    "groq": ProviderRequirement("Groq", "cloud", ("GROQ_API_KEY",)),
    "together": ProviderRequirement("Together AI", "cloud", ("TOGETHER_API_KEY",)),
    "fireworks": ProviderRequirement("Fireworks AI", "cloud", ("FIREWORKS_API_KEY",)),
}


@dataclass
class ConfigStatus:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def _is_set(env: Mapping[str, str], name: str) -> bool:
    return bool(env.get(name, "").strip())


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def _resolved_env(
    environ: Mapping[str, str] | None, resolver: SecretResolver | None
) -> dict[str, str]:
    """Environment view with cloud keys filled in from the secret resolver when one is given."""
    resolved = dict(os.environ if environ is None else environ)
    if not _is_set(resolved, "GOOGLE_API_KEY") and _is_set(resolved, "GEMINI_API_KEY"):
        resolved["GOOGLE_API_KEY"] = resolved["GEMINI_API_KEY"]
    if resolver is None:
        return resolved
    for provider_id, requirement in PROVIDER_REQUIREMENTS.items():
        if requirement.type != "cloud":
            continue
        value = resolver.get_vendor_key(provider_id)
        if value is not None:
            resolved[requirement.required[0]] = value
    return resolved


def _is_configured(env: Mapping[str, str], requirement: ProviderRequirement) -> bool:
    return all(_is_set(env, key) for key in requirement.required)


def _has_cloud_provider(env: Mapping[str, str], provider_id: str | None = None) -> bool:
    return any(
        requirement.type == "cloud" and _is_configured(env, requirement)
        for pid, requirement in PROVIDER_REQUIREMENTS.items()
        if provider_id is None or pid == provider_id
    )


def validate_configuration(
    environ: Mapping[str, str] | None = None, resolver: SecretResolver | None = None
) -> ConfigStatus:
    env = _resolved_env(environ, resolver)
    status = ConfigStatus()
    local_mode = env_flag(env, "LOCAL_MODE")
    mixed_mode = env_flag(env, "ENABLE_MIXED_MODE")
    has_cloud = _has_cloud_provider(env)

    if local_mode and mixed_mode:
        status.warnings.append(
            "LOCAL_MODE=true with ENABLE_MIXED_MODE=true - cloud providers stay available"
        )
    if not local_mode and not has_cloud:
        status.errors.append(
            "No local or cloud providers configured. Set LOCAL_MODE=true or add cloud API keys"
        )

    if local_mode or _is_set(env, "OLLAMA_BASE_URL"):
        ollama_url = env.get("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL
        if not _is_valid_url(ollama_url):
            status.errors.append(f"Invalid Ollama URL: {ollama_url}")
        if not local_mode:
            status.recommendations.append(
                "Consider setting LOCAL_MODE=true if you primarily use Ollama"
            )

    for requirement in PROVIDER_REQUIREMENTS.values():
        if requirement.type != "cloud" or not _is_configured(env, requirement):
            continue
        for key_name in requirement.required:
            value = env[key_name].strip()
            pattern = KEY_FORMAT_PATTERNS.get(key_name)
            if pattern is not None and not pattern.match(value):
                status.warnings.append(
                    f"{key_name} format may be incorrect for {requirement.name}"
                )
            if any(marker in value for marker in PLACEHOLDER_MARKERS):
                status.errors.append(f"{key_name} appears to be a placeholder value")
            if len(value) < MIN_KEY_LENGTH:
                status.warnings.append(f"{key_name} seems too short for {requirement.name}")

    if not local_mode and not has_cloud:
        status.recommendations.append(
            "Start with LOCAL_MODE=true and Ollama for privacy, then add cloud APIs for performance"
        )
    if has_cloud and not _has_cloud_provider(env, "deepseek"):
        status.recommendations.append(
            "Consider adding a DeepSeek API key - it offers excellent value for money"
        )
    if has_cloud and not _has_cloud_provider(env, "google"):
        status.recommendations.append(
            "Consider adding a Google API key - Gemini offers generous free quotas"
        )
    if local_mode and not _is_set(env, "OLLAMA_BASE_URL"):
        status.recommendations.append(
            "Set OLLAMA_BASE_URL if Ollama runs on a different port or host"
        )

    status.is_valid = not status.errors
    return status


def provider_status(
    environ: Mapping[str, str] | None = None, resolver: SecretResolver | None = None
) -> dict[str, dict[str, object]]:
    """Report, per known provider, whether it is configured and free of obvious issues."""
    env = _resolved_env(environ, resolver)
    report: dict[str, dict[str, object]] = {}
    for provider_id, requirement in PROVIDER_REQUIREMENTS.items():
        configured = _is_configured(env, requirement)
        issues: list[str] = []
        if configured:
            for key_name in requirement.required:
                if any(marker in env[key_name] for marker in PLACEHOLDER_MARKERS):
                    issues.append("Appears to be placeholder value")
        report[provider_id] = {
            "configured": configured,
            "valid": configured and not issues,
            "issues": issues,
        }
    return report
