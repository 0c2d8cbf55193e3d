"""Deployment settings read from the process environment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .constants import (
    AWS_REGION,
    DEFAULT_MAX_REQUESTS_PER_IP,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_SECRETS_DIR,
    OrchestratorName,
)


def env_flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    local_mode: bool = False
    mixed_mode: bool = False
    production: bool = False
    environment: str = "production"
    ollama_base_url: str = DEFAULT_OLLAMA_BASE_URL
    max_requests_per_ip: int = DEFAULT_MAX_REQUESTS_PER_IP
    secrets_dir: str = DEFAULT_SECRETS_DIR
    ssm_parameter_prefix: str | None = None
    aws_region: str = AWS_REGION
    orchestrator: OrchestratorName = "direct"
    log_level: str = "INFO"

    @property
    def strict_local(self) -> bool:
        """Local-only deployments never register cloud providers."""
        return self.local_mode and not self.mixed_mode

    @property
    def rate_limit_enabled(self) -> bool:
        return not (self.local_mode or self.environment == "development")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    raw_limit = env.get("MAX_REQUESTS_PER_IP", "").strip()
    try:
        max_requests = int(raw_limit) if raw_limit else DEFAULT_MAX_REQUESTS_PER_IP
    except ValueError as e:
        raise ValueError(f"MAX_REQUESTS_PER_IP must be an integer, got {raw_limit!r}") from e

    orchestrator = env.get("CHAT_ORCHESTRATOR", "direct").strip().lower() or "direct"
    if orchestrator not in ("direct", "langgraph"):
        raise ValueError(f"Unsupported CHAT_ORCHESTRATOR: {orchestrator}")

    return Settings(
        local_mode=env_flag(env, "LOCAL_MODE"),
        mixed_mode=env_flag(env, "ENABLE_MIXED_MODE"),
        production=env_flag(env, "PRODUCTION"),
        environment=env.get("APP_ENV", "production").strip().lower() or "production",
        ollama_base_url=(env.get("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL).rstrip("/"),
        max_requests_per_ip=max_requests,
        secrets_dir=env.get("SECRETS_DIR") or DEFAULT_SECRETS_DIR,
        ssm_parameter_prefix=env.get("SSM_PARAMETER_PREFIX") or None,
        aws_region=env.get("AWS_REGION") or AWS_REGION,
        orchestrator=orchestrator,  # type: ignore[arg-type]
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
