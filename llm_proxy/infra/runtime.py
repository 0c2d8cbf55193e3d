"""Runtime infrastructure helpers for tracing and outbound HTTP clients."""

import logging
import os
from collections.abc import Callable

import httpx
from langsmith.run_trees import get_cached_client

from llm_proxy.constants import (
    HTTP_TIMEOUT_SECONDS,
    LANGSMITH_API_KEY_SECRET_NAME,
    LANGSMITH_PROJECT,
)
from llm_proxy.infra.secrets import SecretResolver

logger = logging.getLogger(__name__)

HttpClientFactory = Callable[[], httpx.AsyncClient]


def default_http_client_factory() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, trust_env=False)


def _configure_langsmith(langsmith_api_key: str | None) -> None:
    if not langsmith_api_key:
        os.environ.pop("LANGSMITH_TRACING", None)
        os.environ.pop("LANGSMITH_API_KEY", None)
        logger.info("LangSmith tracing disabled because API key is unavailable")
        return

    os.environ["LANGSMITH_TRACING"] = "true"
    os.environ["LANGSMITH_API_KEY"] = langsmith_api_key
    os.environ.setdefault("LANGSMITH_PROJECT", LANGSMITH_PROJECT)


def configure_langsmith(resolver: SecretResolver) -> None:
    _configure_langsmith(resolver.get_secret(LANGSMITH_API_KEY_SECRET_NAME))


def flush_langsmith_traces() -> None:
    if os.environ.get("LANGSMITH_TRACING", "").lower() != "true":
        return
    if not os.environ.get("LANGSMITH_API_KEY"):
        return
    try:
        get_cached_client().flush()
    except Exception:
        logger.warning("Failed to flush LangSmith traces", exc_info=True)
