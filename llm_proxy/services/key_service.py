"""Application service for credential status, validation and connectivity checks."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from llm_proxy.catalog import (
    ANTHROPIC_PROBE_MODEL,
    CLOUD_CATALOG,
    CONNECTIVITY_TARGETS,
    KEY_PROBES,
    VALIDATED_VENDORS,
    KeyProbe,
)
from llm_proxy.config import Settings
from llm_proxy.constants import ANTHROPIC_API_VERSION, PROBE_TIMEOUT_SECONDS
from llm_proxy.errors import ValidationError
from llm_proxy.infra.runtime import HttpClientFactory, default_http_client_factory
from llm_proxy.infra.secrets import SecretResolver
from llm_proxy.schemas import (
    ApiKeyTestResponse,
    ConnectivityResponse,
    ConnectivityResult,
    KeyStatusResponse,
    KeyValidationResponse,
    KeyValidationResult,
    ProxyConfigStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeOutcome:
    valid: bool
    status: int | None = None
    reason: str = ""
    model_count: int = 0
    error: str | None = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def probe_key(client: httpx.AsyncClient, probe: KeyProbe, api_key: str) -> ProbeOutcome:
    """Check ``api_key`` against the vendor's lightweight endpoint."""
    if probe.minimal_completion:
        response = await client.post(
            probe.url,
            headers={
                "x-api-key": api_key,
                "Content-Type": "application/json",
                "anthropic-version": ANTHROPIC_API_VERSION,
            },
            json={
                "model": ANTHROPIC_PROBE_MODEL,
                "max_tokens": 1,
                "messages": [{"role": "user", "content": "test"}],
            },
        )
        # Anything but an auth failure proves the key was accepted.
        if response.status_code in (401, 403):
            return ProbeOutcome(
                False, response.status_code, response.reason_phrase, error="Invalid API key"
            )
        return ProbeOutcome(
            True,
            response.status_code,
            response.reason_phrase,
            model_count=len(CLOUD_CATALOG["anthropic"].models),
        )

    headers = {"Content-Type": "application/json"}
    params: dict[str, str] | None = None
    if probe.auth == "bearer":
        headers["Authorization"] = f"Bearer {api_key}"
    elif probe.auth == "query":
        params = {"key": api_key}

    response = await client.get(probe.url, headers=headers, params=params)
    if not response.is_success:
        return ProbeOutcome(
            False,
            response.status_code,
            response.reason_phrase,
            error=f"HTTP {response.status_code}: {response.reason_phrase}",
        )

    try:
        data = response.json()
    except ValueError:
        data = None
    if probe.models_field is None:
        model_count = len(data) if isinstance(data, list) else 0
    else:
        entries = data.get(probe.models_field) if isinstance(data, dict) else None
        model_count = len(entries) if isinstance(entries, list) else 0
    return ProbeOutcome(True, response.status_code, response.reason_phrase, model_count=model_count)


class KeyService:
    def __init__(
        self,
        settings: Settings,
        resolver: SecretResolver,
        http_client_factory: HttpClientFactory = default_http_client_factory,
    ) -> None:
        self._settings = settings
        self._resolver = resolver
        self._http_client_factory = http_client_factory

    def key_status(self) -> KeyStatusResponse:
        available_keys = self._resolver.available_keys()
        return KeyStatusResponse(
            available_keys=available_keys,
            config=ProxyConfigStatus(
                local_mode=self._settings.local_mode,
                mixed_mode=self._settings.mixed_mode,
                ollama_url=self._settings.ollama_base_url,
            ),
            has_local_providers=bool(self._settings.ollama_base_url),
            has_cloud_providers=any(available_keys.values()),
        )

    async def validate_configured_keys(self) -> KeyValidationResponse:
        configured: dict[str, str] = {}
        for vendor in VALIDATED_VENDORS:
            key = await asyncio.to_thread(self._resolver.get_vendor_key, vendor)
            if key:
                configured[vendor] = key

        async with self._http_client_factory() as client:
            outcomes = await asyncio.gather(
                *(
                    self._safe_probe(client, KEY_PROBES[vendor], key)
                    for vendor, key in configured.items()
                )
            )

        results: dict[str, KeyValidationResult] = {}
        for vendor, outcome in zip(configured, outcomes):
            error = outcome.error
            if not outcome.valid and outcome.status is not None and vendor != "anthropic":
                error = f"HTTP {outcome.status}"
            results[vendor] = KeyValidationResult(valid=outcome.valid, error=error)
        logger.info(
            "Validated configured API keys",
            extra={"valid": sorted(v for v, r in results.items() if r.valid)},
        )
        return KeyValidationResponse(validation_results=results, timestamp=_timestamp())

    async def test_api_key(self, provider: str, api_key: str) -> ApiKeyTestResponse:
        """Live-test a caller-supplied key; the key is neither stored nor logged."""
        probe = KEY_PROBES.get(provider)
        if probe is None:
            raise ValidationError(f"Provider {provider} not supported for testing")

        async with self._http_client_factory() as client:
            outcome = await self._safe_probe(client, probe, api_key)

        if outcome.valid:
            message = f"API key is valid. Found {outcome.model_count} models."
        elif outcome.status is None:
            message = f"Failed to test API key: {outcome.error}"
        else:
            message = f"API key is invalid: {outcome.error}"
        return ApiKeyTestResponse(
            provider=provider,
            is_valid=outcome.valid,
            error=outcome.error,
            model_count=outcome.model_count,
            message=message,
        )

    async def check_connectivity(self) -> ConnectivityResponse:
        async with self._http_client_factory() as client:
            results = await asyncio.gather(
                *(self._probe_reachability(client, *target) for target in CONNECTIVITY_TARGETS)
            )
        return ConnectivityResponse(connectivity=list(results), timestamp=_timestamp())

    async def _safe_probe(
        self, client: httpx.AsyncClient, probe: KeyProbe, api_key: str
    ) -> ProbeOutcome:
        try:
            return await probe_key(client, probe, api_key)
        except httpx.HTTPError as e:
            logger.warning(
                "API key probe failed", extra={"provider": probe.vendor, "error": type(e).__name__}
            )
            return ProbeOutcome(False, error=str(e) or "Network error")

    async def _probe_reachability(
        self, client: httpx.AsyncClient, provider: str, name: str, url: str
    ) -> ConnectivityResult:
        try:
            async with asyncio.timeout(PROBE_TIMEOUT_SECONDS):
                response = await client.get(url, headers={"Content-Type": "application/json"})
        except TimeoutError:
            return ConnectivityResult(
                provider=provider,
                name=name,
                url=url,
                reachable=False,
                error=f"Timed out after {PROBE_TIMEOUT_SECONDS:g}s",
            )
        except httpx.HTTPError as e:
            return ConnectivityResult(
                provider=provider,
                name=name,
                url=url,
                reachable=False,
                error=str(e) or "Network error",
            )
        return ConnectivityResult(
            provider=provider,
            name=name,
            url=url,
            reachable=True,
            status=response.status_code,
            status_text=response.reason_phrase,
        )
