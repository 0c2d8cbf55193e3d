"""Runtime registry of usable providers and models."""

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import httpx

from .catalog import CLOUD_CATALOG, OLLAMA_MAX_TOKENS, OLLAMA_PROVIDER_ID, OLLAMA_PROVIDER_NAME
from .config import Settings
from .constants import (
    PREFERRED_CLOUD_MODELS,
    PREFERRED_LOCAL_MODEL_PATTERN,
    PROBE_TIMEOUT_SECONDS,
    VENDOR_SECRET_NAMES,
    ProviderCategory,
)
from .entities import Model, Provider
from .errors import ProviderNotFoundError
from .infra.runtime import HttpClientFactory, default_http_client_factory
from .infra.secrets import SecretResolver
from .providers.ollama import OllamaAdapter

logger = logging.getLogger(__name__)

DiscoveredProvider = tuple[Provider, list[Model]]


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of one discovery pass; replaced wholesale, never patched."""

    providers: Mapping[str, Provider] = field(default_factory=lambda: MappingProxyType({}))
    models: Mapping[str, Model] = field(default_factory=lambda: MappingProxyType({}))


class ProviderRegistry:
    def __init__(
        self,
        settings: Settings,
        resolver: SecretResolver,
        http_client_factory: HttpClientFactory = default_http_client_factory,
    ) -> None:
        self._settings = settings
        self._resolver = resolver
        self._http_client_factory = http_client_factory
        self._snapshot = RegistrySnapshot()
        self._discovered = False

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    @property
    def discovered(self) -> bool:
        return self._discovered

    async def discover(self) -> RegistrySnapshot:
        """Probe every backend and atomically swap in the resulting snapshot."""
        local, cloud = await asyncio.gather(
            self._isolated("local", self._discover_local()),
            self._isolated("cloud", self._discover_cloud()),
        )

        providers: dict[str, Provider] = {}
        models: dict[str, Model] = {}
        for provider, provider_models in [*local, *cloud]:
            if provider.id in providers:
                logger.warning(
                    "Duplicate provider identifier ignored", extra={"provider": provider.id}
                )
                continue
            providers[provider.id] = provider
            for model in provider_models:
                models.setdefault(model.id, model)

        snapshot = RegistrySnapshot(
            providers=MappingProxyType(providers), models=MappingProxyType(models)
        )
        self._snapshot = snapshot
        self._discovered = True
        logger.info(
            "Provider discovery finished",
            extra={"provider_count": len(providers), "model_count": len(models)},
        )
        return snapshot

    async def ensure_discovered(self) -> RegistrySnapshot:
        if not self._discovered:
            return await self.discover()
        return self._snapshot

    async def _isolated(
        self, branch: str, discovery: Awaitable[list[DiscoveredProvider]]
    ) -> list[DiscoveredProvider]:
        """Run one discovery branch so that its failure leaves the other branch intact."""
        try:
            return await discovery
        except Exception:
            logger.exception("Provider discovery branch failed", extra={"branch": branch})
            return []

    async def _discover_local(self) -> list[DiscoveredProvider]:
        adapter = OllamaAdapter(self._settings.ollama_base_url)
        try:
            async with self._http_client_factory() as client:
                response = await client.get(adapter.tags_url, timeout=PROBE_TIMEOUT_SECONDS)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Local Ollama daemon is unavailable",
                extra={"ollama_url": adapter.base_url, "error": str(e)},
            )
            return []

        entries = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            logger.warning(
                "Unexpected Ollama tags payload",
                extra={"ollama_url": adapter.base_url, "payload_type": type(entries).__name__},
            )
            return []
        names = [
            entry["name"]
            for entry in entries
            if isinstance(entry, dict) and isinstance(entry.get("name"), str)
        ]
        provider = Provider(
            id=OLLAMA_PROVIDER_ID,
            name=OLLAMA_PROVIDER_NAME,
            category="local",
            base_url=adapter.base_url,
            max_tokens=OLLAMA_MAX_TOKENS,
            supported_models=tuple(names),
        )
        models = [
            Model(
                id=name,
                name=name,
                provider_id=OLLAMA_PROVIDER_ID,
                category="local",
                context_length=OLLAMA_MAX_TOKENS,
            )
            for name in names
        ]
        return [(provider, models)]

    async def _discover_cloud(self) -> list[DiscoveredProvider]:
        if self._settings.strict_local:
            logger.info("Strict local mode: skipping cloud provider discovery")
            return []

        discovered: list[DiscoveredProvider] = []
        for vendor in CLOUD_CATALOG.values():
            try:
                has_key = await asyncio.to_thread(self._resolver.has_vendor_key, vendor.id)
            except Exception:
                logger.warning(
                    "Cloud provider discovery failed", extra={"provider": vendor.id}, exc_info=True
                )
                continue
            if not has_key:
                continue

            models = [
                Model(
                    id=vendor.model_id(entry),
                    name=entry.name,
                    provider_id=vendor.id,
                    category="cloud",
                    context_length=vendor.max_tokens,
                    is_thinker=entry.is_thinker,
                    is_new=entry.is_new,
                )
                for entry in vendor.models
            ]
            provider = Provider(
                id=vendor.id,
                name=vendor.name,
                category="cloud",
                base_url=vendor.base_url,
                max_tokens=vendor.max_tokens,
                supported_models=tuple(model.id for model in models),
                credential_name=VENDOR_SECRET_NAMES[vendor.id][0],
            )
            discovered.append((provider, models))
        return discovered

    def get_provider(self, provider_id: str) -> Provider | None:
        return self._snapshot.providers.get(provider_id)

    def get_model(self, model_id: str) -> Model | None:
        return self._snapshot.models.get(model_id)

    def get_providers(self, category: ProviderCategory | None = None) -> list[Provider]:
        return [
            provider
            for provider in self._snapshot.providers.values()
            if provider.available and (category is None or provider.category == category)
        ]

    def get_models(
        self,
        category: ProviderCategory | None = None,
        provider_id: str | None = None,
    ) -> list[Model]:
        snapshot = self._snapshot
        return [
            model
            for model in snapshot.models.values()
            if model.provider_id in snapshot.providers
            and snapshot.providers[model.provider_id].available
            and (category is None or model.category == category)
            and (provider_id is None or model.provider_id == provider_id)
        ]

    def get_recommended_model(self) -> Model | None:
        local_models = self.get_models(category="local")
        if local_models:
            for model in local_models:
                if PREFERRED_LOCAL_MODEL_PATTERN in model.id:
                    return model
            return local_models[0]

        cloud_models = self.get_models(category="cloud")
        for preferred in PREFERRED_CLOUD_MODELS:
            for model in cloud_models:
                if preferred in model.id:
                    return model
        return cloud_models[0] if cloud_models else None


def select_provider(model_id: str, snapshot: RegistrySnapshot) -> str:
    """Pick the provider serving ``model_id`` for an "auto" provider choice."""
    model = snapshot.models.get(model_id)
    if model is not None:
        owner = snapshot.providers.get(model.provider_id)
        if owner is not None and owner.available:
            return owner.id

    for provider in snapshot.providers.values():
        if provider.available and model_id in provider.supported_models:
            return provider.id
    raise ProviderNotFoundError("auto", f"No available provider for model {model_id}")
