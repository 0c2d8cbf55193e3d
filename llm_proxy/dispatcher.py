"""Routing of canonical chat requests to local and cloud vendor endpoints."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from contextlib import aclosing
from typing import Any

import httpx
from langsmith import traceable

from .catalog import OLLAMA_PROVIDER_ID
from .config import Settings
from .constants import DEFAULT_TEMPERATURE
from .entities import ChatResult, Provider
from .errors import (
    EmptyResponseError,
    MissingCredentialError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    UnsupportedProviderError,
    UpstreamError,
)
from .infra.runtime import HttpClientFactory, default_http_client_factory
from .infra.secrets import SecretResolver
from .providers.base import VendorAdapter, VendorHttpRequest
from .providers.cloud import CLOUD_ADAPTERS
from .providers.ollama import OllamaAdapter
from .registry import ProviderRegistry, select_provider
from .schemas import ChatMessage, ChatRequest
from .streaming import StopPredicate, html_document_closed, normalize_stream

logger = logging.getLogger(__name__)

AUTO_PROVIDER = "auto"


class StreamHandle:
    """Open upstream stream; iterate it for text fragments, close it to release the connection."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        adapter: VendorAdapter,
        provider: str,
        model: str,
        should_stop: StopPredicate = html_document_closed,
    ) -> None:
        self._client = client
        self._response = response
        self._adapter = adapter
        self._should_stop = should_stop
        self.provider = provider
        self.model = model
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[str]:
        return self.fragments()

    async def fragments(self) -> AsyncIterator[str]:
        try:
            fragments = normalize_stream(
                self._response.aiter_lines(), self._adapter, should_stop=self._should_stop
            )
            async with aclosing(fragments):
                async for fragment in fragments:
                    yield fragment
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


DispatchResult = StreamHandle | ChatResult


def _trace_inputs(inputs: dict[str, Any]) -> dict[str, Any]:
    vendor_request = inputs.get("vendor_request")
    if not isinstance(vendor_request, VendorHttpRequest):
        return {}
    return {"url": vendor_request.url, "body": vendor_request.json}


@traceable(run_type="llm", name="llm_proxy.vendor_completion", process_inputs=_trace_inputs)
async def _post_completion(client: httpx.AsyncClient, vendor_request: VendorHttpRequest) -> Any:
    response = await client.request(
        vendor_request.method,
        vendor_request.url,
        headers=vendor_request.headers,
        params=vendor_request.params or None,
        json=vendor_request.json,
    )
    if not response.is_success:
        raise UpstreamError(response.status_code, response.reason_phrase, response.text[:500])
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(
            response.status_code, response.reason_phrase, "response body is not JSON"
        ) from e


class Dispatcher:
    def __init__(
        self,
        settings: Settings,
        registry: ProviderRegistry,
        resolver: SecretResolver,
        http_client_factory: HttpClientFactory = default_http_client_factory,
        cloud_adapters: Mapping[str, VendorAdapter] = CLOUD_ADAPTERS,
        local_adapters: Mapping[str, VendorAdapter] | None = None,
        should_stop: StopPredicate = html_document_closed,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._http_client_factory = http_client_factory
        self._cloud_adapters = cloud_adapters
        self._local_adapters = (
            local_adapters
            if local_adapters is not None
            else {OLLAMA_PROVIDER_ID: OllamaAdapter(settings.ollama_base_url)}
        )
        self._should_stop = should_stop
        self._routes: dict[str, Callable[[Provider, ChatRequest], Awaitable[DispatchResult]]] = {
            "local": self._call_local,
            "cloud": self._call_cloud_provider,
        }

    async def resolve(self, request: ChatRequest) -> ChatRequest:
        """Replace an "auto" provider with the one currently serving the model."""
        if request.provider != AUTO_PROVIDER:
            return request
        snapshot = await self._registry.ensure_discovered()
        provider_id = select_provider(request.model, snapshot)
        logger.info(
            "Auto-selected provider", extra={"provider": provider_id, "model": request.model}
        )
        return request.model_copy(update={"provider": provider_id})

    async def dispatch(self, request: ChatRequest) -> DispatchResult:
        request = await self.resolve(request)
        if request.provider in self._cloud_adapters:
            return await self.call_cloud(request.provider, request)

        await self._registry.ensure_discovered()
        return await self.send(
            request.provider,
            request.model,
            request.messages,
            stream=request.stream,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )

    async def send(
        self,
        provider_id: str,
        model_id: str,
        messages: Sequence[ChatMessage | Mapping[str, str]],
        *,
        stream: bool = True,
        max_tokens: int | None = None,
        temperature: float | None = DEFAULT_TEMPERATURE,
    ) -> DispatchResult:
        provider = self._lookup(provider_id)
        request = ChatRequest(
            provider=provider_id,
            model=model_id,
            messages=list(messages),
            stream=stream,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return await self._route(provider, request)

    async def call_cloud(self, vendor: str, request: ChatRequest) -> DispatchResult:
        adapter = self._cloud_adapters.get(vendor)
        if adapter is None:
            raise UnsupportedProviderError(vendor)

        api_key = await asyncio.to_thread(self._resolver.get_vendor_key, vendor)
        if not api_key:
            raise MissingCredentialError(adapter.name)
        return await self._execute(adapter, request, api_key)

    def _lookup(self, provider_id: str) -> Provider:
        provider = self._registry.get_provider(provider_id)
        if provider is None or not provider.available:
            raise ProviderNotFoundError(provider_id)
        return provider

    async def _route(self, provider: Provider, request: ChatRequest) -> DispatchResult:
        route = self._routes.get(provider.category)
        if route is None:
            raise UnsupportedProviderError(provider.id)
        return await route(provider, request)

    async def _call_local(self, provider: Provider, request: ChatRequest) -> DispatchResult:
        adapter = self._local_adapters.get(provider.id)
        if adapter is None:
            raise UnsupportedProviderError(provider.id)
        return await self._execute(adapter, request, api_key=None)

    async def _call_cloud_provider(
        self, provider: Provider, request: ChatRequest
    ) -> DispatchResult:
        return await self.call_cloud(provider.id, request)

    async def _execute(
        self, adapter: VendorAdapter, request: ChatRequest, api_key: str | None
    ) -> DispatchResult:
        vendor_request = adapter.build_request(request, api_key)
        logger.info(
            "Dispatching chat request",
            extra={
                "provider": adapter.vendor,
                "model": request.model,
                "stream": request.stream,
                "message_count": len(request.messages),
            },
        )
        if request.stream:
            return await self._open_stream(adapter, request, vendor_request)
        return await self._complete(adapter, request, vendor_request)

    async def _open_stream(
        self, adapter: VendorAdapter, request: ChatRequest, vendor_request: VendorHttpRequest
    ) -> StreamHandle:
        client = self._http_client_factory()
        try:
            http_request = client.build_request(
                vendor_request.method,
                vendor_request.url,
                headers=vendor_request.headers,
                params=vendor_request.params or None,
                json=vendor_request.json,
            )
            response = await client.send(http_request, stream=True)
        except httpx.RequestError as e:
            await client.aclose()
            raise ProviderUnavailableError(f"Failed to reach {adapter.name}: {e}") from e
        except BaseException:
            await client.aclose()
            raise

        if not response.is_success:
            await response.aclose()
            await client.aclose()
            raise UpstreamError(response.status_code, response.reason_phrase)

        return StreamHandle(
            client,
            response,
            adapter,
            provider=request.provider,
            model=request.model,
            should_stop=self._should_stop,
        )

    async def _complete(
        self, adapter: VendorAdapter, request: ChatRequest, vendor_request: VendorHttpRequest
    ) -> ChatResult:
        try:
            async with self._http_client_factory() as client:
                payload = await _post_completion(client, vendor_request)
        except httpx.RequestError as e:
            raise ProviderUnavailableError(f"Failed to reach {adapter.name}: {e}") from e

        content = adapter.extract_full_content(payload)
        if not content:
            logger.warning(
                "Vendor returned no extractable content",
                extra={"provider": adapter.vendor, "model": request.model},
            )
            raise EmptyResponseError()
        logger.info(
            "Chat response generated",
            extra={
                "provider": adapter.vendor,
                "model": request.model,
                "response_length": len(content),
            },
        )
        return ChatResult(ok=True, content=content, provider=request.provider, model=request.model)
