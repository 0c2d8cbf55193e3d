"""LLM proxy backend using FastAPI + Mangum for AWS Lambda."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from mangum import Mangum

from llm_proxy.config import Settings, load_settings
from llm_proxy.config_validator import provider_status, validate_configuration
from llm_proxy.constants import ProviderCategory
from llm_proxy.dispatcher import Dispatcher
from llm_proxy.entities import Model, Provider
from llm_proxy.errors import ProxyError, RateLimitError
from llm_proxy.infra.runtime import configure_langsmith, flush_langsmith_traces
from llm_proxy.infra.secrets import SecretResolver
from llm_proxy.orchestration.base import ChatOrchestrator
from llm_proxy.orchestration.direct import DirectChatOrchestrator
from llm_proxy.orchestration.langgraph_flow import LangGraphChatOrchestrator
from llm_proxy.rate_limit import RateLimiter, client_key_from_forwarded
from llm_proxy.registry import ProviderRegistry
from llm_proxy.schemas import (
    ApiKeyTestRequest,
    ApiKeyTestResponse,
    ChatRequest,
    ChatResultResponse,
    ConfigReport,
    ConnectivityResponse,
    ErrorResponse,
    KeyStatusResponse,
    KeyValidationResponse,
    LocalChatRequest,
    ModelMetadata,
    ModelsResponse,
    ProviderMetadata,
    RegistryResponse,
)
from llm_proxy.services.chat_service import GENERIC_ERROR_MESSAGE, ChatService
from llm_proxy.services.key_service import KeyService

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment."
MISSING_FIELDS_MESSAGE = "Missing required fields"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = load_settings()
    logging.getLogger("llm_proxy").setLevel(settings.log_level)
    logger.setLevel(settings.log_level)
    return settings


@lru_cache(maxsize=1)
def get_secret_resolver() -> SecretResolver:
    return SecretResolver(get_settings())


@lru_cache(maxsize=1)
def get_registry() -> ProviderRegistry:
    return ProviderRegistry(get_settings(), get_secret_resolver())


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(settings.max_requests_per_ip, enabled=settings.rate_limit_enabled)


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    settings = get_settings()
    dispatcher = Dispatcher(settings, get_registry(), get_secret_resolver())
    orchestrator: ChatOrchestrator
    if settings.orchestrator == "langgraph":
        orchestrator = LangGraphChatOrchestrator(dispatcher)
    else:
        orchestrator = DirectChatOrchestrator(dispatcher)
    return ChatService(orchestrator)


@lru_cache(maxsize=1)
def get_key_service() -> KeyService:
    return KeyService(get_settings(), get_secret_resolver())


@lru_cache(maxsize=1)
def ensure_langsmith_configured() -> None:
    """Configure LangSmith environment variables (called once via lru_cache)."""
    configure_langsmith(get_secret_resolver())


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    rate_limiter = get_rate_limiter()
    rate_limiter.start()
    try:
        yield
    finally:
        await rate_limiter.stop()


app = FastAPI(lifespan=lifespan)
router = APIRouter(prefix="/api")


@app.exception_handler(ProxyError)
async def handle_proxy_error(_: Request, exc: ProxyError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content=ErrorResponse(message=exc.message).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors or any(error.get("type") == "missing" for error in errors):
        message = MISSING_FIELDS_MESSAGE
    else:
        message = str(errors[0].get("msg", MISSING_FIELDS_MESSAGE))
    return JSONResponse(status_code=400, content=ErrorResponse(message=message).model_dump())


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled request failure", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=500, content=ErrorResponse(message=GENERIC_ERROR_MESSAGE).model_dump()
    )


def enforce_rate_limit(http_request: Request) -> None:
    client_key = client_key_from_forwarded(http_request.headers.get("x-forwarded-for"))
    if not get_rate_limiter().allow(client_key):
        raise RateLimitError(RATE_LIMIT_MESSAGE)


async def _complete(request: ChatRequest) -> ChatResultResponse:
    ensure_langsmith_configured()
    try:
        result = await get_chat_service().complete(request)
    except ProxyError:
        raise
    except Exception as e:
        logger.exception(
            "Chat completion failed", extra={"provider": request.provider, "model": request.model}
        )
        raise ProxyError(GENERIC_ERROR_MESSAGE) from e
    finally:
        flush_langsmith_traces()
    return ChatResultResponse(
        content=result.content, provider=result.provider, model=result.model
    )


def _stream(request: ChatRequest) -> StreamingResponse:
    ensure_langsmith_configured()
    background = BackgroundTasks()
    background.add_task(flush_langsmith_traces)
    return StreamingResponse(
        get_chat_service().stream_chat(request),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache"},
        background=background,
    )


def _provider_metadata(provider: Provider) -> ProviderMetadata:
    return ProviderMetadata(
        id=provider.id,
        name=provider.name,
        type=provider.category,
        base_url=provider.base_url,
        is_available=provider.available,
        max_tokens=provider.max_tokens,
        supported_models=list(provider.supported_models),
    )


def _model_metadata(model: Model | None) -> ModelMetadata | None:
    if model is None:
        return None
    return ModelMetadata(
        id=model.id,
        name=model.name,
        provider=model.provider_id,
        type=model.category,
        context_length=model.context_length,
        is_thinker=model.is_thinker,
        is_new=model.is_new,
    )


def _registry_response(
    registry: ProviderRegistry, category: ProviderCategory | None
) -> RegistryResponse:
    return RegistryResponse(
        providers=[_provider_metadata(p) for p in registry.get_providers(category)],
        models=[_model_metadata(m) for m in registry.get_models(category)],
        recommended=_model_metadata(registry.get_recommended_model()),
    )


@router.post("/ask-ai-cloud", response_model=None)
async def ask_ai_cloud(
    request: ChatRequest, http_request: Request
) -> StreamingResponse | ChatResultResponse:
    """Send a chat request to a cloud vendor, streaming plain text by default."""
    enforce_rate_limit(http_request)
    if request.stream:
        return _stream(request)
    return await _complete(request)


@router.put("/ask-ai-cloud", response_model=ChatResultResponse)
async def ask_ai_cloud_follow_up(request: ChatRequest, http_request: Request) -> ChatResultResponse:
    """Non-streaming follow-up request returning the extracted content."""
    enforce_rate_limit(http_request)
    return await _complete(request)


@router.post("/ask-ai-local", response_model=None)
async def ask_ai_local(
    request: LocalChatRequest, http_request: Request
) -> StreamingResponse | ChatResultResponse:
    """Send a chat request through the provider registry (the local daemon by default)."""
    enforce_rate_limit(http_request)
    if request.stream:
        return _stream(request)
    return await _complete(request)


@router.get("/check-api-keys", response_model=KeyStatusResponse)
def check_api_keys() -> KeyStatusResponse:
    return get_key_service().key_status()


@router.post("/check-api-keys", response_model=KeyValidationResponse)
async def validate_api_keys() -> KeyValidationResponse:
    return await get_key_service().validate_configured_keys()


@router.post("/test-api-key", response_model=ApiKeyTestResponse)
async def test_api_key(request: ApiKeyTestRequest) -> ApiKeyTestResponse:
    return await get_key_service().test_api_key(request.provider, request.api_key)


@router.get("/test-api-key", response_model=ConnectivityResponse)
async def test_connectivity() -> ConnectivityResponse:
    return await get_key_service().check_connectivity()


@router.get("/providers", response_model=RegistryResponse)
async def list_providers(category: ProviderCategory | None = None) -> RegistryResponse:
    registry = get_registry()
    await registry.ensure_discovered()
    return _registry_response(registry, category)


@router.post("/providers/refresh", response_model=RegistryResponse)
async def refresh_providers() -> RegistryResponse:
    registry = get_registry()
    await registry.discover()
    return _registry_response(registry, None)


@router.get("/models", response_model=ModelsResponse)
async def list_models(
    category: ProviderCategory | None = None, provider: str | None = None
) -> ModelsResponse:
    registry = get_registry()
    await registry.ensure_discovered()
    return ModelsResponse(
        models=[_model_metadata(m) for m in registry.get_models(category, provider)],
        recommended=_model_metadata(registry.get_recommended_model()),
    )


@router.get("/config-status", response_model=ConfigReport)
def config_status() -> ConfigReport:
    resolver = get_secret_resolver()
    status = validate_configuration(resolver=resolver)
    return ConfigReport(
        is_valid=status.is_valid,
        errors=status.errors,
        warnings=status.warnings,
        recommendations=status.recommendations,
        providers=provider_status(resolver=resolver),
    )


@router.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(router)


handler = Mangum(app)
