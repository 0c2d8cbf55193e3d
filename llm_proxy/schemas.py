"""Pydantic schemas for the proxy HTTP surface."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_TEMPERATURE, ProviderCategory, Role


class ChatMessage(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    """Canonical chat request shared by every vendor adapter."""

    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(min_length=1)
    model: str = Field(min_length=1)
    messages: list[ChatMessage]
    stream: bool = True
    max_tokens: int | None = Field(default=None, ge=1)
    temperature: float | None = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)

    def first_system_message(self) -> str | None:
        for message in self.messages:
            if message.role == "system":
                return message.content
        return None

    def non_system_messages(self) -> list[ChatMessage]:
        return [message for message in self.messages if message.role != "system"]

    def wire_messages(self) -> list[dict[str, str]]:
        return [message.model_dump() for message in self.messages]


class LocalChatRequest(ChatRequest):
    provider: str = Field(default="ollama", min_length=1)


class ChatResultResponse(BaseModel):
    ok: bool = True
    content: str
    provider: str
    model: str


class ErrorResponse(BaseModel):
    ok: bool = False
    message: str


class ProxyConfigStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    local_mode: bool = Field(alias="localMode")
    mixed_mode: bool = Field(alias="mixedMode")
    ollama_url: str = Field(alias="ollamaUrl")


class KeyStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available_keys: dict[str, bool] = Field(alias="availableKeys")
    config: ProxyConfigStatus
    has_local_providers: bool = Field(alias="hasLocalProviders")
    has_cloud_providers: bool = Field(alias="hasCloudProviders")


class KeyValidationResult(BaseModel):
    valid: bool
    error: str | None = None


class KeyValidationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    validation_results: dict[str, KeyValidationResult] = Field(alias="validationResults")
    timestamp: str


class ApiKeyTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(min_length=1)
    api_key: str = Field(alias="apiKey", min_length=1)


class ApiKeyTestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    is_valid: bool = Field(alias="isValid")
    error: str | None = None
    model_count: int = Field(default=0, alias="modelCount")
    message: str


class ConnectivityResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    name: str
    url: str
    reachable: bool
    status: int | None = None
    status_text: str | None = Field(default=None, alias="statusText")
    error: str | None = None


class ConnectivityResponse(BaseModel):
    connectivity: list[ConnectivityResult]
    timestamp: str


class ProviderMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: ProviderCategory
    base_url: str = Field(alias="baseUrl")
    is_available: bool = Field(alias="isAvailable")
    max_tokens: int = Field(alias="maxTokens")
    supported_models: list[str] = Field(alias="supportedModels")


class ModelMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    provider: str
    type: ProviderCategory
    context_length: int | None = Field(default=None, alias="contextLength")
    is_thinker: bool = Field(default=False, alias="isThinker")
    is_new: bool = Field(default=False, alias="isNew")


class ModelsResponse(BaseModel):
    models: list[ModelMetadata]
    recommended: ModelMetadata | None = None


class ConfigReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    errors: list[str]
    warnings: list[str]
    recommendations: list[str]
    providers: dict[str, dict[str, Any]]


class RegistryResponse(BaseModel):
    providers: list[ProviderMetadata]
    models: list[ModelMetadata]
    recommended: ModelMetadata | None = None
