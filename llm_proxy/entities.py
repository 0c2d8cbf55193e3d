"""Registry entities and dispatch results."""

from dataclasses import dataclass

from .constants import ProviderCategory


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    category: ProviderCategory
    base_url: str
    max_tokens: int
    supported_models: tuple[str, ...]
    # Name of the secret holding the credential, never the value itself.
    credential_name: str | None = None
    available: bool = True


@dataclass(frozen=True)
class Model:
    id: str
    name: str
    provider_id: str
    category: ProviderCategory
    context_length: int | None = None
    is_thinker: bool = False
    is_new: bool = False


@dataclass(frozen=True)
class ChatResult:
    ok: bool
    content: str
    provider: str
    model: str
