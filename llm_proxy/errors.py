"""Domain-level exceptions for the LLM proxy."""


class ProxyError(Exception):
    """Base class for errors surfaced to callers as ``{ok: false, message}``."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ProxyError):
    """Raised when a request is missing required fields or is otherwise invalid."""

    status_code = 400


class RateLimitError(ProxyError):
    status_code = 429


class MissingCredentialError(ProxyError):
    """Raised before any network call when the vendor key cannot be resolved."""

    def __init__(self, vendor_name: str) -> None:
        super().__init__(f"{vendor_name} API key not configured")
        self.vendor_name = vendor_name


class UpstreamError(ProxyError):
    """Raised when a vendor answers with a non-2xx status."""

    def __init__(self, status: int, status_text: str, detail: str = "") -> None:
        message = f"API Error: {status} {status_text}"
        if detail:
            message = f"{message} - {detail}"
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.detail = detail


class ProviderUnavailableError(ProxyError):
    """Raised when a provider cannot be reached at all."""


class EmptyResponseError(ProxyError):
    status_code = 400

    def __init__(self, message: str = "No content returned from the model") -> None:
        super().__init__(message)


class ProviderNotFoundError(ProxyError):
    def __init__(self, provider_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Provider {provider_id} not found")
        self.provider_id = provider_id


class UnsupportedProviderError(ProxyError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider {provider_id} not supported")
        self.provider_id = provider_id


class MalformedStreamLineError(ValueError):
    """Raised by adapters for a stream line that cannot be decoded; never leaves the stream."""

    def __init__(self, line: str) -> None:
        super().__init__(f"Malformed stream line: {line[:80]!r}")
        self.line = line
