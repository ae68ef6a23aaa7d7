"""Custom exception classes for the media library lookup service."""


class LookupServiceError(Exception):
    """Base exception for all lookup service errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ProviderError(LookupServiceError):
    """Raised inside a provider adapter when a metadata provider cannot answer.

    Never crosses the adapter boundary; adapters convert it to a failed
    ProviderResponse.
    """

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its configured timeout."""

    pass


class ProviderAuthError(ProviderError):
    """Raised when a provider rejects the configured credentials."""

    pass


class ProviderResponseError(ProviderError):
    """Raised when a provider returns an unexpected status or malformed body."""

    pass


class StoreError(LookupServiceError):
    """Raised when the canonical record store fails."""

    pass


class DuplicateRecordError(StoreError):
    """Raised when an insert violates a normalized-name uniqueness constraint."""

    pass


class ServiceInitializationError(LookupServiceError):
    """Raised when a service fails to initialize."""

    pass


class ConfigurationError(LookupServiceError):
    """Raised when there's a configuration error."""

    pass
