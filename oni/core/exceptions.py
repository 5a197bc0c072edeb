class ProviderError(Exception):
    """Base exception for provider resolution errors."""

    def __init__(self, message: str, display_message: str = None):
        self.message = message
        self.display_message = display_message or message
        super().__init__(self.message)


class UnknownProviderError(ProviderError):
    """Raised when a configured provider name is not registered."""

    def __init__(self, name: str, available: list = None):
        self.name = name
        self.available = sorted(available or [])
        display_message = f"Unknown provider: {name}"
        if self.available:
            display_message += f" (available: {', '.join(self.available)})"
        super().__init__(f"unknown provider: {name}", display_message)


class NotFoundError(ProviderError):
    """Raised when a title, show or episode cannot be matched upstream."""

    def __init__(self, provider: str, what: str):
        self.provider = provider
        super().__init__(f"{provider}: {what} not found", f"{provider}: no match for {what}")


class UpstreamError(ProviderError):
    """Raised on transport failures, non-2xx statuses and unexpected response shapes."""

    def __init__(self, provider: str, message: str, url: str = None, status: int = None):
        self.provider = provider
        self.url = url
        self.status = status
        details = message
        if status is not None:
            details = f"{details} (HTTP {status})"
        if url:
            details = f"{details} [{url}]"
        super().__init__(
            f"{provider}: {details}", f"{provider}: upstream request failed, {message}"
        )


class NoLinksFoundError(ProviderError):
    """Raised when link extraction produced zero candidate URLs."""

    def __init__(self, provider: str, detail: str = None):
        self.provider = provider
        message = f"{provider}: no video links found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidCacheEntryError(ProviderError):
    """Raised when a provider cache row exists but cannot be parsed."""

    def __init__(self, provider: str, media_id, value: str, reason: str):
        self.provider = provider
        self.media_id = media_id
        self.value = value
        super().__init__(
            f"invalid cache entry for {provider}/{media_id}: {reason}",
            f"Corrupt provider cache entry for {provider}/{media_id}.\nClear it with: oni cache clear --provider {provider} --media-id {media_id}",
        )


class ProviderNotImplementedError(ProviderError):
    """Raised by providers whose link pipeline cannot be completed (DRM gated sites)."""

    def __init__(self, provider: str, feature: str):
        self.provider = provider
        super().__init__(f"{provider}: {feature} is not implemented")
