"""Exceptions raised by the screening package."""


class ScreeningError(Exception):
    """Base class for screening errors."""
    pass


class ProviderError(ScreeningError):
    """Raised when a single LLM provider call fails."""
    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class ConsolidationError(ScreeningError):
    """Raised when consolidation loses or duplicates a finding."""
    pass


class ConfigError(ScreeningError):
    """Raised when screening configuration is invalid."""
    pass
