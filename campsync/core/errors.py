"""Exception types raised by the sync pipeline."""


class SyncError(RuntimeError):
    """Base class for sync failures surfaced to callers."""


class ConfigError(SyncError):
    """Raised when mandatory configuration is missing."""


class AuthorizationError(SyncError):
    """Raised when a trigger request carries a missing or mismatched credential."""


class ProviderError(SyncError):
    """Raised when a single provider request fails at the network or payload level."""


class SinkError(SyncError):
    """Raised when the destination store rejects a write."""
