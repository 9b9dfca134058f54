class SyncError(Exception):
    """Base class for errors that abort a repository sync."""


class ConfigError(SyncError):
    """Configuration file is unreadable or invalid."""


class CapabilityError(SyncError):
    """Repository does not provide a requested architecture or component."""


class RemoteFetchError(SyncError):
    """Remote server answered with an HTTP error status."""

    def __init__(self, url: str, status: str):
        super().__init__(f"{status}: {url}")
        self.url = url
        self.status = status


class IndexNotFoundError(SyncError):
    """A required package index is missing from local storage."""
