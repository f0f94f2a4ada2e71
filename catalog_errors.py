"""
Catalog Error Taxonomy

Every failure the catalog core can surface. Callers catch the specific
subclass they can act on (new credentials for AuthError, a retry for
NetworkError) and fall back to CatalogError for everything else.
"""

from typing import Any, Optional


class CatalogError(RuntimeError):
    """Base exception for artifact catalog failures"""

    retryable = False


class NetworkError(CatalogError):
    """Transport-level failure talking to the Artifactory server"""

    retryable = True

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class RemoteError(CatalogError):
    """Non-2xx response from the Artifactory server"""

    def __init__(self, status: int, body: str = "", url: Optional[str] = None):
        super().__init__(f"Artifactory returned HTTP {status}" + (f": {body[:200]}" if body else ""))
        self.status = status
        self.body = body
        self.url = url

    @property
    def retryable(self) -> bool:
        return self.status in (408, 429) or self.status >= 500


class AuthError(CatalogError):
    """401/403 from the server - not retryable without new credentials"""

    def __init__(self, status: int, body: str = "", url: Optional[str] = None):
        super().__init__(f"Authentication failed (HTTP {status}) - check username and API key")
        self.status = status
        self.body = body
        self.url = url


class MalformedResponseError(CatalogError):
    """Response body did not have the expected shape"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ParseRejection(CatalogError):
    """A single raw item could not be resolved into a coordinate"""

    def __init__(self, value: Any, reason: str):
        super().__init__(f"Rejected {value!r}: {reason}")
        self.value = value
        self.reason = reason


class StorageError(CatalogError):
    """SQLite failure on the catalog table"""

    def __init__(self, message: str, applied: int = 0):
        super().__init__(message)
        # Records committed before the failure; they are not rolled back
        self.applied = applied


class SyncCancelledError(CatalogError):
    """A sync was cancelled before it finished"""

    def __init__(self, message: str = "Sync cancelled", applied: int = 0):
        super().__init__(message)
        self.applied = applied


class SyncInProgressError(CatalogError):
    """A sync for the same repository is already running"""

    def __init__(self, repository_key: str):
        super().__init__(f"Repository {repository_key!r} is already syncing")
        self.repository_key = repository_key
