"""
Artifact Catalog Service

The command surface used by the TUI and the headless commands. One service
object is built at startup around a CatalogStore and an ArtifactoryManager and
passed to whoever needs it; it also owns the per-repository single-flight
registry so two syncs of the same repository never overlap.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from artifact_coordinates import CatalogRecord, resolve_item
from artifactory_client import ArtifactoryCredentials, ArtifactoryManager, sanitize_url
from cancellation import CancellationToken
from catalog_errors import CatalogError, ParseRejection, SyncInProgressError
from catalog_store import CatalogStore
from pagination import PageItem, compute_window, page_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListRepositoriesRequest:
    base_url: str
    credentials: ArtifactoryCredentials


@dataclass
class ListRepositoriesResponse:
    repositories: List[str]


@dataclass(frozen=True)
class SyncRepositoryRequest:
    base_url: str
    credentials: ArtifactoryCredentials
    repository_key: str


@dataclass
class SyncRepositoryResult:
    repository_key: str
    fetched: int
    applied: int
    skipped: int
    duration_ms: int

    @property
    def message(self) -> str:
        text = f"Synced {self.applied} artifacts from {self.repository_key}"
        if self.skipped:
            text += f" ({self.skipped} items skipped)"
        return text


@dataclass(frozen=True)
class GetPageRequest:
    page: int
    limit: int


@dataclass
class CatalogPage:
    records: List[CatalogRecord]
    total: int
    page: int
    limit: int
    total_pages: int
    window: List[PageItem] = field(default_factory=list)


class CatalogService:
    """Explicit owner of the catalog store and the sync bookkeeping"""

    def __init__(self, store: CatalogStore, manager: ArtifactoryManager, page_window_radius: int = 2,
                 tui_debug_logger=None):
        self.store = store
        self.manager = manager
        self.page_window_radius = page_window_radius
        self.tui_debug_logger = tui_debug_logger
        # repository key -> token of the sync currently running for it
        self._active_syncs: Dict[str, CancellationToken] = {}

    def _debug(self, message: str, **kwargs):
        if self.tui_debug_logger:
            self.tui_debug_logger.debug(message, **kwargs)

    def start(self) -> None:
        """Prepare the store; safe to call on every startup"""
        self.store.ensure_schema()

    async def list_repositories(self, request: ListRepositoriesRequest) -> ListRepositoriesResponse:
        repositories = await self.manager.list_repositories(sanitize_url(request.base_url), request.credentials)
        return ListRepositoriesResponse(repositories=repositories)

    def is_syncing(self, repository_key: str) -> bool:
        return repository_key in self._active_syncs

    def active_syncs(self) -> List[str]:
        """Keys of the repositories currently syncing"""
        return list(self._active_syncs)

    def cancel_sync(self, repository_key: str) -> bool:
        """Cancel the running sync for `repository_key`; False if none is running"""
        token = self._active_syncs.get(repository_key)
        if token is None:
            return False
        token.cancel()
        self._debug("Sync cancellation requested", repository=repository_key)
        return True

    async def sync_repository(self, request: SyncRepositoryRequest,
                              cancel_token: Optional[CancellationToken] = None) -> SyncRepositoryResult:
        """Fetch one repository in full and upsert every resolvable item

        Items whose path or timestamp cannot be resolved are skipped and
        counted; every other failure propagates. Raises SyncInProgressError if
        the same repository is already syncing.
        """
        repository_key = request.repository_key
        if repository_key in self._active_syncs:
            raise SyncInProgressError(repository_key)

        token = cancel_token or CancellationToken()
        self._active_syncs[repository_key] = token
        start_time = time.time()

        try:
            raw_items = await self.manager.query_artifacts(
                sanitize_url(request.base_url), request.credentials, repository_key, cancel_token=token
            )

            records = []
            skipped = 0
            for item in raw_items:
                try:
                    records.append(resolve_item(item))
                except ParseRejection as e:
                    skipped += 1
                    self._debug("Skipping item", repository=repository_key, reason=e.reason, value=e.value)

            upsert = self.store.upsert_batch(records, cancel_token=token)
        except CatalogError as e:
            self._debug("Sync failed", repository=repository_key, error_type=type(e).__name__, error=str(e))
            raise
        finally:
            del self._active_syncs[repository_key]

        result = SyncRepositoryResult(
            repository_key=repository_key,
            fetched=len(raw_items),
            applied=upsert.applied,
            skipped=skipped,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        logger.info(result.message)
        self._debug("Sync completed",
                    repository=repository_key,
                    fetched=result.fetched,
                    applied=result.applied,
                    skipped=result.skipped,
                    duration_ms=result.duration_ms)
        return result

    def get_page(self, request: GetPageRequest) -> CatalogPage:
        """Read one page of the catalog along with its pagination controls"""
        result = self.store.list_page(request.page, request.limit)
        pages = page_count(result.total, request.limit)
        return CatalogPage(
            records=result.records,
            total=result.total,
            page=request.page,
            limit=request.limit,
            total_pages=pages,
            window=compute_window(request.page, pages, self.page_window_radius),
        )
