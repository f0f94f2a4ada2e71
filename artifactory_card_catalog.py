#!/usr/bin/env python3
"""
Artifactory Card Catalog TUI

Browse the repositories of an Artifactory server, sync one into the local
artifact catalog and page through the catalog. Also runs headless for
scripting (--list-repositories, --sync, --show-page).
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Dict, List, Optional

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Header, Input, Static

from artifact_coordinates import format_timestamp
from artifactory_client import ArtifactoryCredentials, ArtifactoryManager, sanitize_url
from catalog_errors import (
    AuthError,
    CatalogError,
    MalformedResponseError,
    NetworkError,
    RemoteError,
    StorageError,
    SyncCancelledError,
    SyncInProgressError,
)
from catalog_service import (
    CatalogPage,
    CatalogService,
    GetPageRequest,
    ListRepositoriesRequest,
    SyncRepositoryRequest,
)
from catalog_store import CatalogStore
from config_manager import PAGE_SIZE_CHOICES, ConfigManager
from debug_console import DebugConsoleScreen
from mock_data import MOCK_BASE_URL, MockArtifactory
from pagination import EllipsisItem, FirstShortcut, LastShortcut, NextControl, PageItem, PageNumber, PrevControl

logger = logging.getLogger(__name__)


class TUIDebugLogger:
    """Debug logger for TUI operations"""

    def __init__(self, enabled: bool = False, verbose: bool = False, debug_file_path: str = None):
        self.enabled = enabled
        self.verbose = verbose
        if enabled:
            if debug_file_path is None:
                debug_file_path = '/tmp/artifactory-card-catalog-debug.log'

            # File only; the TUI owns the terminal
            logging.basicConfig(
                level=logging.DEBUG,
                format='%(asctime)s [TUI-DEBUG] %(name)s: %(message)s',
                handlers=[
                    logging.FileHandler(debug_file_path)
                ]
            )

            if not verbose:
                # Silence noisy HTTP libraries unless verbose mode
                logging.getLogger('httpcore').setLevel(logging.WARNING)
                logging.getLogger('httpx').setLevel(logging.WARNING)

            self.logger = logging.getLogger('TUI-Operations')
            mode_text = "VERBOSE" if verbose else "STANDARD"
            self.logger.info(f"=== TUI Debug Mode ({mode_text}) Enabled - Logging to: {debug_file_path} ===")
        else:
            self.logger = None

    def _mask_sensitive_data(self, key: str, value) -> str:
        """Mask sensitive data like API keys, passwords and auth headers"""
        sensitive_keywords = [
            'password', 'passwd', 'passphrase', 'pwd',
            'api_key', 'apikey', 'access_key', 'access_token', 'refresh_token',
            'credential', 'creds', 'credentials',
            'authorization', 'authenticate',
            'secret', 'private', 'x-jfrog-art-api'
        ]

        if any(keyword in key.lower() for keyword in sensitive_keywords):
            if isinstance(value, str) and len(value) > 8:
                # Show first 3 and last 3 characters for identification
                return f"{value[:3]}...{value[-3:]}"
            return "[REDACTED]"

        return str(value)

    def _format(self, message: str, kwargs: dict) -> str:
        safe_kwargs = {k: self._mask_sensitive_data(k, v) for k, v in kwargs.items()}
        context = ", ".join(f"{k}={v}" for k, v in safe_kwargs.items())
        return f"{message}" + (f" | {context}" if context else "")

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context"""
        if self.enabled and self.logger:
            self.logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs):
        """Log info message"""
        if self.enabled and self.logger:
            self.logger.info(self._format(message, kwargs))

    def error(self, message: str, **kwargs):
        """Log error message"""
        if self.enabled and self.logger:
            self.logger.error(self._format(message, kwargs))


# Global debug logger instance (disabled by default, enabled in main() if --debug flag provided)
debug_logger = TUIDebugLogger(enabled=False)


def describe_error(error: Exception) -> str:
    """One-line, user-facing description of a catalog failure"""
    if isinstance(error, AuthError):
        return f"Authentication failed (HTTP {error.status}) - check username and API key"
    if isinstance(error, NetworkError):
        return f"Cannot reach Artifactory: {error}"
    if isinstance(error, RemoteError):
        return f"Artifactory error HTTP {error.status}: {error.body[:200] or 'no details'}"
    if isinstance(error, MalformedResponseError):
        return f"Unexpected response from Artifactory: {error}"
    if isinstance(error, StorageError):
        suffix = f" ({error.applied} records were saved before the failure)" if error.applied else ""
        return f"Catalog database error: {error}{suffix}"
    if isinstance(error, SyncCancelledError):
        suffix = f" after saving {error.applied} records" if error.applied else ""
        return f"Sync cancelled{suffix}"
    return str(error)


def resolve_page_size(value) -> int:
    """Configured page size, or the smallest choice when it is not one of PAGE_SIZE_CHOICES"""
    if value in PAGE_SIZE_CHOICES:
        return value
    logger.warning(f"Ignoring page size {value!r}, expected one of {PAGE_SIZE_CHOICES}")
    return PAGE_SIZE_CHOICES[0]


def window_to_text(items: List[PageItem]) -> str:
    """Render pagination controls as a single line, e.g. `‹ 1 … 4 [5] 6 … 10 ›`"""
    parts = []
    for item in items:
        if isinstance(item, PrevControl):
            parts.append("‹" if item.enabled else " ")
        elif isinstance(item, NextControl):
            parts.append("›" if item.enabled else " ")
        elif isinstance(item, EllipsisItem):
            parts.append("…")
        elif isinstance(item, PageNumber):
            parts.append(f"[{item.value}]" if item.is_active else str(item.value))
    return " ".join(parts).strip()


class PaginationBar(Horizontal):
    """Row of buttons built from the pagination window"""

    class PageRequested(Message):
        """Posted when a page control is pressed"""

        def __init__(self, page: int):
            super().__init__()
            self.page = page

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.current_page = 1

    async def update_window(self, items: List[PageItem], current_page: int) -> None:
        """Replace the controls with the buttons for `items`"""
        self.current_page = current_page
        widgets = []
        for item in items:
            if isinstance(item, PrevControl):
                button = Button("‹ Prev", disabled=not item.enabled, classes="page_control")
                button.target_page = current_page - 1
            elif isinstance(item, NextControl):
                button = Button("Next ›", disabled=not item.enabled, classes="page_control")
                button.target_page = current_page + 1
            elif isinstance(item, EllipsisItem):
                widgets.append(Static("…", classes="page_ellipsis"))
                continue
            else:
                variant = "primary" if item.is_active else "default"
                button = Button(str(item.value), variant=variant, classes="page_number")
                button.target_page = item.value
                if isinstance(item, (FirstShortcut, LastShortcut)):
                    button.tooltip = "First page" if isinstance(item, FirstShortcut) else "Last page"
            widgets.append(button)

        await self.remove_children()
        if widgets:
            await self.mount_all(widgets)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        target_page = getattr(event.button, "target_page", None)
        if target_page is not None:
            event.stop()
            self.post_message(self.PageRequested(target_page))


class CatalogScreen(Screen):
    """Screen for paging through the local artifact catalog"""

    CSS = """
    #catalog_filter {
        border: solid $primary;
        margin: 0 1;
        height: 3;
    }

    #catalog_table {
        border: solid $primary;
        margin: 0 1;
        height: 1fr;
    }

    #pagination_bar {
        height: 3;
        align: center middle;
    }

    .page_control, .page_number {
        min-width: 5;
        margin: 0 0;
    }

    .page_ellipsis {
        width: 3;
        content-align: center middle;
        height: 3;
    }

    #catalog_status {
        height: 1;
        margin: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("escape", "back", "Back"),
        ("ctrl+q", "quit", "Quit"),
        ("ctrl+d", "debug_console", "Debug Console"),
        ("ctrl+f", "focus_filter", "Focus Filter"),
        ("f5", "refresh", "Refresh"),
        ("left_square_bracket", "previous_page", "Prev Page"),
        ("right_square_bracket", "next_page", "Next Page"),
        ("less_than_sign", "first_page", "First"),
        ("greater_than_sign", "last_page", "Last"),
        ("p", "cycle_page_size", "Page Size"),
    ]

    def __init__(self, service: CatalogService, page_size: int = 10, **kwargs):
        super().__init__(**kwargs)
        self.service = service
        self.current_page = 1
        self.page_size = page_size
        self.catalog_page: Optional[CatalogPage] = None
        self.filter_text = ""

    def compose(self) -> ComposeResult:
        """Create the catalog view layout"""
        yield Header()
        with Vertical():
            yield Input(placeholder="Filter this page by group, artifact or version...", id="catalog_filter")
            catalog_table = DataTable(id="catalog_table", cursor_type="row")
            catalog_table.add_columns("Group ID", "Artifact ID", "Version", "Last Updated")
            yield catalog_table
            yield PaginationBar(id="pagination_bar")
            yield Static("", id="catalog_status")
        yield Footer()

    async def on_mount(self) -> None:
        await self.load_page()
        self.query_one("#catalog_table", DataTable).focus()

    def update_title(self) -> None:
        if self.catalog_page is None or self.catalog_page.total == 0:
            self.title = "Artifact Catalog (empty)"
            return
        self.title = (f"Artifact Catalog - page {self.catalog_page.page} of "
                      f"{self.catalog_page.total_pages} ({self.catalog_page.total} artifacts)")

    async def load_page(self) -> None:
        """Read the current page from the store and redraw"""
        try:
            self.catalog_page = self.service.get_page(GetPageRequest(self.current_page, self.page_size))
        except (CatalogError, ValueError) as e:
            debug_logger.error("Catalog page load failed", page=self.current_page, error=str(e))
            self.notify(describe_error(e), severity="error")
            return

        debug_logger.debug("Catalog page loaded",
                           page=self.current_page,
                           page_size=self.page_size,
                           rows=len(self.catalog_page.records),
                           total=self.catalog_page.total)

        self.rebuild_catalog_table()
        pagination_bar = self.query_one("#pagination_bar", PaginationBar)
        await pagination_bar.update_window(self.catalog_page.window, self.current_page)
        self.update_title()

    def rebuild_catalog_table(self) -> None:
        catalog_table = self.query_one("#catalog_table", DataTable)
        catalog_table.clear()

        records = self.catalog_page.records if self.catalog_page else []
        filter_lower = self.filter_text.strip().lower()
        shown = 0
        for record in records:
            if filter_lower and not any(filter_lower in value.lower()
                                        for value in (record.group_id, record.artifact_id, record.version)):
                continue
            catalog_table.add_row(record.group_id, record.artifact_id, record.version,
                                  format_timestamp(record.last_updated_millis))
            shown += 1

        status = self.query_one("#catalog_status", Static)
        if not records:
            status.update("No artifacts found in local database. Sync a repository first.")
        elif filter_lower:
            status.update(f"{shown} of {len(records)} rows on this page match '{self.filter_text}' - {self.page_size} per page")
        else:
            status.update(f"{self.page_size} per page")

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "catalog_filter":
            self.filter_text = event.value
            self.rebuild_catalog_table()

    async def go_to_page(self, page: int) -> None:
        total_pages = self.catalog_page.total_pages if self.catalog_page else 1
        page = max(1, min(page, max(total_pages, 1)))
        if page != self.current_page:
            self.current_page = page
            await self.load_page()

    async def on_pagination_bar_page_requested(self, message: PaginationBar.PageRequested) -> None:
        await self.go_to_page(message.page)

    async def action_previous_page(self) -> None:
        await self.go_to_page(self.current_page - 1)

    async def action_next_page(self) -> None:
        await self.go_to_page(self.current_page + 1)

    async def action_first_page(self) -> None:
        await self.go_to_page(1)

    async def action_last_page(self) -> None:
        if self.catalog_page:
            await self.go_to_page(self.catalog_page.total_pages)

    async def action_cycle_page_size(self) -> None:
        """Step through the page sizes and go back to page 1"""
        if self.page_size in PAGE_SIZE_CHOICES:
            index = (PAGE_SIZE_CHOICES.index(self.page_size) + 1) % len(PAGE_SIZE_CHOICES)
        else:
            index = 0
        self.page_size = PAGE_SIZE_CHOICES[index]
        self.current_page = 1
        await self.load_page()
        self.notify(f"Showing {self.page_size} artifacts per page")

    async def action_refresh(self) -> None:
        await self.load_page()

    def action_focus_filter(self) -> None:
        self.query_one("#catalog_filter", Input).focus()

    def action_debug_console(self) -> None:
        self.app.push_screen(DebugConsoleScreen(self.service.manager))

    def action_back(self) -> None:
        self.app.pop_screen()

    def action_quit(self) -> None:
        self.app.exit()


class RepositoryDetailsPanel(Static):
    """Right panel showing the server and the highlighted repository"""

    def update_repository_info(self, base_url: str, username: str, repository: Optional[str],
                               sync_status: str, catalog_total: Optional[int]) -> None:
        total_text = str(catalog_total) if catalog_total is not None else "Unknown"
        if repository is None:
            self.update(f"""📡 Server: {base_url}
👤 User: {username or 'Anonymous'}

No repository selected""")
            return

        self.update(f"""📦 Repository: {repository}
📡 Server: {base_url}
🔎 AQL: items.find({{"repo": "{repository}"}})
👤 User: {username or 'Anonymous'}
🔄 Sync: {sync_status}
🗂️ Catalog Size: {total_text} artifacts

s / Enter  sync this repository
x          cancel a running sync
c          open the artifact catalog""")


class ArtifactoryCardCatalog(App):
    """Main TUI application for cataloging Artifactory repositories"""

    TITLE = "Artifactory Card Catalog"

    CSS = """
    Screen {
        layout: horizontal;
    }

    #repository_list {
        width: 60%;
        border: solid $primary;
        margin: 1;
    }

    #repository_details {
        width: 40%;
        border: solid $secondary;
        margin: 1;
        padding: 1;
    }
    """

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("f5", "refresh", "Refresh"),
        ("s", "sync", "Sync"),
        ("x", "cancel_sync", "Cancel Sync"),
        ("c", "open_catalog", "Catalog"),
        ("ctrl+d", "debug_console", "Debug Console"),
    ]

    def __init__(self, service: CatalogService, base_url: str, credentials: ArtifactoryCredentials,
                 config_manager: ConfigManager, page_size: int = 10, initial_repository: Optional[str] = None,
                 mock_mode: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.service = service
        self.base_url = base_url
        self.credentials = credentials
        self.config_manager = config_manager
        self.page_size = page_size
        self.initial_repository = initial_repository
        self.mock_mode = mock_mode
        self.repositories: List[str] = []
        self.sync_status: Dict[str, str] = {}
        self.syncing_repository: Optional[str] = None

    def compose(self) -> ComposeResult:
        """Create the TUI layout"""
        yield Header()
        with Horizontal():
            repository_table = DataTable(id="repository_list", cursor_type="row")
            repository_table.add_columns("Status", "Repository", "Last Sync")
            yield repository_table

            yield RepositoryDetailsPanel(id="repository_details")
        yield Footer()

    def on_mount(self) -> None:
        """Initialize the application"""
        self.sub_title = f"{self.base_url}" + (" (mock)" if self.mock_mode else "")
        self.update_details(None)
        self.run_worker(self.load_repositories(), exclusive=True, group="repositories")

    def selected_repository(self) -> Optional[str]:
        repository_table = self.query_one("#repository_list", DataTable)
        row = repository_table.cursor_row
        if 0 <= row < len(self.repositories):
            return self.repositories[row]
        return None

    def _catalog_total(self) -> Optional[int]:
        try:
            return self.service.store.count()
        except StorageError:
            return None

    def update_details(self, repository: Optional[str]) -> None:
        details_panel = self.query_one("#repository_details", RepositoryDetailsPanel)
        details_panel.update_repository_info(
            self.base_url,
            self.credentials.username,
            repository,
            self.sync_status.get(repository, "Not synced this session"),
            self._catalog_total(),
        )

    def _status_icon(self, repository: str) -> str:
        status = self.sync_status.get(repository, "")
        if self.service.is_syncing(repository) or status == "Syncing...":
            return "⏳"
        if status.startswith("Synced"):
            return "✅"
        if status.startswith("Failed"):
            return "❌"
        if status.startswith("Cancelled"):
            return "⏹"
        return "📦"

    def rebuild_repository_table(self) -> None:
        repository_table = self.query_one("#repository_list", DataTable)
        saved_row = repository_table.cursor_row
        repository_table.clear()
        for repository in self.repositories:
            repository_table.add_row(self._status_icon(repository), repository,
                                     self.sync_status.get(repository, "-"))
        if self.repositories:
            repository_table.move_cursor(row=min(max(saved_row, 0), len(self.repositories) - 1))

    async def load_repositories(self) -> None:
        """Fetch the repository list in the background"""
        self.title = f"{self.TITLE} (loading repositories...)"
        debug_logger.debug("Loading repositories", base_url=self.base_url)
        try:
            response = await self.service.list_repositories(
                ListRepositoriesRequest(self.base_url, self.credentials))
        except CatalogError as e:
            debug_logger.error("Repository listing failed", error_type=type(e).__name__, error=str(e))
            self.title = f"{self.TITLE} (repository listing failed)"
            self.notify(describe_error(e), severity="error", timeout=10)
            return

        self.repositories = response.repositories
        self.title = f"{self.TITLE} ({len(self.repositories)} repositories)"
        self.rebuild_repository_table()

        if self.initial_repository in self.repositories:
            self.query_one("#repository_list", DataTable).move_cursor(
                row=self.repositories.index(self.initial_repository))
        self.update_details(self.selected_repository())

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.data_table.id == "repository_list":
            self.update_details(self.selected_repository())

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table.id == "repository_list":
            self.action_sync()

    def action_sync(self) -> None:
        repository = self.selected_repository()
        if repository is None:
            return
        # One repository at a time
        running = self.syncing_repository or next(iter(self.service.active_syncs()), None)
        if running is not None:
            self.notify(f"{running} is already syncing; cancel it with x or wait for it to finish",
                        severity="warning")
            return
        self.syncing_repository = repository
        self.run_worker(self.sync_repository(repository), group="sync")

    async def sync_repository(self, repository: str) -> None:
        """Sync one repository into the local catalog"""
        self.sync_status[repository] = "Syncing..."
        self.rebuild_repository_table()
        self.update_details(self.selected_repository())
        debug_logger.debug("Sync started from TUI", repository=repository)
        try:
            result = await self.service.sync_repository(
                SyncRepositoryRequest(self.base_url, self.credentials, repository))
        except SyncInProgressError as e:
            self.notify(str(e), severity="warning")
            return
        except SyncCancelledError as e:
            self.sync_status[repository] = "Cancelled"
            self.notify(describe_error(e), severity="warning")
        except CatalogError as e:
            self.sync_status[repository] = f"Failed: {type(e).__name__}"
            self.notify(describe_error(e), severity="error", timeout=10)
        else:
            self.sync_status[repository] = f"Synced {result.applied} ({result.skipped} skipped)"
            debug_logger.info("Sync finished from TUI", repository=repository,
                              applied=result.applied, skipped=result.skipped)
            self.notify(result.message)
            if not self.mock_mode:
                self.config_manager.save_server_config(self.base_url, self.credentials.username,
                                                       last_repository=repository)
        finally:
            self.syncing_repository = None

        self.rebuild_repository_table()
        self.update_details(self.selected_repository())

    def action_cancel_sync(self) -> None:
        repository = self.syncing_repository
        if repository and self.service.cancel_sync(repository):
            self.notify(f"Cancelling sync of {repository}...")
        else:
            self.notify("No sync running", severity="warning")

    def action_refresh(self) -> None:
        self.run_worker(self.load_repositories(), exclusive=True, group="repositories")

    def action_open_catalog(self) -> None:
        self.push_screen(CatalogScreen(self.service, page_size=self.page_size))

    def action_debug_console(self) -> None:
        self.push_screen(DebugConsoleScreen(self.service.manager))

    def action_quit(self) -> None:
        """Quit the application"""
        debug_logger.debug("Application quit requested")
        self.exit()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Artifactory Card Catalog - catalog and browse Maven artifacts from Artifactory")

    parser.add_argument("--url", help="Artifactory base URL, e.g. https://artifactory.example.com")
    parser.add_argument("--username", help="Artifactory username")
    parser.add_argument(
        "--api-key",
        help="Artifactory API key or password (default: $ARTIFACTORY_API_KEY)"
    )
    parser.add_argument("--repository", help="Repository to highlight when the TUI starts")
    parser.add_argument("--page-size", type=int, choices=PAGE_SIZE_CHOICES, help="Artifacts per catalog page")
    parser.add_argument("--database", help="Path of the local catalog database")

    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use a built-in mock Artifactory for development/testing"
    )

    headless = parser.add_argument_group("headless commands")
    headless.add_argument("--list-repositories", action="store_true", help="Print the repository keys and exit")
    headless.add_argument("--sync", metavar="REPOSITORY", help="Sync one repository into the catalog and exit")
    headless.add_argument("--show-page", metavar="N", type=int, help="Print catalog page N and exit")

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to a file"
    )
    parser.add_argument(
        "--verbose-debug",
        action="store_true",
        help="Enable verbose debug logging including HTTP libraries (httpcore, httpx)"
    )
    parser.add_argument(
        "--debug-location",
        type=str,
        default="/tmp/artifactory-card-catalog-debug.log",
        help="File path for debug logging (default: /tmp/artifactory-card-catalog-debug.log)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Artifactory Card Catalog 0.1.0"
    )

    return parser.parse_args(argv)


async def run_headless(args: argparse.Namespace, service: CatalogService, base_url: str,
                       credentials: ArtifactoryCredentials, config_manager: ConfigManager,
                       page_size: int) -> int:
    """Run the requested headless command, return the exit status"""
    try:
        if args.list_repositories:
            response = await service.list_repositories(ListRepositoriesRequest(base_url, credentials))
            for repository in response.repositories:
                print(repository)

        if args.sync:
            result = await service.sync_repository(SyncRepositoryRequest(base_url, credentials, args.sync))
            if base_url != MOCK_BASE_URL:
                config_manager.save_server_config(base_url, credentials.username, last_repository=args.sync)
            print(f"{result.message} - fetched {result.fetched} items in {result.duration_ms}ms")

        if args.show_page is not None:
            page = service.get_page(GetPageRequest(args.show_page, page_size))
            for record in page.records:
                print(f"{record.group_id}:{record.artifact_id}:{record.version}\t"
                      f"{format_timestamp(record.last_updated_millis)}")
            print(f"Page {page.page} of {page.total_pages} ({page.total} artifacts)  {window_to_text(page.window)}")
    except CatalogError as e:
        debug_logger.error("Headless command failed", error_type=type(e).__name__, error=str(e))
        print(f"Error: {describe_error(e)}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)

    # Initialize debug logging if requested
    global debug_logger
    debug_enabled = args.debug or args.verbose_debug
    debug_logger = TUIDebugLogger(enabled=debug_enabled, verbose=args.verbose_debug, debug_file_path=args.debug_location)

    debug_logger.debug("Starting Artifactory Card Catalog",
                       debug_enabled=debug_enabled,
                       verbose_debug=args.verbose_debug)

    config_manager = ConfigManager()
    settings = config_manager.get_app_settings()

    # Fall back to the most recently used server
    saved_servers = config_manager.list_configured_servers()
    saved_server = saved_servers[-1] if saved_servers else {}
    if args.url:
        saved_server = config_manager.get_server_config(args.url) or {}

    mock_mode = args.mock or settings.get("mock_mode", False)
    base_url = args.url or saved_server.get("url")
    if not base_url:
        debug_logger.debug("No server configured, defaulting to mock mode")
        mock_mode = True

    manager = ArtifactoryManager(timeout=settings.get("request_timeout", 30),
                                 verify_ssl=settings.get("verify_ssl", True))
    manager.set_tui_debug_logger(debug_logger)

    if mock_mode:
        base_url = MOCK_BASE_URL
        credentials = ArtifactoryCredentials(username="mock", api_key="mock")
        manager.transport = MockArtifactory().transport()
    else:
        base_url = sanitize_url(base_url)
        credentials = ArtifactoryCredentials(
            username=args.username or saved_server.get("username", ""),
            api_key=args.api_key or os.environ.get("ARTIFACTORY_API_KEY", ""),
        )

    page_size = args.page_size or resolve_page_size(settings.get("default_page_size"))
    database_path = args.database or config_manager.get_database_path()

    debug_logger.debug("Configuration resolved",
                       base_url=base_url,
                       username=credentials.username,
                       api_key=credentials.api_key,
                       mock_mode=mock_mode,
                       database_path=database_path,
                       page_size=page_size)

    try:
        store = CatalogStore(database_path)
        service = CatalogService(store, manager,
                                 page_window_radius=settings.get("page_window_radius", 2),
                                 tui_debug_logger=debug_logger)
        service.start()
    except StorageError as e:
        print(f"Error: {describe_error(e)}", file=sys.stderr)
        return 1

    try:
        if args.list_repositories or args.sync or args.show_page is not None:
            return asyncio.run(run_headless(args, service, base_url, credentials, config_manager, page_size))

        app = ArtifactoryCardCatalog(service, base_url, credentials, config_manager,
                                     page_size=page_size,
                                     initial_repository=args.repository or saved_server.get("last_repository"),
                                     mock_mode=mock_mode)
        app.run()
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
