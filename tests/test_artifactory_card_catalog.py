"""Tests for the TUI helpers, the headless commands and the catalog screen."""

import asyncio
import logging

import httpx
import pytest
from textual.app import App
from textual.widgets import DataTable

import artifactory_card_catalog
from artifact_coordinates import CatalogRecord
from artifactory_card_catalog import (
    ArtifactoryCardCatalog,
    CatalogScreen,
    TUIDebugLogger,
    describe_error,
    parse_arguments,
    resolve_page_size,
    window_to_text,
)
from artifactory_client import ArtifactoryManager
from catalog_errors import AuthError, NetworkError, RemoteError, StorageError, SyncCancelledError
from catalog_service import CatalogService
from config_manager import ConfigManager
from mock_data import MOCK_BASE_URL, MockArtifactory
from pagination import compute_window


def test_window_text_with_both_ellipses():
    assert window_to_text(compute_window(5, 10)) == "‹ 1 … 3 4 [5] 6 7 … 10 ›"


def test_window_text_on_first_page():
    assert window_to_text(compute_window(1, 3)) == "[1] 2 3 ›"


def test_window_text_single_page():
    assert window_to_text(compute_window(1, 1)) == ""


def test_describe_error():
    assert "check username and API key" in describe_error(AuthError(401))
    assert describe_error(RemoteError(502, "Bad Gateway")) == "Artifactory error HTTP 502: Bad Gateway"
    assert describe_error(NetworkError("Connection refused")).startswith("Cannot reach Artifactory")
    assert "3 records were saved" in describe_error(StorageError("disk full", applied=3))
    assert describe_error(SyncCancelledError(applied=7)) == "Sync cancelled after saving 7 records"


def test_debug_logger_masks_secrets():
    tui_logger = TUIDebugLogger(enabled=False)
    assert tui_logger._mask_sensitive_data("api_key", "AKCp8secretkey") == "AKC...key"
    assert tui_logger._mask_sensitive_data("Authorization", "short") == "[REDACTED]"
    assert tui_logger._mask_sensitive_data("repository", "libs-release-local") == "libs-release-local"
    assert tui_logger._format("Sync", {"api_key": "x", "applied": 3}) == "Sync | api_key=[REDACTED], applied=3"


def test_repository_flag_only_preselects(capsys):
    with pytest.raises(SystemExit):
        parse_arguments(["--help"])
    help_text = " ".join(capsys.readouterr().out.split())
    assert "Repository to highlight when the TUI starts" in help_text

    args = parse_arguments(["--repository", "libs-release-local"])
    assert args.sync is None


def test_debug_logger_info_is_masked(tmp_path, caplog):
    caplog.set_level(logging.DEBUG, logger="TUI-Operations")
    tui_logger = TUIDebugLogger(enabled=True, debug_file_path=str(tmp_path / "debug.log"))

    tui_logger.info("Sync finished from TUI", repository="libs-release-local", api_key="AKCp8secretkey")

    assert "Sync finished from TUI | repository=libs-release-local, api_key=AKC...key" in caplog.text


def test_page_size_must_be_a_known_choice():
    assert parse_arguments(["--page-size", "25"]).page_size == 25
    with pytest.raises(SystemExit):
        parse_arguments(["--page-size", "7"])


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("ARTIFACTORY_API_KEY", raising=False)
    return tmp_path


def test_headless_list_repositories(isolated_home, capsys):
    database = isolated_home / "artifacts.db"
    assert artifactory_card_catalog.main(["--mock", "--database", str(database), "--list-repositories"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["libs-release-local", "libs-snapshot-local", "plugins-release-local", "generic-local"]


def test_headless_sync_then_show_page(isolated_home, capsys):
    database = str(isolated_home / "artifacts.db")

    assert artifactory_card_catalog.main(["--mock", "--database", database, "--sync", "libs-release-local"]) == 0
    assert "Synced 120 artifacts from libs-release-local" in capsys.readouterr().out

    assert artifactory_card_catalog.main(["--mock", "--database", database, "--show-page", "1"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("com.example:api:1.0.0\t")
    assert len(lines) == 11
    assert lines[-1].startswith("Page 1 of 6 (60 artifacts)")


def test_headless_error_goes_to_stderr(isolated_home, capsys):
    database = str(isolated_home / "artifacts.db")
    assert artifactory_card_catalog.main(["--mock", "--database", database, "--show-page", "0"]) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("Error: ")


class CatalogScreenApp(App):
    def __init__(self, service):
        super().__init__()
        self.service = service

    def on_mount(self) -> None:
        self.push_screen(CatalogScreen(self.service, page_size=10))


def test_catalog_screen_paging(service, store):
    store.upsert_batch([CatalogRecord("com.example", f"lib-{n:02d}", "1.0", n) for n in range(25)])

    async def scenario():
        app = CatalogScreenApp(service)
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.pause()
            screen = app.screen
            assert isinstance(screen, CatalogScreen)
            table = screen.query_one("#catalog_table", DataTable)
            assert screen.catalog_page.total == 25
            assert table.row_count == 10

            await pilot.press("]")
            await pilot.pause()
            assert screen.current_page == 2

            await pilot.press(">")
            await pilot.pause()
            assert screen.current_page == 3
            assert table.row_count == 5

            await pilot.press("p")
            await pilot.pause()
            assert screen.page_size == 25
            assert screen.current_page == 1
            assert table.row_count == 25

    asyncio.run(scenario())


@pytest.mark.parametrize("configured,expected", [(25, 25), (100, 100), (0, 10), (-5, 10), (7, 10), (None, 10), ("50", 10)])
def test_page_size_from_config_falls_back_to_a_known_choice(configured, expected):
    assert resolve_page_size(configured) == expected


def test_catalog_screen_survives_invalid_page_size(service):
    async def scenario():
        app = CatalogScreenApp(service)
        async with app.run_test() as pilot:
            await pilot.pause()
            screen = app.screen
            screen.page_size = 0
            await screen.load_page()
            await pilot.pause()
            assert isinstance(app.screen, CatalogScreen)

    asyncio.run(scenario())


def test_main_screen_syncs_one_repository_at_a_time(store, credentials, tmp_path):
    mock = MockArtifactory()

    async def handler(request):
        if request.method == "POST":
            await asyncio.sleep(30)
        return mock.handler(request)

    service = CatalogService(store, ArtifactoryManager(transport=httpx.MockTransport(handler)))
    service.start()

    async def scenario():
        app = ArtifactoryCardCatalog(service, MOCK_BASE_URL, credentials, ConfigManager(config_dir=tmp_path / "cfg"),
                                     mock_mode=True)
        async with app.run_test() as pilot:
            await pilot.pause()
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.repositories[:2] == ["libs-release-local", "libs-snapshot-local"]

            await pilot.press("s")
            await pilot.pause(0.05)
            assert service.active_syncs() == ["libs-release-local"]

            await pilot.press("down", "s")
            await pilot.pause(0.05)
            assert service.active_syncs() == ["libs-release-local"]
            assert "libs-snapshot-local" not in app.sync_status

            # x cancels the running sync even with another row highlighted
            await pilot.press("x")
            await pilot.pause(0.1)
            assert service.active_syncs() == []
            assert app.sync_status["libs-release-local"] == "Cancelled"
            assert app.syncing_repository is None

    asyncio.run(scenario())
