"""
Debug Console Screen

Lists the Artifactory calls recorded by the ArtifactoryManager, newest last,
with the full record of the highlighted call beside the list.
"""

import shlex
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header, Static

from artifactory_client import ArtifactoryManager

MAX_HEADERS_SHOWN = 5


def split_call_url(url: str) -> Tuple[str, str]:
    """(server, endpoint) for a recorded call URL"""
    if "/artifactory/" in url:
        server, endpoint = url.split("/artifactory/", 1)
        return server, "/artifactory/" + endpoint

    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}", parsed.path
    return "Unknown", url


def format_status(status_code: int) -> str:
    if status_code == 0:
        return "❌ ERR"
    if 200 <= status_code < 300:
        return f"✅ {status_code}"
    return f"⚠ {status_code}"


def format_size(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.1f}KB" if size_bytes > 1024 else f"{size_bytes}B"


def _escape_markup(text: Any) -> str:
    return str(text).replace("[", "\\[")


def curl_command(call: Dict[str, Any]) -> str:
    """Equivalent curl invocation, with the credentials left as shell variables"""
    method = call.get("method", "GET")
    url = shlex.quote(call.get("url", ""))
    body = call.get("request_body")
    if body:
        return f"curl -X {method} -u \"$USER:$API_KEY\" -H \"Content-Type: text/plain\" -d {shlex.quote(body)} {url}"
    return f"curl -X {method} -u \"$USER:$API_KEY\" -i {url}"


def render_call_details(call: Optional[Dict[str, Any]]) -> str:
    """Text shown in the details panel for one call record"""
    if not call:
        return "Select an API call to view details"

    status_code = call.get("status_code", 0)
    lines = [
        f"Method: {call.get('method', 'UNKN')}",
        f"URL: {call.get('url', 'Unknown')}",
        f"{'✅' if 200 <= status_code < 300 else '❌'} HTTP Status: {status_code}",
        f"Duration: {call.get('duration_ms', 'Unknown')}ms",
        f"Size: {call.get('size_bytes', 'Unknown')} bytes",
        f"Time: {call.get('timestamp', 'Unknown')}",
        "",
        "cURL Command:",
        curl_command(call),
    ]

    headers = call.get("headers") or {}
    if headers:
        lines += ["", "Headers:"]
        lines += [f"{name}: {value}" for name, value in list(headers.items())[:MAX_HEADERS_SHOWN]]
        if len(headers) > MAX_HEADERS_SHOWN:
            lines.append(f"... and {len(headers) - MAX_HEADERS_SHOWN} more")

    lines += ["", "Response Preview:", str(call.get("content_preview") or "No content")]
    return _escape_markup("\n".join(lines))


class CallDetailsPanel(Static):
    """Right-hand panel with the record of one call"""

    def show_call(self, call: Optional[Dict[str, Any]]) -> None:
        self.update(render_call_details(call))


class DebugConsoleScreen(Screen):
    """Recorded Artifactory calls, for troubleshooting auth and AQL problems"""

    CSS = """
    Screen {
        layout: horizontal;
    }

    #call_list {
        width: 60%;
        border: solid $primary;
        margin: 1;
    }

    #call_details {
        width: 40%;
        border: solid $secondary;
        margin: 1;
        padding: 1;
    }
    """

    BINDINGS = [
        ("escape", "back", "Back"),
        ("backspace", "back", "Back"),
        ("ctrl+q", "quit", "Quit"),
        ("f5", "refresh", "Refresh"),
        ("ctrl+x", "purge", "Purge All"),
    ]

    def __init__(self, manager: ArtifactoryManager, **kwargs):
        super().__init__(**kwargs)
        self.manager = manager
        self.calls = []

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal():
            call_table = DataTable(id="call_list", cursor_type="row")
            call_table.add_columns("Time", "Method", "Server", "Endpoint", "Status", "Size", "Duration")
            yield call_table
            yield CallDetailsPanel(id="call_details")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "Debug Console - Artifactory Calls"
        self.load_calls()

    def load_calls(self) -> None:
        """Rebuild the table from the manager's call log"""
        call_table = self.query_one("#call_list", DataTable)
        call_table.clear()
        self.calls = list(self.manager.api_call_log)

        for call in self.calls:
            server, endpoint = split_call_url(call.get("url", ""))
            call_table.add_row(
                call.get("timestamp", "Unknown"),
                call.get("method", "UNKN"),
                server,
                endpoint,
                format_status(call.get("status_code", 0)),
                format_size(call.get("size_bytes", 0)),
                f"{call.get('duration_ms', 0):,}ms",
            )

        details_panel = self.query_one("#call_details", CallDetailsPanel)
        if self.calls:
            call_table.move_cursor(row=len(self.calls) - 1)
            details_panel.show_call(self.calls[-1])
        else:
            details_panel.show_call(None)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if 0 <= event.cursor_row < len(self.calls):
            self.query_one("#call_details", CallDetailsPanel).show_call(self.calls[event.cursor_row])

    def action_refresh(self) -> None:
        self.load_calls()
        self.notify("API call list refreshed")

    def action_back(self) -> None:
        self.app.pop_screen()

    def action_purge(self) -> None:
        self.manager.api_call_log.clear()
        self.notify("API call log purged", severity="warning")
        self.load_calls()

    def action_quit(self) -> None:
        self.app.exit()
