"""Tests for the debug console formatting helpers."""

import shlex

from debug_console import curl_command, format_size, format_status, render_call_details, split_call_url


def test_split_call_url():
    assert split_call_url("https://artifactory.example.com/artifactory/api/search/aql") == (
        "https://artifactory.example.com", "/artifactory/api/search/aql")
    assert split_call_url("https://other.example.com/api/v1") == ("https://other.example.com", "/api/v1")
    assert split_call_url("not a url") == ("Unknown", "not a url")


def test_status_and_size_columns():
    assert format_status(200) == "✅ 200"
    assert format_status(0) == "❌ ERR"
    assert format_status(401) == "⚠ 401"
    assert format_size(512) == "512B"
    assert format_size(2048) == "2.0KB"


def test_details_for_aql_call():
    call = {
        "url": "https://artifactory.example.com/artifactory/api/search/aql",
        "method": "POST",
        "status_code": 200,
        "duration_ms": 42,
        "size_bytes": 120,
        "timestamp": "10:00:00.000",
        "request_body": 'items.find({"repo": "libs-release-local"})',
        "headers": {f"X-Header-{n}": str(n) for n in range(7)},
        "content_preview": '{"results": [{"path": "com/example"}]}',
    }

    text = render_call_details(call)

    assert "-d 'items.find({\"repo\": \"libs-release-local\"})'" in text
    assert "... and 2 more" in text
    # Square brackets would otherwise be read as Rich markup
    assert '{"results": \\[{"path"' in text
    assert "API_KEY\"" in text


def test_details_without_selection():
    assert render_call_details(None) == "Select an API call to view details"


def test_curl_command_survives_quotes_in_the_body():
    call = {
        "url": "https://artifactory.example.com/artifactory/api/search/aql",
        "method": "POST",
        "request_body": "items.find({\"repo\": \"team's-local\"})",
    }

    argv = shlex.split(curl_command(call))

    assert argv[argv.index("-d") + 1] == "items.find({\"repo\": \"team's-local\"})"
    assert argv[-1] == "https://artifactory.example.com/artifactory/api/search/aql"
