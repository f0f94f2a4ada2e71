"""Tests for the Artifactory HTTP client and manager."""

import asyncio
import base64
import json

import httpx
import pytest

from artifactory_client import (
    ArtifactoryCredentials,
    ArtifactoryManager,
    build_aql_query,
    escape_aql_string,
    sanitize_url,
)
from cancellation import CancellationToken
from catalog_errors import (
    AuthError,
    MalformedResponseError,
    NetworkError,
    RemoteError,
    SyncCancelledError,
)

BASE_URL = "https://artifactory.example.com"
CREDENTIALS = ArtifactoryCredentials(username="deployer", api_key="AKCp8secretkey")


def _manager(handler):
    return ArtifactoryManager(transport=httpx.MockTransport(handler))


def test_sanitize_url():
    assert sanitize_url("  https://artifactory.example.com/  ") == "https://artifactory.example.com"
    assert sanitize_url("https://artifactory.example.com//") == "https://artifactory.example.com"
    assert sanitize_url("/artifactory.example.com") == "artifactory.example.com"


def test_aql_query_for_plain_key():
    assert build_aql_query("libs-release-local") == 'items.find({"repo": "libs-release-local"})'


def test_aql_query_escapes_quotes_and_backslashes():
    assert escape_aql_string('a"b\\c') == 'a\\"b\\\\c'
    query = build_aql_query('x"}).include("*')
    assert query == 'items.find({"repo": "x\\"}).include(\\"*"})'


def test_credentials_repr_hides_api_key():
    assert "AKCp8secretkey" not in repr(CREDENTIALS)


def test_list_repositories_keeps_server_order_and_sends_basic_auth():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"key": "zeta"}, {"key": "alpha", "type": "LOCAL"}, {"key": "mid"}])

    manager = _manager(handler)
    assert asyncio.run(manager.list_repositories(BASE_URL + "/", CREDENTIALS)) == ["zeta", "alpha", "mid"]

    request = seen[0]
    assert request.method == "GET"
    assert str(request.url) == BASE_URL + "/artifactory/api/repositories"
    expected = base64.b64encode(b"deployer:AKCp8secretkey").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.parametrize("status", [401, 403])
def test_auth_failures(status):
    manager = _manager(lambda request: httpx.Response(status, text="Bad credentials"))
    with pytest.raises(AuthError) as excinfo:
        asyncio.run(manager.list_repositories(BASE_URL, CREDENTIALS))
    assert excinfo.value.status == status
    assert not excinfo.value.retryable


def test_server_error_is_retryable_remote_error():
    manager = _manager(lambda request: httpx.Response(503, text="Service Unavailable"))
    with pytest.raises(RemoteError) as excinfo:
        asyncio.run(manager.list_repositories(BASE_URL, CREDENTIALS))
    assert excinfo.value.status == 503
    assert excinfo.value.body == "Service Unavailable"
    assert excinfo.value.retryable


def test_not_found_is_not_retryable():
    manager = _manager(lambda request: httpx.Response(404, text="Not Found"))
    with pytest.raises(RemoteError) as excinfo:
        asyncio.run(manager.query_artifacts(BASE_URL, CREDENTIALS, "libs-release-local"))
    assert not excinfo.value.retryable


def test_connection_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    manager = _manager(handler)
    with pytest.raises(NetworkError):
        asyncio.run(manager.list_repositories(BASE_URL, CREDENTIALS))

    # The failed call still reaches the debug log
    assert manager.api_call_log[-1]["status_code"] == 0


def test_repositories_must_be_an_array():
    manager = _manager(lambda request: httpx.Response(200, json={"key": "libs"}))
    with pytest.raises(MalformedResponseError):
        asyncio.run(manager.list_repositories(BASE_URL, CREDENTIALS))


def test_repository_entries_need_a_key():
    manager = _manager(lambda request: httpx.Response(200, json=[{"key": "ok"}, {"type": "LOCAL"}]))
    with pytest.raises(MalformedResponseError):
        asyncio.run(manager.list_repositories(BASE_URL, CREDENTIALS))


def test_non_json_body_is_malformed():
    manager = _manager(lambda request: httpx.Response(200, text="<html>login</html>"))
    with pytest.raises(MalformedResponseError):
        asyncio.run(manager.query_artifacts(BASE_URL, CREDENTIALS, "libs-release-local"))


def test_query_artifacts_posts_plain_text_aql():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"results": [
            {"repo": "libs-release-local", "path": "com/example/core/1.0.0", "name": "core-1.0.0.jar",
             "updated": "2024-01-01T00:00:00.000Z"},
            {"repo": "libs-release-local", "name": "orphan.txt"},
            "not-an-object",
        ]})

    manager = _manager(handler)
    items = asyncio.run(manager.query_artifacts(BASE_URL, CREDENTIALS, "libs-release-local"))

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == BASE_URL + "/artifactory/api/search/aql"
    assert request.headers["Content-Type"] == "text/plain"
    assert request.content.decode() == 'items.find({"repo": "libs-release-local"})'

    assert len(items) == 3
    assert items[0].path == "com/example/core/1.0.0"
    assert items[0].updated == "2024-01-01T00:00:00.000Z"
    assert items[0].repository_key == "libs-release-local"
    assert items[1].path is None and items[1].updated is None
    assert items[2].path is None


def test_query_artifacts_escapes_repository_key_in_body():
    seen = []

    def handler(request):
        seen.append(request.content.decode())
        return httpx.Response(200, json={"results": []})

    asyncio.run(_manager(handler).query_artifacts(BASE_URL, CREDENTIALS, 'evil"})'))
    assert seen == ['items.find({"repo": "evil\\"})"})']


@pytest.mark.parametrize("body", [{}, {"results": None}, {"results": {"path": "a/b/c"}}, []])
def test_results_must_be_an_array(body):
    manager = _manager(lambda request: httpx.Response(200, json=body))
    with pytest.raises(MalformedResponseError):
        asyncio.run(manager.query_artifacts(BASE_URL, CREDENTIALS, "libs-release-local"))


def test_api_call_log_filters_sensitive_headers():
    def handler(request):
        return httpx.Response(
            200,
            json=[{"key": "libs"}],
            headers={"Set-Cookie": "session=abc", "X-Artifactory-Id": "node1", "X-JFrog-Auth-Token": "t"},
        )

    manager = _manager(handler)
    asyncio.run(manager.list_repositories(BASE_URL, CREDENTIALS))

    call = manager.api_call_log[-1]
    assert call["method"] == "GET"
    assert call["status_code"] == 200
    header_names = {name.lower() for name in call["headers"]}
    assert "x-artifactory-id" in header_names
    assert "set-cookie" not in header_names
    assert "x-jfrog-auth-token" not in header_names
    assert "AKCp8secretkey" not in json.dumps(call, default=str)


def test_api_call_log_keeps_last_hundred():
    manager = ArtifactoryManager()
    for n in range(150):
        manager.add_api_call({"n": n})
    assert len(manager.api_call_log) == 100
    assert manager.api_call_log[0] == {"n": 50}


def test_cancelled_query_raises_and_is_not_logged():
    async def handler(request):
        await asyncio.sleep(30)
        return httpx.Response(200, json={"results": []})

    async def scenario():
        manager = _manager(handler)
        token = CancellationToken()
        task = asyncio.ensure_future(
            manager.query_artifacts(BASE_URL, CREDENTIALS, "libs-release-local", cancel_token=token))
        await asyncio.sleep(0.05)
        token.cancel()
        with pytest.raises(SyncCancelledError):
            await task
        return manager

    manager = asyncio.run(scenario())
    assert manager.api_call_log == []


def test_already_cancelled_token_sends_nothing():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    async def scenario():
        token = CancellationToken()
        token.cancel()
        await _manager(handler).query_artifacts(BASE_URL, CREDENTIALS, "libs", cancel_token=token)

    with pytest.raises(SyncCancelledError):
        asyncio.run(scenario())
    assert seen == []
