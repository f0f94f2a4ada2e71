"""
Artifactory HTTP Client

Talks to the two Artifactory endpoints the catalog needs: the repository
listing and the AQL search. ArtifactoryClient does the HTTP work and returns
call records; ArtifactoryManager keeps those records for the debug console and
turns them into results or typed errors.
"""

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from artifact_coordinates import RawCatalogItem
from cancellation import CancellationToken
from catalog_errors import AuthError, MalformedResponseError, NetworkError, RemoteError

REPOSITORIES_ENDPOINT = "/artifactory/api/repositories"
AQL_ENDPOINT = "/artifactory/api/search/aql"


def sanitize_url(url: str) -> str:
    """Trim whitespace and trailing slashes from a user-supplied base URL"""
    sanitized = url.strip()
    while sanitized.endswith("/"):
        sanitized = sanitized[:-1]
    if sanitized.startswith("/") and not sanitized.startswith("http"):
        sanitized = sanitized.lstrip("/")
    return sanitized


def escape_aql_string(value: str) -> str:
    """Escape a value for use inside a double-quoted AQL string literal"""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_aql_query(repository_key: str) -> str:
    """AQL expression listing every item of one repository"""
    return 'items.find({"repo": "%s"})' % escape_aql_string(repository_key)


@dataclass(frozen=True)
class ArtifactoryCredentials:
    """HTTP Basic credentials; the API key is kept out of repr()"""

    username: str
    api_key: str = field(repr=False)


class ArtifactoryClient:
    """Async HTTP client for the Artifactory REST API with basic auth"""

    def __init__(self, base_url: str, username: str = None, api_key: str = None, timeout: int = 30,
                 verify_ssl: bool = True, transport: Optional[httpx.AsyncBaseTransport] = None,
                 tui_debug_logger=None):
        self.base_url = sanitize_url(base_url)
        self.timeout = timeout
        self.session = None
        self.username = username
        self.api_key = api_key
        self.verify_ssl = verify_ssl
        self.transport = transport
        self.tui_debug_logger = tui_debug_logger

    def _filter_response_headers(self, headers: dict) -> dict:
        """Filter response headers to exclude potentially sensitive information

        Excludes: Set-Cookie, Authorization, custom X- headers with auth/token/key/secret
        Includes: content headers, caching, Artifactory X- headers, rate limiting
        """
        safe_headers = {
            'content-type', 'content-length', 'content-encoding',
            'date', 'cache-control', 'expires', 'last-modified',
            'location', 'server',
            'x-ratelimit-limit', 'x-ratelimit-remaining', 'x-ratelimit-reset',
            'www-authenticate',
            'strict-transport-security', 'x-content-type-options',
        }

        filtered = {}
        sensitive_headers_found = []

        for key, value in headers.items():
            if key.lower() in safe_headers:
                filtered[key] = value
            elif key.lower().startswith('x-') and not any(sensitive in key.lower() for sensitive in ['auth', 'token', 'key', 'secret']):
                # Artifactory sends X-Artifactory-Id, X-Artifactory-Node-Id, ...
                filtered[key] = value
            else:
                sensitive_headers_found.append(key.lower())

        if sensitive_headers_found and self.tui_debug_logger:
            self.tui_debug_logger.debug("Response headers filtered for security",
                                        filtered_headers=sensitive_headers_found,
                                        total_headers=len(headers),
                                        safe_headers_included=len(filtered))

        return filtered

    async def __aenter__(self):
        """Async context manager entry"""
        session_kwargs = {
            "timeout": self.timeout,
            "follow_redirects": True,
            "headers": {"User-Agent": "Artifactory-Card-Catalog/0.1.0"},
        }
        if self.transport is not None:
            session_kwargs["transport"] = self.transport
        else:
            session_kwargs["verify"] = self.verify_ssl
        self.session = httpx.AsyncClient(**session_kwargs)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.session:
            await self.session.aclose()

    def _get_basic_auth_header(self) -> Dict[str, str]:
        """Generate basic auth header"""
        if not self.username or not self.api_key:
            return {}

        credentials = base64.b64encode(f"{self.username}:{self.api_key}".encode()).decode()
        return {"Authorization": f"Basic {credentials}"}

    @staticmethod
    def _timestamp() -> str:
        return time.strftime("%H:%M:%S.") + f"{int((time.time() % 1) * 1000):03d}"

    async def _make_request(self, method: str, endpoint: str, content: str = None,
                            headers: Dict[str, str] = None) -> Dict[str, Any]:
        """Make HTTP request and return a call record

        Transport failures are reported as status_code 0 with an "error" key
        instead of raising, so the failed call still reaches the call log.
        """
        url = self.base_url + endpoint
        start_time = time.time()

        request_headers = dict(headers or {})
        request_headers.update(self._get_basic_auth_header())

        if self.tui_debug_logger:
            self.tui_debug_logger.debug("Sending Artifactory request",
                                        method=method,
                                        url=url,
                                        has_credentials=bool(self.username and self.api_key),
                                        body_size=len(content) if content else 0)

        try:
            response = await self.session.request(method, url, content=content, headers=request_headers)
        except httpx.HTTPError as e:
            duration = int((time.time() - start_time) * 1000)

            error_details = f"Error: {str(e) or type(e).__name__}"
            if "certificate" in str(e).lower() or "ssl" in str(e).lower():
                error_details += " (TLS/SSL certificate issue)"
            elif isinstance(e, httpx.TimeoutException):
                error_details += f" (no response within {self.timeout}s)"

            if self.tui_debug_logger:
                self.tui_debug_logger.debug("Artifactory request failed",
                                            method=method,
                                            url=url,
                                            error=error_details,
                                            duration_ms=duration)

            return {
                "url": url,
                "method": method,
                "status_code": 0,
                "duration_ms": duration,
                "size_bytes": 0,
                "headers": {},
                "request_body": content or "",
                "content_preview": error_details,
                "response_content_full": error_details,
                "timestamp": self._timestamp(),
                "error": error_details,
            }

        duration = int((time.time() - start_time) * 1000)
        text = response.text or ""

        response_data = {
            "url": url,
            "method": method,
            "status_code": response.status_code,
            "duration_ms": duration,
            "size_bytes": len(response.content),
            "headers": self._filter_response_headers(dict(response.headers)),
            "request_body": content or "",
            "content_preview": text[:500],
            "timestamp": self._timestamp(),
        }

        if response.is_success:
            try:
                response_data["json"] = response.json()
                response_data["json_valid"] = True
            except (json.JSONDecodeError, UnicodeDecodeError):
                response_data["json"] = None
                response_data["json_valid"] = False
        else:
            response_data["response_content_full"] = text

        if self.tui_debug_logger:
            self.tui_debug_logger.debug("Artifactory response received",
                                        method=method,
                                        url=url,
                                        status_code=response.status_code,
                                        duration_ms=duration,
                                        size_bytes=response_data["size_bytes"])

        return response_data

    async def get_repositories(self) -> Dict[str, Any]:
        """List repositories (GET /artifactory/api/repositories)"""
        return await self._make_request("GET", REPOSITORIES_ENDPOINT)

    async def search_aql(self, query: str) -> Dict[str, Any]:
        """Run an AQL query (POST /artifactory/api/search/aql)"""
        return await self._make_request("POST", AQL_ENDPOINT, content=query,
                                        headers={"Content-Type": "text/plain"})


class ArtifactoryManager:
    """Runs catalog operations against Artifactory servers and keeps the API call log"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: int = 30,
                 verify_ssl: bool = True):
        self.api_call_log = []
        self.tui_debug_logger = None
        self.transport = transport
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    def set_tui_debug_logger(self, debug_logger):
        """Set the TUI debug logger for request logging"""
        self.tui_debug_logger = debug_logger

    def add_api_call(self, call_data: Dict[str, Any]):
        """Add API call to debug log"""
        self.api_call_log.append(call_data)
        # Keep only last 100 calls
        if len(self.api_call_log) > 100:
            self.api_call_log = self.api_call_log[-100:]

    def _client(self, base_url: str, credentials: ArtifactoryCredentials) -> ArtifactoryClient:
        return ArtifactoryClient(
            base_url=base_url,
            username=credentials.username,
            api_key=credentials.api_key,
            timeout=self.timeout,
            verify_ssl=self.verify_ssl,
            transport=self.transport,
            tui_debug_logger=self.tui_debug_logger,
        )

    def _raise_for_call(self, call: Dict[str, Any]) -> None:
        """Turn a failed call record into the matching typed error"""
        status_code = call["status_code"]
        url = call["url"]

        if status_code == 0:
            raise NetworkError(call.get("error", "Connection failed"), url=url)
        if status_code in (401, 403):
            raise AuthError(status_code, call.get("response_content_full", ""), url=url)
        if not 200 <= status_code < 300:
            raise RemoteError(status_code, call.get("response_content_full", ""), url=url)
        if not call.get("json_valid"):
            raise MalformedResponseError(f"Response from {url} is not valid JSON", url=url)

    async def list_repositories(self, base_url: str, credentials: ArtifactoryCredentials) -> List[str]:
        """Return the key of every repository, in server order"""
        async with self._client(base_url, credentials) as client:
            call = await client.get_repositories()
        self.add_api_call(call)
        self._raise_for_call(call)

        payload = call["json"]
        if not isinstance(payload, list):
            raise MalformedResponseError(f"Expected a JSON array of repositories from {call['url']}",
                                         url=call["url"])

        keys = []
        for entry in payload:
            if not isinstance(entry, dict) or not isinstance(entry.get("key"), str):
                raise MalformedResponseError(f"Repository entry without a string key: {entry!r}",
                                             url=call["url"])
            keys.append(entry["key"])

        if self.tui_debug_logger:
            self.tui_debug_logger.debug("Repositories listed",
                                        base_url=base_url,
                                        repository_count=len(keys))
        return keys

    async def query_artifacts(self, base_url: str, credentials: ArtifactoryCredentials,
                              repository_key: str,
                              cancel_token: Optional[CancellationToken] = None) -> List[RawCatalogItem]:
        """Fetch every item of `repository_key` with one AQL search

        Raises SyncCancelledError if `cancel_token` fires while the request is
        in flight; the abandoned call is not logged.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        query = build_aql_query(repository_key)

        if self.tui_debug_logger:
            self.tui_debug_logger.debug("Running AQL query",
                                        base_url=base_url,
                                        repository=repository_key,
                                        query=query)

        async with self._client(base_url, credentials) as client:
            if cancel_token is not None:
                call = await cancel_token.guard(client.search_aql(query))
            else:
                call = await client.search_aql(query)
        self.add_api_call(call)
        self._raise_for_call(call)

        payload = call["json"]
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise MalformedResponseError(f"AQL response from {call['url']} has no 'results' array",
                                         url=call["url"])

        items = []
        for entry in results:
            if isinstance(entry, dict):
                items.append(RawCatalogItem(repository_key, entry.get("path"), entry.get("updated")))
            else:
                # Resolution rejects it and it is counted as skipped
                items.append(RawCatalogItem(repository_key, None, None))

        if self.tui_debug_logger:
            self.tui_debug_logger.debug("AQL query completed",
                                        repository=repository_key,
                                        result_count=len(items),
                                        duration_ms=call["duration_ms"])
        return items
