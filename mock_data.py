"""
Mock Artifactory for Development and Testing

An in-process stand-in for the two Artifactory endpoints the catalog uses,
served through httpx.MockTransport so the real client code runs unchanged.
"""

import base64
import json
import re
from typing import Any, Dict, List, Optional

import httpx

MOCK_BASE_URL = "https://artifactory.mock"

_AQL_REPO_PATTERN = re.compile(r'"repo"\s*:\s*"((?:[^"\\]|\\.)*)"')


class MockArtifactory:
    """Mock data provider for Artifactory API responses"""

    def __init__(self, repositories: Optional[Dict[str, List[Dict[str, Any]]]] = None,
                 username: Optional[str] = None, api_key: Optional[str] = None):
        self.repositories = repositories if repositories is not None else self._default_repositories()
        # When set, requests must carry exactly these basic credentials
        self.username = username
        self.api_key = api_key
        self.requests: List[httpx.Request] = []

    def _default_repositories(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "libs-release-local": self._generate_maven_items(
                groups=["com/example", "com/example/platform", "org/acme/tools"],
                artifacts=["core", "api", "client", "server", "utils"],
                versions=["1.0.0", "1.1.0", "1.2.0", "2.0.0"],
            ),
            "libs-snapshot-local": self._generate_maven_items(
                groups=["com/example"],
                artifacts=["core", "api"],
                versions=["2.1.0-SNAPSHOT", "2.2.0-SNAPSHOT"],
            ),
            "plugins-release-local": self._generate_maven_items(
                groups=["org/apache/maven/plugins"],
                artifacts=["maven-compiler-plugin", "maven-surefire-plugin"],
                versions=["3.11.0", "3.2.5"],
            ),
            "generic-local": [
                # Not Maven layouts; the catalog skips them
                {"repo": "generic-local", "path": ".", "name": "README.md", "updated": "2024-02-01T09:00:00.000Z"},
                {"repo": "generic-local", "path": "installers/windows", "name": "setup.exe", "updated": "2024-02-03T12:30:00.000Z"},
                {"repo": "generic-local", "path": "tools/cli/1.4.2", "name": "cli.tar.gz", "updated": "not a date"},
                {"repo": "generic-local", "path": "tools/cli/1.5.0", "name": "cli.tar.gz", "updated": "2024-03-10T08:15:00.000Z"},
            ],
        }

    def _generate_maven_items(self, groups: List[str], artifacts: List[str], versions: List[str]) -> List[Dict[str, Any]]:
        """Generate AQL result rows, a jar and a pom per version folder"""
        items = []
        day = 1
        for group in groups:
            for artifact in artifacts:
                for version in versions:
                    path = f"{group}/{artifact}/{version}"
                    updated = f"2024-01-{(day % 28) + 1:02d}T10:{day % 60:02d}:00.000Z"
                    for extension in ("jar", "pom"):
                        items.append({
                            "repo": "",
                            "path": path,
                            "name": f"{artifact}-{version}.{extension}",
                            "type": "file",
                            "size": 1024 * (day % 50 + 1),
                            "created": updated,
                            "updated": updated,
                        })
                    day += 1
        return items

    def _authorized(self, request: httpx.Request) -> bool:
        if self.username is None:
            return True
        credentials = base64.b64encode(f"{self.username}:{self.api_key or ''}".encode()).decode()
        return request.headers.get("Authorization") == f"Basic {credentials}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        """Answer one request the way Artifactory would"""
        self.requests.append(request)

        if not self._authorized(request):
            return httpx.Response(401, json={"errors": [{"status": 401, "message": "Bad credentials"}]})

        path = request.url.path
        if request.method == "GET" and path == "/artifactory/api/repositories":
            listing = [
                {"key": key, "type": "LOCAL", "packageType": "maven" if key != "generic-local" else "generic",
                 "url": f"{MOCK_BASE_URL}/artifactory/{key}"}
                for key in self.repositories
            ]
            return httpx.Response(200, json=listing)

        if request.method == "POST" and path == "/artifactory/api/search/aql":
            query = request.content.decode()
            match = _AQL_REPO_PATTERN.search(query)
            if not query.startswith("items.find(") or match is None:
                return httpx.Response(400, text=f"Failed to parse query: {query}")

            repo_key = re.sub(r"\\(.)", r"\1", match.group(1))
            results = [dict(item, repo=repo_key) for item in self.repositories.get(repo_key, [])]
            body = {
                "results": results,
                "range": {"start_pos": 0, "end_pos": len(results), "total": len(results)},
            }
            return httpx.Response(200, content=json.dumps(body).encode(),
                                  headers={"Content-Type": "application/json"})

        return httpx.Response(404, json={"errors": [{"status": 404, "message": "Not Found"}]})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
