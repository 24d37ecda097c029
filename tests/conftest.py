"""
Shared fixtures for bbserver tests.

FakeHttp stands in for infra.HttpClient: it serves canned responses by
exact URL and records every URL requested.
"""

import json

import pytest

from bbserver.config import DriverConfig
from bbserver.exit_codes import TransportError
from bbserver.infra.http_client import HttpResponse
from bbserver.pagination import page_url

DOMAINS = (
    'mycompany.com/bitbucket',
    'bitbucket.mycompany.com',
    'stash.mycompany.com',
    'othercompany.com/nested/bitbucket',
    'bitbucket.mycompany.local',
    'stash.mycompany.local',
)

API = 'https://bitbucket.mycompany.com/rest/api/1.0/projects/project/repos/repo'
BROWSE = 'https://bitbucket.mycompany.com/projects/project/repos/repo/browse'
REPO_URL = 'https://bitbucket.mycompany.com/scm/project/repo.git'

REPO_DATA = {
    "slug": "repo",
    "name": "repo",
    "scmId": "git",
    "project": {"key": "project"},
    "links": {
        "clone": [
            {"href": "ssh://git@bitbucket.mycompany.com:7999/project/repo.git", "name": "ssh"},
            {"href": "https://jdoe@bitbucket.mycompany.com/scm/project/repo.git", "name": "http"},
        ],
        "self": [{"href": BROWSE}],
    },
}


class FakeHttp:
    """In-memory transport keyed by URL."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, url, payload=None, status=200, body=None):
        if body is None:
            body = json.dumps(payload) if payload is not None else ''
        if isinstance(body, str):
            body = body.encode('utf-8')
        self.routes[url] = (status, body)
        return self

    def add_refs(self, resource_url, pages):
        """Register paginated ref listings; pages is a list of {name: commit} dicts."""
        start = 0
        for index, refs in enumerate(pages):
            last = index == len(pages) - 1
            payload = {
                "values": [{"displayId": k, "latestCommit": v} for k, v in refs.items()],
                "isLastPage": last,
            }
            if not last:
                payload["nextPageStart"] = start + len(refs)
            self.add(page_url(resource_url, start), payload)
            start += len(refs)
        return self

    def fetch(self, url):
        self.calls.append(url)
        if url not in self.routes:
            raise TransportError(f"No route for {url}", url=url, status_code=404)
        status, body = self.routes[url]
        if status >= 400:
            raise TransportError(f"HTTP {status} for {url}", url=url, status_code=status)
        return HttpResponse(url=url, status_code=status, body=body)


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def driver_config(tmp_path):
    return DriverConfig(
        bitbucket_server_domains=DOMAINS,
        cache_repo_dir=tmp_path / 'cache',
    )


@pytest.fixture
def repo_http(fake_http):
    """Transport for a healthy git repository with two tags and two branches."""
    fake_http.add(API, REPO_DATA)
    fake_http.add(f"{API}/branches/default", {"id": "refs/heads/main", "displayId": "main"})
    fake_http.add_refs(f"{API}/tags", [{"v1.0": "abc123", "v0.9": "0009aaa"}])
    fake_http.add_refs(f"{API}/branches", [{"main": "fff000", "feature/login": "bbb222"}])
    return fake_http
