# tests/services/test_github_api.py

import json

import httpx
import pytest

from releasemirror.infrastructure.error_handler import SourceUnavailable
from releasemirror.services.github_api import GitHubReleaseReader

# Mark all tests in this file as asyncio
pytestmark = pytest.mark.asyncio


# ---- Fixtures and Test Helpers ----

def make_item(n, draft=False):
    """Return a GitHub release payload published on day ``n`` of June 2024."""
    return {
        "id": n,
        "tag_name": f"v{n}",
        "name": f"Release {n}",
        "body": f"Notes {n}",
        "draft": draft,
        "prerelease": False,
        "target_commitish": "main",
        "published_at": None if draft else f"2024-06-{n:02d}T12:00:00Z",
        "assets": [
            {
                "name": "app.exe",
                "size": 100 + n,
                "browser_download_url": f"https://github.com/octo/app/releases/download/v{n}/app.exe",
            }
        ],
    }


class FakeGitHub:
    """Serves releases newest first in pages, recording each request."""

    def __init__(self, items, status=200, body=None):
        self.items = items
        self.status = status
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, text="rate limited")
        if self.body is not None:
            return httpx.Response(200, content=self.body)
        per_page = int(request.url.params["per_page"])
        page = int(request.url.params["page"])
        start = (page - 1) * per_page
        return httpx.Response(200, json=self.items[start:start + per_page])


def make_reader(fake, token=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    return GitHubReleaseReader(client, token=token)


## GitHubReleaseReader Tests
# ------------------------------

async def test_latest_releases_returns_newest_first():
    fake = FakeGitHub([make_item(n) for n in (3, 2, 1)])

    releases = await make_reader(fake).latest_releases("octo", "app", 5)

    assert [r.tag_name for r in releases] == ["v3", "v2", "v1"]
    assert releases[0].attachments[0].size == 103
    assert releases[0].attachments[0].download_url.endswith("/v3/app.exe")
    assert releases[0].published_at.year == 2024


async def test_latest_releases_paginates_until_count_collected():
    items = [make_item(n) for n in range(25, 0, -1)]
    fake = FakeGitHub(items)
    reader = make_reader(fake)

    releases = await reader.latest_releases("octo", "app", 3)

    assert [r.tag_name for r in releases] == ["v25", "v24", "v23"]
    assert len(fake.requests) == 1
    assert fake.requests[0].url.params["per_page"] == "3"
    assert fake.requests[0].url.path == "/repos/octo/app/releases"


async def test_latest_releases_stops_on_short_page():
    fake = FakeGitHub([make_item(n) for n in (5, 4, 3, 2, 1)])

    releases = await make_reader(fake).latest_releases("octo", "app", 150)

    assert len(releases) == 5
    assert len(fake.requests) == 1
    assert fake.requests[0].url.params["per_page"] == "100"


async def test_latest_releases_skips_drafts_and_fetches_next_page():
    items = [make_item(9, draft=True)] + [make_item(n) for n in (4, 3, 2, 1)]
    fake = FakeGitHub(items)

    releases = await make_reader(fake).latest_releases("octo", "app", 2)

    assert [r.tag_name for r in releases] == ["v4", "v3"]
    assert [r.url.params["page"] for r in fake.requests] == ["1", "2"]


async def test_token_is_sent_as_bearer_credential():
    fake = FakeGitHub([make_item(1)])

    await make_reader(fake, token="ghp_secret").latest_releases("octo", "app", 1)

    headers = fake.requests[0].headers
    assert headers["Authorization"] == "Bearer ghp_secret"
    assert headers["User-Agent"] == "release-mirror"


async def test_no_token_sends_no_authorization():
    fake = FakeGitHub([make_item(1)])

    await make_reader(fake).latest_releases("octo", "app", 1)

    assert "Authorization" not in fake.requests[0].headers


async def test_error_status_raises_source_unavailable():
    fake = FakeGitHub([], status=403)

    with pytest.raises(SourceUnavailable) as exc_info:
        await make_reader(fake).latest_releases("octo", "app", 5)
    assert "403" in str(exc_info.value)


@pytest.mark.parametrize("body", [b"<html>", json.dumps({"message": "x"}).encode(), b'[{"name": "no tag"}]'])
async def test_malformed_payload_raises_source_unavailable(body):
    fake = FakeGitHub([], body=body)

    with pytest.raises(SourceUnavailable):
        await make_reader(fake).latest_releases("octo", "app", 5)


async def test_transport_error_raises_source_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    reader = GitHubReleaseReader(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(SourceUnavailable) as exc_info:
        await reader.latest_releases("octo", "app", 5)
    assert isinstance(exc_info.value.original_error, httpx.ConnectError)
