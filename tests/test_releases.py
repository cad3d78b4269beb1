"""Tests for the latest-release lookup."""

import json

import httpx
import pytest

from releases import ReleaseChecker

URL = "https://api.github.com/repos/n8n-io/n8n/releases/latest"


def checker_for(handler) -> ReleaseChecker:
    return ReleaseChecker(URL, transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "tag, expected",
    [
        ("n8n@1.70.2", "1.70.2"),
        ("v1.70.2", "1.70.2"),
        ("1.70.2", "1.70.2"),
        ("n8n@v1.70.2", "1.70.2"),
    ],
)
def test_normalize_tag(tag: str, expected: str) -> None:
    assert ReleaseChecker(URL).normalize_tag(tag) == expected


async def test_latest_version_from_tag_name() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"tag_name": "n8n@1.70.2", "name": "n8n@1.70.2"})

    result = await checker_for(handler).latest_version()

    assert result.available
    assert result.value == "1.70.2"
    assert str(requests[0].url) == URL


async def test_http_error_is_unavailable() -> None:
    result = await checker_for(lambda request: httpx.Response(403, json={"message": "rate limited"})).latest_version()

    assert not result.available
    assert result.or_default("unknown") == "unknown"


async def test_network_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await checker_for(handler).latest_version()

    assert result.failed


async def test_invalid_json_is_unavailable() -> None:
    result = await checker_for(lambda request: httpx.Response(200, text="<html>")).latest_version()

    assert result.failed


async def test_missing_tag_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps([{"tag_name": "n8n@1.0.0"}]))

    result = await checker_for(handler).latest_version()

    assert result.failed
