"""Fetches pages through the OxyLabs web scraper API."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable

import requests
from bs4 import BeautifulSoup
from requests.auth import HTTPBasicAuth

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
HEALTH_CHECK_URL = "https://httpbin.org/status/200"
DEFAULT_TIMEOUT = 180.0


class OxyLabsError(Exception):
    """Raised when a page cannot be fetched through OxyLabs."""


@dataclass(frozen=True)
class _Result:
    content: str
    status_code: int


def build_request(url: str) -> dict[str, Any]:
    """Build the API payload for one page, with HTML rendering enabled."""
    return {
        "source": "universal",
        "url": url,
        "user_agent": USER_AGENT,
        "render": "html",
        "context": [
            {"key": "follow_redirects", "value": True},
            {"key": "return_only_content", "value": True},
        ],
    }


def _parse_results(body: bytes) -> list[_Result]:
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise OxyLabsError(f"failed to parse OxyLabs response: {exc}") from exc
    if payload is None:
        return []
    if not isinstance(payload, dict):
        raise OxyLabsError("failed to parse OxyLabs response: expected an object")
    items = payload.get("results")
    if items is None:
        return []
    if not isinstance(items, list):
        raise OxyLabsError("failed to parse OxyLabs response: results is not a list")

    results = []
    for item in items:
        if item is None:
            results.append(_Result("", 0))
            continue
        if not isinstance(item, dict):
            raise OxyLabsError("failed to parse OxyLabs response: result is not an object")
        content = item.get("content")
        status = item.get("status_code")
        if content is None:
            content = ""
        if status is None:
            status = 0
        if not isinstance(content, str) or isinstance(status, bool) or not isinstance(status, int):
            raise OxyLabsError("failed to parse OxyLabs response: malformed result")
        results.append(_Result(content, status))
    return results


def _document(result: _Result) -> BeautifulSoup:
    if result.status_code != 200:
        raise OxyLabsError(f"target page returned status code: {result.status_code}")
    return BeautifulSoup(result.content, "html.parser")


class OxyLabsClient:
    """Client for the OxyLabs scraper API returning parsed HTML documents."""

    def __init__(
        self,
        username: str,
        password: str,
        endpoint: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._auth = HTTPBasicAuth(username, password)
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()

    def __enter__(self) -> OxyLabsClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _post(self, payload: Any) -> requests.Response:
        return self._session.post(
            self._endpoint, json=payload, auth=self._auth, timeout=self._timeout
        )

    def get(self, url: str) -> BeautifulSoup:
        """Fetch one page and return it parsed."""
        try:
            response = self._post(build_request(url))
        except requests.RequestException as exc:
            raise OxyLabsError(f"failed to perform request: {exc}") from exc

        if response.status_code != 200:
            raise OxyLabsError(f"unexpected status code {response.status_code}: {response.text}")

        results = _parse_results(response.content)
        if not results:
            raise OxyLabsError("no results returned from OxyLabs")
        return _document(results[0])

    def get_batch(
        self, urls: Iterable[str]
    ) -> tuple[dict[str, BeautifulSoup], dict[str, OxyLabsError]]:
        """Fetch several pages in one request; fall back to one request each if that fails."""
        urls = list(urls)
        try:
            response = self._post([build_request(url) for url in urls])
            results = _parse_results(response.content)
        except (requests.RequestException, OxyLabsError):
            return self._get_each(urls)

        docs: dict[str, BeautifulSoup] = {}
        errors: dict[str, OxyLabsError] = {}
        for url, result in zip(urls, results):
            try:
                docs[url] = _document(result)
            except OxyLabsError as exc:
                errors[url] = exc
        return docs, errors

    def _get_each(
        self, urls: list[str]
    ) -> tuple[dict[str, BeautifulSoup], dict[str, OxyLabsError]]:
        docs: dict[str, BeautifulSoup] = {}
        errors: dict[str, OxyLabsError] = {}
        for url in urls:
            try:
                docs[url] = self.get(url)
            except OxyLabsError as exc:
                errors[url] = exc
        return docs, errors

    def health(self) -> None:
        """Check that the API is reachable; raise OxyLabsError if not."""
        try:
            self.get(HEALTH_CHECK_URL)
        except OxyLabsError as exc:
            raise OxyLabsError(f"OxyLabs health check failed: {exc}") from exc

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()