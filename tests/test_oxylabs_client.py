import base64
import json
from unittest import mock

import pytest
import requests
import responses

from otcleads.scraper.oxylabs_client import (
    HEALTH_CHECK_URL,
    USER_AGENT,
    OxyLabsClient,
    OxyLabsError,
    build_request,
)

ENDPOINT = "https://scraper.example.com/v1/queries"
PAGE_ONE = "https://example.com/stock/ABCD/overview"
PAGE_TWO = "https://example.com/stock/ABCD/financials"


def _page(title):
    return f"<html><head><title>{title}</title></head><body><p>{title}</p></body></html>"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def client():
    password = "password"
    with OxyLabsClient(username="user", password=password, endpoint=ENDPOINT) as api:
        yield api


def test_build_request_layout():
    payload = build_request(PAGE_ONE)
    assert payload["source"] == "universal"
    assert payload["url"] == PAGE_ONE
    assert payload["render"] == "html"
    assert payload["user_agent"] == USER_AGENT
    assert payload["context"] == [
        {"key": "follow_redirects", "value": True},
        {"key": "return_only_content", "value": True},
    ]
    assert "parse" not in payload


def test_get_returns_parsed_document(mocked, client):
    mocked.add(
        responses.POST, ENDPOINT,
        json={"results": [{"content": _page("Overview"), "status_code": 200, "url": PAGE_ONE}]},
    )
    doc = client.get(PAGE_ONE)
    assert doc.title.string == "Overview"

    request = mocked.calls[0].request
    assert json.loads(request.body) == build_request(PAGE_ONE)
    scheme, encoded = request.headers["Authorization"].split(" ", 1)
    assert scheme == "Basic"
    assert base64.b64decode(encoded).decode() == "user:password"


def test_get_rejects_bad_http_status(mocked, client):
    mocked.add(responses.POST, ENDPOINT, status=401, body="denied")
    with pytest.raises(OxyLabsError, match="unexpected status code 401: denied"):
        client.get(PAGE_ONE)


def test_get_without_results(mocked, client):
    mocked.add(responses.POST, ENDPOINT, json={"results": []})
    with pytest.raises(OxyLabsError, match="no results returned from OxyLabs"):
        client.get(PAGE_ONE)


def test_get_target_page_status(mocked, client):
    mocked.add(responses.POST, ENDPOINT, json={"results": [{"content": "", "status_code": 404}]})
    with pytest.raises(OxyLabsError, match="target page returned status code: 404"):
        client.get(PAGE_ONE)


def test_get_invalid_json(mocked, client):
    mocked.add(responses.POST, ENDPOINT, body="not json")
    with pytest.raises(OxyLabsError, match="failed to parse OxyLabs response"):
        client.get(PAGE_ONE)


def test_get_connection_failure(mocked, client):
    mocked.add(responses.POST, ENDPOINT, body=requests.ConnectionError("refused"))
    with pytest.raises(OxyLabsError, match="failed to perform request"):
        client.get(PAGE_ONE)


def test_get_batch_splits_docs_and_errors(mocked, client):
    mocked.add(
        responses.POST, ENDPOINT,
        json={"results": [
            {"content": _page("One"), "status_code": 200},
            {"content": "", "status_code": 503},
        ]},
    )
    docs, errors = client.get_batch([PAGE_ONE, PAGE_TWO])

    assert set(docs) == {PAGE_ONE}
    assert docs[PAGE_ONE].title.string == "One"
    assert set(errors) == {PAGE_TWO}
    assert "target page returned status code: 503" in str(errors[PAGE_TWO])
    assert json.loads(mocked.calls[0].request.body) == [build_request(PAGE_ONE), build_request(PAGE_TWO)]


def test_get_batch_falls_back_to_single_requests(mocked, client):
    mocked.add(responses.POST, ENDPOINT, body="not json")
    mocked.add(responses.POST, ENDPOINT, json={"results": [{"content": _page("One"), "status_code": 200}]})
    mocked.add(responses.POST, ENDPOINT, json={"results": [{"content": "", "status_code": 500}]})

    docs, errors = client.get_batch([PAGE_ONE, PAGE_TWO])

    assert len(mocked.calls) == 3
    assert json.loads(mocked.calls[1].request.body) == build_request(PAGE_ONE)
    assert json.loads(mocked.calls[2].request.body) == build_request(PAGE_TWO)
    assert docs[PAGE_ONE].title.string == "One"
    assert set(errors) == {PAGE_TWO}


def test_get_batch_connection_failure_reports_every_url(mocked, client):
    mocked.add(responses.POST, ENDPOINT, body=requests.ConnectionError("refused"))
    docs, errors = client.get_batch([PAGE_ONE, PAGE_TWO])

    assert docs == {}
    assert set(errors) == {PAGE_ONE, PAGE_TWO}
    assert all("failed to perform request" in str(err) for err in errors.values())


def test_get_batch_ignores_extra_results(mocked, client):
    mocked.add(
        responses.POST, ENDPOINT,
        json={"results": [
            {"content": _page("One"), "status_code": 200},
            {"content": _page("Two"), "status_code": 200},
        ]},
    )
    docs, errors = client.get_batch([PAGE_ONE])
    assert list(docs) == [PAGE_ONE]
    assert errors == {}


def test_get_batch_missing_results_leave_url_unreported(mocked, client):
    mocked.add(responses.POST, ENDPOINT, json={"results": [{"content": _page("One"), "status_code": 200}]})
    docs, errors = client.get_batch([PAGE_ONE, PAGE_TWO])
    assert PAGE_TWO not in docs
    assert PAGE_TWO not in errors
    assert set(docs) == {PAGE_ONE}


def test_health_probes_check_url(mocked, client):
    mocked.add(responses.POST, ENDPOINT, json={"results": [{"content": "<html></html>", "status_code": 200}]})
    assert client.health() is None
    assert json.loads(mocked.calls[0].request.body)["url"] == HEALTH_CHECK_URL


def test_health_failure(mocked, client):
    mocked.add(responses.POST, ENDPOINT, status=500, body="down")
    with pytest.raises(OxyLabsError, match="OxyLabs health check failed"):
        client.health()


def test_close_closes_session():
    session = mock.create_autospec(requests.Session, instance=True)
    password = "password"
    api = OxyLabsClient(username="user", password=password, endpoint=ENDPOINT, session=session)
    api.close()
    session.close.assert_called_once_with()