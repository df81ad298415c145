import pytest
import requests

from conftest import PAGE_URL, FakeResponse, FakeSession
from rsspls.errors import FetchError
from rsspls.fetcher import body_hash, conditional_headers, fetch_page
from rsspls.models import CacheEntry, Fresh, NotModified


def test_unconditional_request_without_cache_entry():
    session = FakeSession(
        FakeResponse(
            200,
            b"<html></html>",
            headers={"ETag": '"v1"', "Last-Modified": "Wed, 03 Jan 2024 10:15:00 GMT"},
        )
    )

    result = fetch_page(session, PAGE_URL)

    assert session.calls[0]["headers"] == {}
    assert isinstance(result, Fresh)
    assert result.body == b"<html></html>"
    assert result.etag == '"v1"'
    assert result.last_modified == "Wed, 03 Jan 2024 10:15:00 GMT"
    assert result.content_hash == body_hash(b"<html></html>")
    assert result.changed


def test_conditional_headers_are_sent():
    entry = CacheEntry(
        url=PAGE_URL, etag='"v1"', last_modified="Wed, 03 Jan 2024 10:15:00 GMT"
    )
    session = FakeSession(FakeResponse(304))

    result = fetch_page(session, PAGE_URL, entry)

    assert isinstance(result, NotModified)
    assert session.calls[0]["headers"] == {
        "If-None-Match": '"v1"',
        "If-Modified-Since": "Wed, 03 Jan 2024 10:15:00 GMT",
    }


def test_conditional_headers_only_include_known_validators():
    assert conditional_headers(None) == {}
    assert conditional_headers(CacheEntry(url=PAGE_URL, etag='W/"x"')) == {
        "If-None-Match": 'W/"x"'
    }


def test_identical_body_is_still_fresh_but_marked_unchanged():
    body = b"<html>same</html>"
    entry = CacheEntry(url=PAGE_URL, etag='"v1"', content_hash=body_hash(body))
    session = FakeSession(FakeResponse(200, body, headers={"ETag": '"v2"'}))

    result = fetch_page(session, PAGE_URL, entry)

    assert isinstance(result, Fresh)
    assert not result.changed
    assert result.etag == '"v2"'


def test_final_url_after_redirect_is_reported():
    session = FakeSession(FakeResponse(200, b"", url="https://example.com/moved/"))

    assert fetch_page(session, PAGE_URL).url == "https://example.com/moved/"


@pytest.mark.parametrize("status", [404, 500, 301])
def test_error_status_raises_fetch_error(status):
    session = FakeSession(FakeResponse(status, b"nope", reason="Bad"))

    with pytest.raises(FetchError) as excinfo:
        fetch_page(session, PAGE_URL)

    assert excinfo.value.status == status
    assert excinfo.value.url == PAGE_URL
    assert str(status) in str(excinfo.value)


def test_timeout_raises_fetch_error():
    session = FakeSession(requests.Timeout("read timed out"))

    with pytest.raises(FetchError, match="timed out"):
        fetch_page(session, PAGE_URL, timeout=1.0)

    assert session.calls[0]["timeout"] == 1.0


def test_connection_error_raises_fetch_error():
    session = FakeSession(requests.ConnectionError("no route to host"))

    with pytest.raises(FetchError, match="no route to host"):
        fetch_page(session, PAGE_URL)
