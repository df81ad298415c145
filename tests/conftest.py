import textwrap
from typing import List

import pytest
from requests.structures import CaseInsensitiveDict

from rsspls.models import FeedConfig

PAGE_URL = "https://example.com/news/"


class FakeResponse:
    def __init__(
        self, status_code=200, content=b"", headers=None, url=PAGE_URL, reason="OK"
    ):
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict(headers or {})
        self.url = url
        self.reason = reason


class FakeSession:
    """Stands in for ``requests.Session``, replaying queued responses."""

    def __init__(self, *responses):
        self.responses: List = list(responses)
        self.calls: List[dict] = []

    def queue(self, response) -> None:
        self.responses.append(response)

    def get(self, url, headers=None, timeout=None):
        self.calls.append(
            {"url": url, "headers": dict(headers or {}), "timeout": timeout}
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def article(slug: str, title: str, datetime_attr: str, summary: str = "") -> str:
    return textwrap.dedent(
        f"""\
        <article>
          <h3><a href="/posts/{slug}">{title}</a></h3>
          <time datetime="{datetime_attr}">some day</time>
          <p class="summary">{summary or title + ' summary'}</p>
        </article>
        """
    )


def page(*articles: str) -> bytes:
    body = "".join(articles)
    return f"<html><head><title>News</title></head><body>{body}</body></html>".encode(
        "utf-8"
    )


@pytest.fixture
def feed_config():
    return FeedConfig(
        title="Example News",
        filename="example.rss",
        url=PAGE_URL,
        item_selector="article",
        heading_selector="h3 a",
        summary_selector="p.summary",
        date_selector="time",
    )


@pytest.fixture
def fake_session():
    return FakeSession()
