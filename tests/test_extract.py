import dataclasses
from datetime import datetime, timezone

import pytest

from conftest import PAGE_URL, article, page
from rsspls.errors import SelectorError
from rsspls.extract import collapse_text, extract_items, parse_document


def _extract(html, config, url=PAGE_URL):
    return extract_items(parse_document(html), url, config)


def test_extracts_articles_in_document_order(feed_config):
    html = page(
        article("c", "Third", "2024-01-03T10:00:00Z"),
        article("b", "Second", "2024-01-02T10:00:00Z"),
        article("a", "First", "2024-01-01T10:00:00Z"),
    )

    result = _extract(html, feed_config)

    assert result.skipped == 0
    assert [item.link for item in result.items] == [
        "https://example.com/posts/c",
        "https://example.com/posts/b",
        "https://example.com/posts/a",
    ]
    assert [item.title for item in result.items] == ["Third", "Second", "First"]
    assert result.items[0].published == datetime(2024, 1, 3, 10, tzinfo=timezone.utc)
    assert result.items[0].summary == "Third summary"


def test_candidate_without_heading_is_skipped(feed_config):
    html = page(
        article("a", "First", "2024-01-01T10:00:00Z"),
        "<article><h3>No link here</h3></article>",
        "<article><h3><a>Anchor without href</a></h3></article>",
        article("b", "Second", "2024-01-02T10:00:00Z"),
    )

    result = _extract(html, feed_config)

    assert result.skipped == 2
    assert [item.title for item in result.items] == ["First", "Second"]


def test_no_matching_items_is_an_empty_result(feed_config):
    result = _extract(b"<html><body><p>Nothing today</p></body></html>", feed_config)

    assert result.items == []
    assert result.skipped == 0


def test_optional_selectors_may_be_absent(feed_config):
    config = dataclasses.replace(feed_config, summary_selector=None, date_selector=None)

    result = _extract(page(article("a", "First", "2024-01-01")), config)

    assert result.items[0].summary is None
    assert result.items[0].published is None


def test_summary_and_date_missing_from_one_item(feed_config):
    html = page("<article><h3><a href='https://other.example/x'>Bare</a></h3></article>")

    item = _extract(html, feed_config).items[0]

    assert item.link == "https://other.example/x"
    assert item.summary is None
    assert item.published is None


def test_date_falls_back_to_element_text(feed_config):
    config = dataclasses.replace(feed_config, date_selector="span.date")
    html = page(
        "<article><h3><a href='/a'>A</a></h3>"
        "<span class='date'>\n  January 5, 2024 </span></article>"
    )

    item = _extract(html, config).items[0]

    assert item.published == datetime(2024, 1, 5, tzinfo=timezone.utc)


def test_unparsable_date_leaves_item_undated(feed_config):
    html = page(article("a", "First", "sometime soon"))

    item = _extract(html, feed_config).items[0]

    assert item.title == "First"
    assert item.published is None


def test_title_whitespace_is_collapsed(feed_config):
    html = page(
        "<article><h3><a href='/a'>\n   Spread <em>over</em>\n   lines  </a></h3></article>"
    )

    assert _extract(html, feed_config).items[0].title == "Spread over lines"


def test_empty_title_falls_back_to_link(feed_config):
    html = page("<article><h3><a href='/a'>  </a></h3></article>")

    assert _extract(html, feed_config).items[0].title == "https://example.com/a"


def test_links_resolve_against_base_element(feed_config):
    html = (
        b"<html><head><base href='https://cdn.example.org/blog/'></head><body>"
        b"<article><h3><a href='post-1'>One</a></h3></article></body></html>"
    )

    item = _extract(html, feed_config).items[0]

    assert item.link == "https://cdn.example.org/blog/post-1"


def test_links_resolve_against_final_page_url(feed_config):
    html = page("<article><h3><a href='item?id=4'>Four</a></h3></article>")

    item = _extract(html, feed_config, url="https://example.com/section/list").items[0]

    assert item.link == "https://example.com/section/item?id=4"


def test_repeated_links_keep_first_occurrence(feed_config):
    html = page(
        article("a", "First copy", "2024-01-01"),
        article("a", "Second copy", "2024-01-01"),
    )

    result = _extract(html, feed_config)

    assert [item.title for item in result.items] == ["First copy"]


def test_invalid_selector_raises(feed_config):
    config = dataclasses.replace(feed_config, item_selector="article[")

    with pytest.raises(SelectorError):
        _extract(page(), config)


def test_collapse_text_collapses_whitespace_between_elements():
    document = parse_document("<div> a <b>b</b>\n\n c </div>")

    assert collapse_text(document.div) == "a b c"


def test_collapse_text_keeps_inline_markup_inside_words():
    document = parse_document("<a>Don<span>'</span>t st<em>op</em></a>")

    assert collapse_text(document.a) == "Don't stop"


def test_control_characters_are_removed_from_titles(feed_config):
    html = page("<article><h3><a href='/a'>Bell\x07 ringer</a></h3></article>")

    assert _extract(html, feed_config).items[0].title == "Bell ringer"
