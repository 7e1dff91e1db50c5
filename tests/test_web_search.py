"""Tests for web search providers and link lookup."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from taskmind.config import Settings
from taskmind.models.search import SearchResult
from taskmind.tools.web_search import (
    DuckDuckGoSearchProvider,
    GoogleSearchProvider,
    LinkSearcher,
    TavilySearchProvider,
    WebSearchError,
    _RetryPolicy,
    get_search_provider,
)

NO_RETRY = _RetryPolicy(max_retries=0)

GOOGLE_ITEMS = {
    "items": [
        {"title": "Sponsored lessons", "link": "https://ads.example.com", "pagemap": {"sitelinks": [{"x": 1}]}},
        {"title": "Open chords guide", "link": "https://example.com/chords", "snippet": "C, G, D"},
        {"title": "Broken", "link": "not a url"},
        {"title": "Chord chart", "link": "https://example.com/chart"},
        {"title": "Forum thread", "link": "https://example.com/forum"},
        {"title": "Fourth", "link": "https://example.com/fourth"},
    ]
}


def google(handler) -> GoogleSearchProvider:
    return GoogleSearchProvider(
        api_key="key",
        cx="cx",
        retry=NO_RETRY,
        transport=httpx.MockTransport(handler),
    )


def test_google_marks_sitelinks_as_sponsored() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=GOOGLE_ITEMS)

    results = google(handler).search("open chords", max_results=25)

    assert seen[0].url.params["num"] == "10"
    assert seen[0].url.params["q"] == "open chords"
    assert [r.sponsored for r in results] == [True, False, False, False, False]
    assert [r.rank for r in results] == [1, 2, 4, 5, 6]


def test_link_searcher_skips_sponsored_and_keeps_top_three() -> None:
    provider = google(lambda request: httpx.Response(200, json=GOOGLE_ITEMS))
    searcher = LinkSearcher(provider=provider, link_count=3)

    links = searcher.search_links("open chords")

    assert [link.url for link in links] == [
        "https://example.com/chords",
        "https://example.com/chart",
        "https://example.com/forum",
    ]
    assert all(link.type.value == "website" for link in links)


def test_link_searcher_returns_empty_on_provider_failure() -> None:
    provider = google(lambda request: httpx.Response(403, json={"error": "quota"}))

    with pytest.raises(WebSearchError):
        provider.search("x", max_results=3)
    assert LinkSearcher(provider=provider).search_links("x") == []
    assert asyncio.run(LinkSearcher(provider=provider).search_links_async("x")) == []


def test_transient_errors_are_retried() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"results": [{"url": "https://example.com", "title": "T", "content": "c"}]})

    provider = TavilySearchProvider(
        api_key="key",
        retry=_RetryPolicy(max_retries=1, backoff_s=0.0),
        transport=httpx.MockTransport(handler),
    )

    results = provider.search("x", max_results=3)

    assert calls["n"] == 2
    assert results[0].snippet == "c"


def test_query_suffix_is_appended() -> None:
    class Recorder:
        def __init__(self) -> None:
            self.queries: list[str] = []

        def search(self, query: str, *, max_results: int) -> list[SearchResult]:
            self.queries.append(query)
            return [SearchResult(title=None, url="https://example.com/a", source="test", rank=1)]

    recorder = Recorder()
    links = LinkSearcher(provider=recorder, query_suffix="tutorial").search_links("open chords")

    assert recorder.queries == ["open chords tutorial"]
    assert links[0].title == "https://example.com/a"
    assert LinkSearcher(provider=recorder).search_links("   ") == []


def test_get_search_provider() -> None:
    assert isinstance(get_search_provider(Settings()), DuckDuckGoSearchProvider)
    assert isinstance(
        get_search_provider(Settings(search_provider="google", google_api_key="k", google_cx="c")),
        GoogleSearchProvider,
    )
    with pytest.raises(ValueError):
        get_search_provider(Settings(search_provider="tavily", tavily_api_key=None))


def test_user_agent_is_sent() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"items": []})

    settings = Settings(
        search_provider="google",
        google_api_key="k",
        google_cx="c",
        http_user_agent="taskmind-test/1.0",
    )
    provider = get_search_provider(settings)
    assert provider.user_agent == "taskmind-test/1.0"

    custom = GoogleSearchProvider(
        api_key="k",
        cx="c",
        retry=NO_RETRY,
        transport=httpx.MockTransport(handler),
        user_agent=provider.user_agent,
    )
    assert custom.search("x", max_results=3) == []
    assert seen[0].headers["user-agent"] == "taskmind-test/1.0"
