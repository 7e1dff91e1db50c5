"""Web search tool abstraction and link lookup."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from duckduckgo_search import DDGS
from pydantic import ValidationError

from taskmind.config import Settings
from taskmind.logging import get_logger
from taskmind.models.node import Link, LinkType
from taskmind.models.search import SearchResult

logger = get_logger(__name__)

_TRANSIENT_STATUS = {429, 500, 502, 503, 504}


class WebSearchProvider(Protocol):
    """Search provider interface."""

    def search(self, query: str, *, max_results: int) -> list[SearchResult]:
        """Search web."""


class WebSearchError(RuntimeError):
    pass


@dataclass(frozen=True)
class _RetryPolicy:
    max_retries: int = 3
    backoff_s: float = 0.75
    max_backoff_s: float = 8.0


def _request_json(
    *,
    provider: str,
    method: str,
    url: str,
    timeout_s: float,
    retry: _RetryPolicy,
    transport: httpx.BaseTransport | None = None,
    user_agent: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """Issue an HTTP request, retrying transient failures, and return the JSON object body."""

    last_err: Exception | None = None
    started = time.monotonic()

    headers = {"User-Agent": user_agent} if user_agent else None
    with httpx.Client(
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=True,
        transport=transport,
        headers=headers,
    ) as client:
        for attempt in range(retry.max_retries + 1):
            status_code: int | None = None
            try:
                resp = client.request(method, url, **kwargs)
                status_code = resp.status_code
                if status_code in _TRANSIENT_STATUS:
                    raise httpx.HTTPStatusError(
                        f"{provider} transient status={status_code}",
                        request=resp.request,
                        response=resp,
                    )
                resp.raise_for_status()
                data = resp.json()
                if not isinstance(data, dict):
                    raise WebSearchError(f"{provider} response not a JSON object")
                return data
            except httpx.HTTPStatusError as e:
                last_err = e
                if e.response.status_code not in _TRANSIENT_STATUS:
                    break
            except (httpx.TimeoutException, httpx.RequestError, ValueError) as e:
                last_err = e

            if attempt >= retry.max_retries:
                break

            retry_after_s: float | None = None
            if isinstance(last_err, httpx.HTTPStatusError) and last_err.response.status_code == 429:
                ra = last_err.response.headers.get("retry-after")
                if ra is not None and ra.replace(".", "", 1).isdigit():
                    retry_after_s = float(ra)

            backoff = min(retry.max_backoff_s, retry.backoff_s * (2**attempt))
            sleep_s = retry_after_s if retry_after_s is not None else backoff
            logger.warning(
                "Search retry",
                extra={
                    "provider": provider,
                    "attempt": attempt,
                    "status_code": status_code,
                    "sleep_s": sleep_s,
                    "elapsed_ms": int((time.monotonic() - started) * 1000),
                },
            )
            time.sleep(sleep_s)

    msg = f"{provider} search failed"
    logger.error(
        msg,
        extra={
            "provider": provider,
            "elapsed_ms": int((time.monotonic() - started) * 1000),
            "error_type": type(last_err).__name__ if last_err is not None else None,
            "error": str(last_err) if last_err is not None else None,
        },
    )
    raise WebSearchError(msg) from last_err


def _to_result(*, url: Any, title: Any, snippet: Any, source: str, rank: int, sponsored: bool = False) -> SearchResult | None:
    if not url:
        return None
    try:
        return SearchResult(title=title, snippet=snippet, url=url, source=source, rank=rank, sponsored=sponsored)
    except ValidationError:
        # Skip invalid URLs that cannot be parsed by Pydantic's HttpUrl
        return None


@dataclass(frozen=True)
class GoogleSearchProvider:
    """Google Custom Search JSON API provider.

    Results carrying ``pagemap.sitelinks`` are marked sponsored.
    """

    api_key: str
    cx: str
    base_url: str = "https://www.googleapis.com/customsearch/v1"
    timeout_s: float = 30.0
    retry: _RetryPolicy = _RetryPolicy()
    transport: httpx.BaseTransport | None = None
    user_agent: str | None = None
    source_name: str = "google"

    def search(self, query: str, *, max_results: int) -> list[SearchResult]:
        data = _request_json(
            provider=self.source_name,
            method="GET",
            url=self.base_url,
            timeout_s=self.timeout_s,
            retry=self.retry,
            transport=self.transport,
            user_agent=self.user_agent,
            params={"q": query, "key": self.api_key, "cx": self.cx, "num": min(max_results, 10)},
        )
        results: list[SearchResult] = []
        for i, item in enumerate(data.get("items") or [], start=1):
            if not isinstance(item, dict):
                continue
            pagemap = item.get("pagemap") if isinstance(item.get("pagemap"), dict) else {}
            result = _to_result(
                url=item.get("link"),
                title=item.get("title"),
                snippet=item.get("snippet"),
                source=self.source_name,
                rank=i,
                sponsored=bool(pagemap.get("sitelinks")),
            )
            if result is not None:
                results.append(result)
        return results


@dataclass(frozen=True)
class TavilySearchProvider:
    """Tavily API search provider."""

    api_key: str
    base_url: str = "https://api.tavily.com"
    search_depth: str = "basic"
    timeout_s: float = 30.0
    retry: _RetryPolicy = _RetryPolicy()
    transport: httpx.BaseTransport | None = None
    user_agent: str | None = None
    source_name: str = "tavily"

    def search(self, query: str, *, max_results: int) -> list[SearchResult]:
        data = _request_json(
            provider=self.source_name,
            method="POST",
            url=f"{self.base_url.rstrip('/')}/search",
            timeout_s=self.timeout_s,
            retry=self.retry,
            transport=self.transport,
            user_agent=self.user_agent,
            json={
                "api_key": self.api_key,
                "query": query,
                "max_results": max_results,
                "search_depth": self.search_depth,
                "include_answer": False,
                "include_raw_content": False,
                "include_images": False,
            },
        )
        raw_results = data.get("results")
        if not isinstance(raw_results, list):
            raise WebSearchError("tavily response missing results list")

        results: list[SearchResult] = []
        for i, item in enumerate(raw_results, start=1):
            if not isinstance(item, dict):
                continue
            result = _to_result(
                url=item.get("url"),
                title=item.get("title"),
                snippet=item.get("content") or item.get("snippet"),
                source=self.source_name,
                rank=i,
            )
            if result is not None:
                results.append(result)
        return results


@dataclass(frozen=True)
class DuckDuckGoSearchProvider:
    """DuckDuckGo search provider."""

    source_name: str = "duckduckgo"

    def search(self, query: str, *, max_results: int) -> list[SearchResult]:
        results: list[SearchResult] = []
        with DDGS() as ddgs:
            for i, r in enumerate(ddgs.text(query, max_results=max_results), start=1):
                result = _to_result(
                    url=r.get("href") or r.get("url"),
                    title=r.get("title"),
                    snippet=r.get("body") or r.get("snippet"),
                    source=self.source_name,
                    rank=i,
                )
                if result is not None:
                    results.append(result)
        return results


def get_search_provider(settings: Settings) -> WebSearchProvider:
    """Factory to create a search provider based on settings."""

    if settings.search_provider == "google":
        if not settings.google_api_key or not settings.google_cx:
            raise ValueError(
                "Missing TASKMIND_GOOGLE_API_KEY or TASKMIND_GOOGLE_CX while search_provider=google. "
                "Set them in environment variables or .env."
            )
        return GoogleSearchProvider(
            api_key=settings.google_api_key,
            cx=settings.google_cx,
            base_url=settings.google_api_base_url,
            timeout_s=settings.http_timeout_s,
            user_agent=settings.http_user_agent,
        )

    if settings.search_provider == "tavily":
        if not settings.tavily_api_key:
            raise ValueError(
                "Missing TASKMIND_TAVILY_API_KEY while search_provider=tavily. "
                "Set it in environment variables or .env."
            )
        return TavilySearchProvider(
            api_key=settings.tavily_api_key,
            base_url=settings.tavily_api_base_url,
            search_depth=settings.tavily_search_depth,
            timeout_s=settings.http_timeout_s,
            user_agent=settings.http_user_agent,
            retry=_RetryPolicy(
                max_retries=settings.tavily_max_retries,
                backoff_s=settings.tavily_retry_backoff_s,
                max_backoff_s=settings.tavily_retry_max_backoff_s,
            ),
        )

    return DuckDuckGoSearchProvider()


@dataclass(frozen=True)
class LinkSearcher:
    """Find supporting links for a node.

    Never raises: any provider failure is logged and yields an empty list.
    """

    provider: WebSearchProvider
    max_results: int = 10
    link_count: int = 3
    query_suffix: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "LinkSearcher":
        return cls(
            provider=get_search_provider(settings),
            max_results=settings.search_max_results,
            link_count=settings.link_count,
            query_suffix=settings.search_query_suffix,
        )

    def search_links(self, query: str) -> list[Link]:
        """Return up to ``link_count`` non-sponsored links for ``query``."""

        full_query = f"{query} {self.query_suffix}".strip() if self.query_suffix else query.strip()
        if not full_query:
            return []
        try:
            results = self.provider.search(full_query, max_results=self.max_results)
        except Exception as e:
            logger.warning("Link search failed", extra={"query": full_query, "error": str(e)})
            return []

        links: list[Link] = []
        for result in sorted(results, key=lambda r: r.rank):
            if result.sponsored:
                continue
            links.append(Link(title=result.title or str(result.url), type=LinkType.WEBSITE, url=str(result.url)))
            if len(links) >= self.link_count:
                break
        return links

    async def search_links_async(self, query: str) -> list[Link]:
        """Async variant of :meth:`search_links`.

        The providers use blocking clients, so the call is offloaded to a thread.
        """

        return await asyncio.to_thread(self.search_links, query)
