from __future__ import annotations

from taskmind.tools.web_search import LinkSearcher, WebSearchError, WebSearchProvider, get_search_provider

__all__ = ["LinkSearcher", "WebSearchError", "WebSearchProvider", "get_search_provider"]
