"""Search query generation for link lookup."""

from __future__ import annotations

from dataclasses import dataclass

from taskmind.config import Settings
from taskmind.llm.client import AsyncLLMClient, ChatMessage, LLMError
from taskmind.logging import get_logger
from taskmind.prompts import SEARCH_QUERY_SYSTEM_PROMPT
from taskmind.prompts.enrichment import build_search_query_request

logger = get_logger(__name__)

_MAX_QUERY_CHARS = 200


@dataclass(frozen=True)
class SearchQueryGenerator:
    """Turn a task name into a web search query; falls back to the name itself."""

    llm: AsyncLLMClient
    settings: Settings

    async def generate_query(self, topic: str, node_id: str) -> str:
        if not self.settings.search_query_generation:
            return topic

        messages = [
            ChatMessage(role="system", content=SEARCH_QUERY_SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_search_query_request(topic, node_id)),
        ]
        try:
            raw = await self.llm.complete(messages, model=self.settings.effective_enrichment_model, temperature=0.0)
        except LLMError:
            logger.warning("Search query generation failed; using node name", extra={"node_id": node_id})
            return topic

        lines = [line.strip().strip('"').strip() for line in raw.splitlines() if line.strip()]
        query = lines[0] if lines else ""
        if not query:
            return topic
        return query[:_MAX_QUERY_CHARS]
