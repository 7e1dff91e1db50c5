from __future__ import annotations

from taskmind.prompts.enrichment import DETAIL_SYSTEM_PROMPT, ROLES_SYSTEM_PROMPT, SEARCH_QUERY_SYSTEM_PROMPT
from taskmind.prompts.mindmap import MINDMAP_EXTERNAL_SYSTEM_PROMPT, MINDMAP_LOCAL_SYSTEM_PROMPT

__all__ = [
    "DETAIL_SYSTEM_PROMPT",
    "MINDMAP_EXTERNAL_SYSTEM_PROMPT",
    "MINDMAP_LOCAL_SYSTEM_PROMPT",
    "ROLES_SYSTEM_PROMPT",
    "SEARCH_QUERY_SYSTEM_PROMPT",
]
