"""LLM-backed collaborators: structural generation and node enrichment."""

from __future__ import annotations

from taskmind.agents.detail import DetailGenerator
from taskmind.agents.generator import FragmentGenerator, parse_fragment
from taskmind.agents.roles import RoleGenerator
from taskmind.agents.search_query import SearchQueryGenerator

__all__ = [
    "DetailGenerator",
    "FragmentGenerator",
    "RoleGenerator",
    "SearchQueryGenerator",
    "parse_fragment",
]
