"""Collaborator interfaces consumed by the core.

The LLM-backed agents and the link searcher implement these; tests substitute in-process
fakes.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from taskmind.models.fragment import FlatFragment, NodeDetail
from taskmind.models.node import Link, RoleAssignment


class FragmentSource(Protocol):
    async def generate_fragment(self, topic: str, node_id: str | None = None) -> FlatFragment:
        """Return a flat fragment or raise ``GenerationError``."""


class DetailSource(Protocol):
    async def generate_detail(self, topic: str, node_id: str) -> NodeDetail:
        """Return task detail and checklist; may raise anything."""


class RoleSource(Protocol):
    async def generate_roles(self, task_detail: str, evaluation_checklist: Sequence[str]) -> list[RoleAssignment]:
        """Return role assignments; may raise anything."""


class QuerySource(Protocol):
    async def generate_query(self, topic: str, node_id: str) -> str:
        """Return a search query; expected not to raise."""


class LinkSource(Protocol):
    async def search_links_async(self, query: str) -> list[Link]:
        """Return links, empty on failure; expected not to raise."""
