"""Lazy, per-node enrichment.

Each node carries three independent state machines:

    detail:  unfetched -> fetching -> fetched      (taskDetail + evaluationChecklist)
    links:   no_links  -> fetching -> has_links
    roles:   no_roles  -> generating -> has_roles  (requires detail == fetched)

A failed fetch returns the machine to its pre-fetch state so the next interaction retries.
Requests for the same node and kind are coalesced onto one in-flight task; requests for
different nodes run independently.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Iterable

from taskmind.config import Settings
from taskmind.core.protocols import DetailSource, LinkSource, QuerySource, RoleSource
from taskmind.errors import EnrichmentFetchError, NotFoundError, PreconditionError
from taskmind.logging import get_logger
from taskmind.models.node import Node, NodePatch
from taskmind.tree.arena import TaskTree

logger = get_logger(__name__)


class DetailState(str, Enum):
    UNFETCHED = "unfetched"
    FETCHING = "fetching"
    FETCHED = "fetched"


class LinkState(str, Enum):
    NO_LINKS = "no_links"
    FETCHING = "fetching"
    HAS_LINKS = "has_links"


class RoleState(str, Enum):
    NO_ROLES = "no_roles"
    GENERATING = "generating"
    HAS_ROLES = "has_roles"


@dataclass
class NodeEnrichment:
    """Enrichment state of one node, plus the last failure for inline display."""

    detail: DetailState = DetailState.UNFETCHED
    links: LinkState = LinkState.NO_LINKS
    roles: RoleState = RoleState.NO_ROLES
    last_error: str | None = None

    @classmethod
    def seeded_from(cls, node: Node) -> "NodeEnrichment":
        """Derive the state implied by fields already present on ``node``."""

        has_detail = node.task_detail is not None and node.evaluation_checklist is not None
        return cls(
            detail=DetailState.FETCHED if has_detail else DetailState.UNFETCHED,
            links=LinkState.HAS_LINKS if node.links else LinkState.NO_LINKS,
            roles=RoleState.HAS_ROLES if node.rr_data is not None else RoleState.NO_ROLES,
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "detail": self.detail.value,
            "links": self.links.value,
            "roles": self.roles.value,
            "lastError": self.last_error,
        }


class EnrichmentStateMachine:
    """Fetch-and-cache enrichment for the nodes of one tree."""

    def __init__(
        self,
        tree: TaskTree,
        settings: Settings,
        *,
        detail_source: DetailSource,
        link_source: LinkSource,
        role_source: RoleSource,
        query_source: QuerySource | None = None,
    ) -> None:
        self._tree = tree
        self._settings = settings
        self._detail_source = detail_source
        self._link_source = link_source
        self._role_source = role_source
        self._query_source = query_source
        self._states: dict[str, NodeEnrichment] = {}
        self._inflight: dict[tuple[str, str], asyncio.Task] = {}

    # ------------------------------------------------------------------ state access

    def _state_for(self, node_id: str) -> NodeEnrichment:
        state = self._states.get(node_id)
        if state is None:
            state = NodeEnrichment.seeded_from(self._tree.get(node_id))
            self._states[node_id] = state
        elif node_id not in self._tree:
            self._states.pop(node_id, None)
            raise NotFoundError(node_id)
        return state

    def state(self, node_id: str) -> NodeEnrichment:
        """Return a copy of the enrichment state of ``node_id``.

        Raises:
            NotFoundError: If the node is not in the tree.
        """

        return replace(self._state_for(node_id))

    def refresh(self, node_id: str) -> None:
        """Re-derive idle states from the node's fields after a user edit."""

        state = self._state_for(node_id)
        seeded = NodeEnrichment.seeded_from(self._tree.get(node_id))
        if state.detail is not DetailState.FETCHING:
            state.detail = seeded.detail
        if state.links is not LinkState.FETCHING:
            state.links = seeded.links
        if state.roles is not RoleState.GENERATING:
            state.roles = seeded.roles

    def forget(self, node_ids: Iterable[str]) -> None:
        """Drop state for deleted nodes; in-flight results will be discarded on write."""

        for node_id in node_ids:
            self._states.pop(node_id, None)

    def is_inflight(self, kind: str, node_id: str) -> bool:
        task = self._inflight.get((kind, node_id))
        return task is not None and not task.done()

    # ------------------------------------------------------------------ coalescing

    async def _coalesce(self, kind: str, node_id: str, factory: Callable[[], Awaitable[None]]) -> None:
        key = (kind, node_id)
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task

            def _clear(done: asyncio.Task, key: tuple[str, str] = key) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_clear)
        else:
            logger.debug("Joining in-flight fetch", extra={"kind": kind, "node_id": node_id})
        await asyncio.shield(task)

    # ------------------------------------------------------------------ detail

    async def ensure_detail(self, node_id: str) -> Node:
        """Make sure ``node_id`` has its detail and checklist; return the node.

        A node already in ``fetched`` is served from the tree without a detail request; if it
        still has no links, the link search is retried.

        Raises:
            NotFoundError: If the node is not in the tree.
            EnrichmentFetchError: If the detail fetch failed.
        """

        state = self._state_for(node_id)
        if state.detail is DetailState.FETCHED:
            if self._settings.auto_link_search and state.links is LinkState.NO_LINKS:
                await self.ensure_links(node_id)
            return self._tree.get(node_id)

        if state.detail is DetailState.UNFETCHED:
            state.detail = DetailState.FETCHING
        await self._coalesce("detail", node_id, lambda: self._fetch_detail(node_id, state))
        return self._tree.get(node_id)

    async def _fetch_detail(self, node_id: str, state: NodeEnrichment) -> None:
        node = self._tree.get(node_id)
        try:
            detail = await self._detail_source.generate_detail(node.name, node_id)
        except asyncio.CancelledError:
            state.detail = DetailState.UNFETCHED
            raise
        except Exception as e:
            state.detail = DetailState.UNFETCHED
            state.last_error = str(e) or type(e).__name__
            logger.warning("Detail fetch failed", extra={"node_id": node_id, "error": state.last_error})
            raise EnrichmentFetchError(node_id, "detail", state.last_error) from e

        try:
            self._tree.update_node(
                node_id,
                NodePatch(task_detail=detail.task_detail, evaluation_checklist=list(detail.evaluation_checklist)),
            )
        except NotFoundError:
            logger.info("Node deleted while its detail was fetched; discarding", extra={"node_id": node_id})
            self._states.pop(node_id, None)
            return

        state.detail = DetailState.FETCHED
        state.last_error = None

        if not self._settings.auto_link_search:
            return
        if state.links is LinkState.NO_LINKS and not self._tree.get(node_id).links:
            await self.ensure_links(node_id)

    # ------------------------------------------------------------------ links

    async def ensure_links(self, node_id: str) -> Node:
        """Search links for ``node_id`` unless it already has some; never raises on failure."""

        state = self._state_for(node_id)
        if state.links is LinkState.HAS_LINKS:
            return self._tree.get(node_id)
        if state.links is LinkState.NO_LINKS:
            state.links = LinkState.FETCHING
        await self._coalesce("links", node_id, lambda: self._fetch_links(node_id, state))
        return self._tree.get(node_id)

    async def _fetch_links(self, node_id: str, state: NodeEnrichment) -> None:
        node = self._tree.get(node_id)
        try:
            query = node.name
            if self._query_source is not None:
                query = await self._query_source.generate_query(node.name, node_id)
            links = await self._link_source.search_links_async(query)
        except asyncio.CancelledError:
            state.links = LinkState.NO_LINKS
            raise
        except Exception as e:
            state.links = LinkState.NO_LINKS
            logger.warning("Link search failed", extra={"node_id": node_id, "error": str(e)})
            return

        if not links:
            state.links = LinkState.NO_LINKS
            logger.info("Link search returned nothing", extra={"node_id": node_id})
            return

        try:
            self._tree.set_links(node_id, links)
        except NotFoundError:
            logger.info("Node deleted while its links were fetched; discarding", extra={"node_id": node_id})
            self._states.pop(node_id, None)
            return
        state.links = LinkState.HAS_LINKS

    # ------------------------------------------------------------------ roles

    def check_roles_precondition(self, node_id: str) -> None:
        """Raise :class:`PreconditionError` unless role generation is allowed for ``node_id``."""

        state = self._state_for(node_id)
        if state.roles is RoleState.HAS_ROLES:
            return
        node = self._tree.get(node_id)
        if (
            state.detail is not DetailState.FETCHED
            or node.task_detail is None
            or node.evaluation_checklist is None
        ):
            raise PreconditionError(f"role generation for {node_id!r} requires fetched task detail")

    async def generate_roles(self, node_id: str) -> Node:
        """Generate roles for ``node_id`` once; later calls return the cached roles.

        Raises:
            NotFoundError: If the node is not in the tree.
            PreconditionError: If the node's detail has not been fetched.
            EnrichmentFetchError: If role generation failed.
        """

        self.check_roles_precondition(node_id)
        state = self._state_for(node_id)
        if state.roles is RoleState.HAS_ROLES:
            return self._tree.get(node_id)

        if state.roles is RoleState.NO_ROLES:
            state.roles = RoleState.GENERATING
        await self._coalesce("roles", node_id, lambda: self._fetch_roles(node_id, state))
        return self._tree.get(node_id)

    async def _fetch_roles(self, node_id: str, state: NodeEnrichment) -> None:
        node = self._tree.get(node_id)
        try:
            roles = await self._role_source.generate_roles(node.task_detail or "", list(node.evaluation_checklist or []))
        except asyncio.CancelledError:
            state.roles = RoleState.NO_ROLES
            raise
        except Exception as e:
            state.roles = RoleState.NO_ROLES
            state.last_error = str(e) or type(e).__name__
            logger.warning("Role generation failed", extra={"node_id": node_id, "error": state.last_error})
            raise EnrichmentFetchError(node_id, "roles", state.last_error) from e

        try:
            self._tree.update_node(node_id, NodePatch(rr_data=roles))
        except NotFoundError:
            logger.info("Node deleted while its roles were generated; discarding", extra={"node_id": node_id})
            self._states.pop(node_id, None)
            return
        state.roles = RoleState.HAS_ROLES
        state.last_error = None
