"""Single-user mind map session.

The session owns one live :class:`~taskmind.tree.arena.TaskTree` at a time together with its
expansion orchestrator and enrichment state machine, and exposes the operations a
presentation layer needs. Readers take snapshots with :meth:`MindMapSession.get_tree` and can
compare :attr:`MindMapSession.version` to detect changes.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Mapping

from taskmind.config import Settings
from taskmind.core.enrichment import DetailState, EnrichmentStateMachine, NodeEnrichment
from taskmind.core.expansion import ExpansionOrchestrator, ExpansionOutcome, ExpansionStatus
from taskmind.core.protocols import DetailSource, FragmentSource, LinkSource, QuerySource, RoleSource
from taskmind.errors import GenerationError, NotFoundError, PreconditionError
from taskmind.export import dumps_json, load_document, to_markdown
from taskmind.logging import get_logger, log_exception, session_context
from taskmind.models.node import Node, NodePatch, NodeStatus
from taskmind.tree.arena import TaskTree
from taskmind.tree.reconstruct import reconstruct

logger = get_logger(__name__)


class MindMapSession:
    """Generation, expansion, enrichment and editing of one task tree."""

    def __init__(
        self,
        settings: Settings,
        *,
        generator: FragmentSource,
        detail_source: DetailSource,
        role_source: RoleSource,
        link_source: LinkSource,
        query_source: QuerySource | None = None,
        session_id: str | None = None,
    ) -> None:
        self._settings = settings
        self._generator = generator
        self._detail_source = detail_source
        self._role_source = role_source
        self._link_source = link_source
        self._query_source = query_source
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self._tree: TaskTree | None = None
        self._expansion: ExpansionOrchestrator | None = None
        self._enrichment: EnrichmentStateMachine | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "MindMapSession":
        """Build a session wired to the LLM and web search collaborators."""

        from taskmind.agents import DetailGenerator, FragmentGenerator, RoleGenerator, SearchQueryGenerator
        from taskmind.llm.client import AsyncLLMClient
        from taskmind.tools.web_search import LinkSearcher

        llm = AsyncLLMClient(settings)
        return cls(
            settings,
            generator=FragmentGenerator(llm=llm, settings=settings),
            detail_source=DetailGenerator(llm=llm, settings=settings),
            role_source=RoleGenerator(llm=llm, settings=settings),
            link_source=LinkSearcher.from_settings(settings),
            query_source=SearchQueryGenerator(llm=llm, settings=settings),
        )

    # ------------------------------------------------------------------ tree lifecycle

    @property
    def has_tree(self) -> bool:
        return self._tree is not None

    @property
    def version(self) -> int:
        return self._tree.version if self._tree is not None else 0

    def _policies(self) -> dict[str, Any]:
        return {
            "duplicate_child_policy": self._settings.duplicate_child_policy,
            "id_collision_policy": self._settings.id_collision_policy,
        }

    def _install(self, tree: TaskTree) -> None:
        self._tree = tree
        self._expansion = ExpansionOrchestrator(tree, self._generator, self._settings)
        self._enrichment = EnrichmentStateMachine(
            tree,
            self._settings,
            detail_source=self._detail_source,
            link_source=self._link_source,
            role_source=self._role_source,
            query_source=self._query_source,
        )

    def _require(self) -> tuple[TaskTree, ExpansionOrchestrator, EnrichmentStateMachine]:
        if self._tree is None or self._expansion is None or self._enrichment is None:
            raise PreconditionError("no mind map has been generated or loaded")
        return self._tree, self._expansion, self._enrichment

    async def generate(self, topic: str) -> Node:
        """Generate a new tree for ``topic``, replacing the current one.

        A failed or unparseable generation produces a tree whose only child is an error node.
        """

        topic = topic.strip()
        if not topic:
            raise PreconditionError("topic must not be blank")

        with session_context(session_id=self.session_id):
            logger.info("Generating mind map", extra={"topic": topic})
            try:
                fragment = await asyncio.wait_for(
                    self._generator.generate_fragment(topic),
                    timeout=self._settings.expand_timeout_s,
                )
                root_topic = fragment.topic.strip() or topic
                tree = TaskTree.from_subtopics(root_topic, reconstruct(fragment.subtopics), **self._policies())
                if len(tree) == 1:
                    raise GenerationError("generation returned no subtopics")
            except asyncio.TimeoutError:
                logger.warning("Generation timed out", extra={"topic": topic})
                tree = TaskTree.with_error_node(topic, **self._policies())
            except GenerationError as e:
                logger.warning("Generation failed", extra={"topic": topic, "error": str(e)})
                tree = TaskTree.with_error_node(topic, **self._policies())
            except Exception:
                log_exception(logger, "Unexpected generation failure", topic=topic)
                tree = TaskTree.with_error_node(topic, **self._policies())

            self._install(tree)
            return tree.snapshot()

    def reset(self) -> None:
        """Discard the current tree."""

        self._tree = None
        self._expansion = None
        self._enrichment = None

    def get_tree(self) -> Node:
        """Return a read-only snapshot of the whole tree."""

        tree, _, _ = self._require()
        return tree.snapshot()

    def get_node(self, node_id: str) -> Node:
        tree, _, _ = self._require()
        return tree.snapshot(node_id)

    # ------------------------------------------------------------------ expansion

    async def expand(self, node_id: str) -> ExpansionOutcome:
        """Expand ``node_id``; re-read :meth:`get_tree` afterwards."""

        _, expansion, _ = self._require()
        with session_context(session_id=self.session_id, node_id=node_id):
            outcome = await expansion.expand(node_id)
            if self._expansion is not expansion and outcome.status is ExpansionStatus.GRAFTED:
                logger.info("Tree replaced during expansion; discarding fragment", extra={"node_id": node_id})
                return ExpansionOutcome(
                    node_id,
                    ExpansionStatus.DISCARDED,
                    error="mind map was replaced during expansion",
                )
            return outcome

    async def expand_to_depth(self, depth: int) -> list[ExpansionOutcome]:
        """Expand every leaf shallower than ``depth``, level by level.

        Leaves of one level are expanded concurrently. A leaf whose expansion failed is not
        retried.
        """

        tree, _, _ = self._require()
        outcomes: list[ExpansionOutcome] = []
        attempted: set[str] = set()
        for _ in range(depth):
            targets = [
                leaf
                for leaf in tree.leaf_ids()
                if leaf != tree.root_id and leaf not in attempted and tree.depth_of(leaf) < depth
            ]
            if not targets or self._tree is not tree:
                break
            attempted.update(targets)
            outcomes.extend(await asyncio.gather(*(self.expand(leaf) for leaf in targets)))
        return outcomes

    # ------------------------------------------------------------------ enrichment

    async def select_node(self, node_id: str) -> Node:
        """Fetch detail, checklist and links for ``node_id`` on first selection.

        Raises:
            NotFoundError: If the node is not in the tree.
            EnrichmentFetchError: If the detail fetch failed; the node stays retryable.
        """

        _, _, enrichment = self._require()
        with session_context(session_id=self.session_id, node_id=node_id):
            return await enrichment.ensure_detail(node_id)

    async def generate_roles_for_node(self, node_id: str) -> Node:
        """Generate roles and responsibilities for ``node_id``.

        Raises:
            PreconditionError: If the node's detail has not been fetched.
            EnrichmentFetchError: If generation failed.
        """

        _, _, enrichment = self._require()
        enrichment.check_roles_precondition(node_id)
        with session_context(session_id=self.session_id, node_id=node_id):
            return await enrichment.generate_roles(node_id)

    def enrichment_state(self, node_id: str) -> NodeEnrichment:
        _, _, enrichment = self._require()
        return enrichment.state(node_id)

    # ------------------------------------------------------------------ edits

    def update_node_fields(self, node_id: str, patch: NodePatch | Mapping[str, Any]) -> Node:
        """Apply a user edit to one node and return the updated node."""

        tree, _, enrichment = self._require()
        with session_context(session_id=self.session_id, node_id=node_id):
            try:
                tree.update_node(node_id, patch)
            except NotFoundError:
                logger.info("Edit targeted a missing node", extra={"node_id": node_id})
                raise
            enrichment.refresh(node_id)
            return tree.get(node_id)

    def set_status(self, node_id: str, status: NodeStatus | str) -> Node:
        return self.update_node_fields(node_id, NodePatch(status=NodeStatus(status)))

    def delete_node(self, node_id: str) -> list[str]:
        """Delete ``node_id`` with its subtree and return the removed ids.

        Raises:
            NotFoundError: If the node is not in the tree.
            PreconditionError: If ``node_id`` is the root.
        """

        tree, _, enrichment = self._require()
        with session_context(session_id=self.session_id, node_id=node_id):
            try:
                removed = tree.delete_subtree(node_id)
            except NotFoundError:
                logger.info("Delete targeted a missing node", extra={"node_id": node_id})
                raise
            enrichment.forget(removed)
            logger.info("Deleted subtree", extra={"node_id": node_id, "removed": len(removed)})
            return removed

    def _checklist(self, node_id: str) -> list[str]:
        tree, _, enrichment = self._require()
        if enrichment.state(node_id).detail is not DetailState.FETCHED:
            raise PreconditionError(f"checklist of {node_id!r} has not been fetched yet")
        return list(tree.get(node_id).evaluation_checklist or [])

    def add_checklist_item(self, node_id: str, item: str) -> Node:
        checklist = self._checklist(node_id)
        checklist.append(item)
        return self.update_node_fields(node_id, NodePatch(evaluation_checklist=checklist))

    def update_checklist_item(self, node_id: str, index: int, item: str) -> Node:
        checklist = self._checklist(node_id)
        if not 0 <= index < len(checklist):
            raise IndexError(f"checklist index out of range: {index}")
        checklist[index] = item
        return self.update_node_fields(node_id, NodePatch(evaluation_checklist=checklist))

    def remove_checklist_item(self, node_id: str, index: int) -> Node:
        checklist = self._checklist(node_id)
        if not 0 <= index < len(checklist):
            raise IndexError(f"checklist index out of range: {index}")
        del checklist[index]
        return self.update_node_fields(node_id, NodePatch(evaluation_checklist=checklist))

    # ------------------------------------------------------------------ export / import

    def export_json(self) -> str:
        tree, _, _ = self._require()
        return dumps_json(tree)

    def export_markdown(self) -> str:
        tree, _, _ = self._require()
        return to_markdown(tree.snapshot())

    def load_json(self, document: str | bytes | Mapping[str, Any]) -> Node:
        """Replace the current tree with an exported document.

        Enrichment already present in the document is treated as fetched.
        """

        tree = load_document(document, **self._policies())
        self._install(tree)
        with session_context(session_id=self.session_id):
            logger.info("Loaded mind map", extra={"topic": tree.topic, "nodes": len(tree)})
        return tree.snapshot()
