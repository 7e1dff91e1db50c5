"""Incremental expansion of one node.

Expansion asks the generation collaborator for the children of a live node, reconstructs the
flat answer and grafts it under that node. It is all-or-nothing per fragment: any failure
before the graft leaves the tree exactly as it was.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from taskmind.config import Settings
from taskmind.core.protocols import FragmentSource
from taskmind.errors import GenerationError, IdCollisionError, NotFoundError
from taskmind.logging import get_logger, log_exception
from taskmind.tree.arena import TaskTree
from taskmind.tree.reconstruct import reconstruct_with_report

logger = get_logger(__name__)


class ExpansionStatus(str, Enum):
    GRAFTED = "grafted"
    FAILED = "failed"
    # The target was deleted while its fragment was being generated.
    DISCARDED = "discarded"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ExpansionOutcome:
    """What happened to one expansion request."""

    node_id: str
    status: ExpansionStatus
    added_ids: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ExpansionStatus.GRAFTED

    def to_dict(self) -> dict[str, object]:
        return {
            "nodeId": self.node_id,
            "status": self.status.value,
            "addedIds": list(self.added_ids),
            "error": self.error,
        }


class ExpansionOrchestrator:
    """Expand nodes of one tree through a fragment source."""

    def __init__(self, tree: TaskTree, generator: FragmentSource, settings: Settings) -> None:
        self._tree = tree
        self._generator = generator
        self._settings = settings

    async def expand(self, node_id: str) -> ExpansionOutcome:
        """Generate children for ``node_id`` and graft them.

        Never raises for collaborator failures; the outcome carries the error instead.
        """

        try:
            topic = self._tree.get(node_id).name
        except NotFoundError:
            logger.info("Expansion requested for unknown node", extra={"node_id": node_id})
            return ExpansionOutcome(node_id, ExpansionStatus.NOT_FOUND, error=f"node not found: {node_id}")

        logger.info("Expanding node", extra={"node_id": node_id, "topic": topic})
        try:
            fragment = await asyncio.wait_for(
                self._generator.generate_fragment(topic, node_id),
                timeout=self._settings.expand_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Expansion timed out", extra={"node_id": node_id, "timeout_s": self._settings.expand_timeout_s})
            return ExpansionOutcome(node_id, ExpansionStatus.FAILED, error="expansion timed out")
        except GenerationError as e:
            logger.warning("Expansion failed", extra={"node_id": node_id, "error": str(e)})
            return ExpansionOutcome(node_id, ExpansionStatus.FAILED, error=str(e))
        except Exception as e:
            log_exception(logger, "Unexpected expansion failure", node_id=node_id)
            return ExpansionOutcome(node_id, ExpansionStatus.FAILED, error=f"{type(e).__name__}: {e}")

        report = reconstruct_with_report(fragment.subtopics)
        if not report.roots:
            return ExpansionOutcome(node_id, ExpansionStatus.FAILED, error="fragment has no subtopics")
        foreign = sorted({pid for pid in report.external_parent_ids if pid != node_id})
        if foreign:
            logger.debug("Re-attaching fragment roots under expanded node", extra={"node_id": node_id, "declared": foreign})

        try:
            result = self._tree.graft_subtree(node_id, report.roots)
        except NotFoundError:
            logger.info("Node deleted during expansion; discarding fragment", extra={"node_id": node_id})
            return ExpansionOutcome(node_id, ExpansionStatus.DISCARDED, error="node was deleted during expansion")
        except IdCollisionError as e:
            logger.warning("Expansion rejected by id collision policy", extra={"node_id": node_id, "id": e.node_id})
            return ExpansionOutcome(node_id, ExpansionStatus.FAILED, error=str(e))

        logger.info("Expansion grafted", extra={"node_id": node_id, "added": len(result.added_ids)})
        return ExpansionOutcome(node_id, ExpansionStatus.GRAFTED, added_ids=result.added_ids)
