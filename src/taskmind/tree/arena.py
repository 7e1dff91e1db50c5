"""Live task tree.

The tree is stored as a parent-indexed arena: one map from id to node fields, one map from id
to the ordered list of child ids. Structure is always followed through those links, never
through id prefixes. Every mutation bumps :attr:`TaskTree.version`; readers get deep-copied
nested snapshots so a renderer can compare versions instead of diffing trees.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Iterator, Literal, Mapping, Sequence

from taskmind.errors import IdCollisionError, InvalidNameError, NotFoundError, PreconditionError
from taskmind.logging import get_logger
from taskmind.models.fragment import Subtopic
from taskmind.models.node import Link, Node, NodePatch
from taskmind.utils.ids import derive_id, slugify, unique_id

logger = get_logger(__name__)

DuplicateChildPolicy = Literal["accumulate", "dedupe"]
IdCollisionPolicy = Literal["suffix", "reject"]

ERROR_NODE_NAME = "Error"
ERROR_NODE_DETAILS = "Failed to expand this topic. Please try again."


@dataclass(frozen=True)
class GraftResult:
    """Ids created by a graft, and top-level children skipped as duplicates."""

    added_ids: list[str]
    skipped_names: list[str]
    version: int


class TaskTree:
    """Mutable task tree with value-style snapshots.

    Mutations are serialized with a lock so that concurrent grafts to different nodes, e.g.
    from two expansions finishing on worker threads, never lose each other's updates.
    """

    def __init__(
        self,
        topic: str,
        *,
        duplicate_child_policy: DuplicateChildPolicy = "accumulate",
        id_collision_policy: IdCollisionPolicy = "suffix",
    ) -> None:
        self._lock = threading.RLock()
        self._duplicate_child_policy = duplicate_child_policy
        self._id_collision_policy = id_collision_policy

        root_id = derive_id(None, topic)
        self._root_id = root_id
        self._nodes: dict[str, Node] = {root_id: Node(id=root_id, parent_id=None, name=topic)}
        self._children: dict[str, list[str]] = {root_id: []}
        self._version = 1

    # ------------------------------------------------------------------ construction

    @classmethod
    def from_subtopics(cls, topic: str, subtopics: Sequence[Subtopic], **policies: Any) -> "TaskTree":
        """Build a tree whose root is ``topic`` with ``subtopics`` grafted under it."""

        tree = cls(topic, **policies)
        if subtopics:
            tree.graft_subtree(tree.root_id, subtopics)
        return tree

    @classmethod
    def with_error_node(cls, topic: str, **policies: Any) -> "TaskTree":
        """Build the placeholder tree shown when initial generation fails."""

        error = Subtopic(name=ERROR_NODE_NAME, details=ERROR_NODE_DETAILS)
        return cls.from_subtopics(topic, [error], **policies)

    @classmethod
    def from_node(cls, root: Node, **policies: Any) -> "TaskTree":
        """Rebuild a tree from a nested snapshot, keeping ids and enrichment fields.

        Raises:
            ValueError: If the snapshot repeats an id.
        """

        tree = cls(root.name, **policies)
        tree._nodes.clear()
        tree._children.clear()
        tree._root_id = root.id

        stack: list[tuple[Node, str | None]] = [(root, None)]
        while stack:
            node, parent_id = stack.pop()
            if node.id in tree._nodes:
                raise ValueError(f"duplicate node id in snapshot: {node.id!r}")
            tree._nodes[node.id] = node.model_copy(update={"parent_id": parent_id, "subtopics": []}, deep=True)
            tree._children[node.id] = [child.id for child in node.subtopics]
            stack.extend((child, node.id) for child in reversed(node.subtopics))
        return tree

    # ------------------------------------------------------------------ reads

    @property
    def root_id(self) -> str:
        return self._root_id

    @property
    def topic(self) -> str:
        return self._nodes[self._root_id].name

    @property
    def version(self) -> int:
        return self._version

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str) -> Node:
        """Return a copy of a single node's own fields (``subtopics`` left empty)."""

        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NotFoundError(node_id)
            return node.model_copy(deep=True)

    def children_of(self, node_id: str) -> list[str]:
        with self._lock:
            if node_id not in self._children:
                raise NotFoundError(node_id)
            return list(self._children[node_id])

    def leaf_ids(self) -> list[str]:
        with self._lock:
            return [node_id for node_id in self._walk(self._root_id) if not self._children[node_id]]

    def depth_of(self, node_id: str) -> int:
        with self._lock:
            if node_id not in self._nodes:
                raise NotFoundError(node_id)
            depth = 0
            current = self._nodes[node_id].parent_id
            while current is not None:
                depth += 1
                current = self._nodes[current].parent_id
            return depth

    def snapshot(self, node_id: str | None = None) -> Node:
        """Return a deep, nested copy of the subtree at ``node_id`` (default: root)."""

        with self._lock:
            start = node_id or self._root_id
            if start not in self._nodes:
                raise NotFoundError(start)
            return self._build(start)

    def _build(self, node_id: str) -> Node:
        node = self._nodes[node_id].model_copy(deep=True)
        node.subtopics = [self._build(child_id) for child_id in self._children[node_id]]
        return node

    def _walk(self, node_id: str) -> Iterator[str]:
        stack = [node_id]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self._children[current]))

    # ------------------------------------------------------------------ mutations

    def graft_subtree(self, target_id: str, subtopics: Sequence[Subtopic]) -> GraftResult:
        """Append ``subtopics`` (and their descendants) under ``target_id``.

        Ids are derived from the live parent id and each name. The graft is all-or-nothing:
        every id is planned before anything is written.

        Raises:
            NotFoundError: If ``target_id`` is not in the tree.
            IdCollisionError: If a derived id exists and the collision policy is ``"reject"``.
        """

        with self._lock:
            if target_id not in self._nodes:
                raise NotFoundError(target_id)

            existing_child_ids = set(self._children[target_id])
            planned: dict[str, Node] = {}
            planned_children: dict[str, list[str]] = {}
            added_top: list[str] = []
            skipped: list[str] = []

            def taken(candidate: str) -> bool:
                return candidate in self._nodes or candidate in planned

            def plan(subtopic: Subtopic, parent_id: str) -> str | None:
                if not slugify(subtopic.name):
                    logger.warning(
                        "Dropping subtopic with blank name",
                        extra={"parent_id": parent_id, "descendants": subtopic.count() - 1},
                    )
                    return None
                candidate = derive_id(parent_id, subtopic.name)
                if taken(candidate):
                    if self._id_collision_policy == "reject":
                        raise IdCollisionError(candidate)
                    candidate = unique_id(candidate, taken)
                planned[candidate] = Node(
                    id=candidate,
                    parent_id=parent_id,
                    name=subtopic.name,
                    details=subtopic.details,
                    links=list(subtopic.links),
                )
                planned_children[candidate] = []
                for child in subtopic.subtopics:
                    child_id = plan(child, candidate)
                    if child_id is not None:
                        planned_children[candidate].append(child_id)
                return candidate

            for subtopic in subtopics:
                if self._duplicate_child_policy == "dedupe" and slugify(subtopic.name):
                    if derive_id(target_id, subtopic.name) in existing_child_ids:
                        skipped.append(subtopic.name)
                        continue
                new_id = plan(subtopic, target_id)
                if new_id is not None:
                    added_top.append(new_id)

            self._nodes.update(planned)
            self._children.update(planned_children)
            self._children[target_id].extend(added_top)
            if planned:
                self._version += 1

            if skipped:
                logger.info("Skipped duplicate children on graft", extra={"target": target_id, "names": skipped})
            logger.debug("Grafted subtree", extra={"target": target_id, "added": len(planned)})
            return GraftResult(added_ids=list(planned), skipped_names=skipped, version=self._version)

    def delete_subtree(self, node_id: str) -> list[str]:
        """Remove ``node_id`` and all its descendants; return the removed ids.

        Raises:
            NotFoundError: If ``node_id`` is not in the tree.
            PreconditionError: If ``node_id`` is the root.
        """

        with self._lock:
            if node_id not in self._nodes:
                raise NotFoundError(node_id)
            if node_id == self._root_id:
                raise PreconditionError("the root node cannot be deleted")

            removed = list(self._walk(node_id))
            parent_id = self._nodes[node_id].parent_id
            if parent_id is not None:
                self._children[parent_id].remove(node_id)
            for removed_id in removed:
                del self._nodes[removed_id]
                del self._children[removed_id]
            self._version += 1
            return removed

    def update_node(self, node_id: str, patch: NodePatch | Mapping[str, Any]) -> int:
        """Merge ``patch`` into the fields of ``node_id`` (children untouched).

        Returns:
            The new tree version.

        Raises:
            NotFoundError: If ``node_id`` is not in the tree.
            InvalidNameError: If the patch renames the node to a blank name.
        """

        if not isinstance(patch, NodePatch):
            patch = NodePatch.model_validate(patch)
        changes = patch.changes()

        if "name" in changes and (changes["name"] is None or not slugify(changes["name"])):
            raise InvalidNameError("node name cannot be blank")
        for key in ("details", "links", "status"):
            if key in changes and changes[key] is None:
                raise ValueError(f"{key} cannot be null")

        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NotFoundError(node_id)
            if not changes:
                return self._version
            self._nodes[node_id] = node.model_copy(update=_copy_values(changes), deep=True)
            self._version += 1
            return self._version

    def set_links(self, node_id: str, links: Sequence[Link]) -> int:
        return self.update_node(node_id, NodePatch(links=list(links)))


def _copy_values(changes: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in changes.items():
        out[key] = list(value) if isinstance(value, list) else value
    return out
