"""Error taxonomy.

Collaborator failures (network, parse, validation) are converted to one of these kinds at the
core boundary; nothing else is expected to escape a public session operation.
"""

from __future__ import annotations


class TaskMindError(Exception):
    """Base class for all core errors."""


class GenerationError(TaskMindError):
    """The generation collaborator failed or returned unparseable data."""


class NotFoundError(TaskMindError, KeyError):
    """A structural operation referenced a node id absent from the tree."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"node not found: {self.node_id!r}"


class EnrichmentFetchError(TaskMindError):
    """A detail, role or link fetch failed."""

    def __init__(self, node_id: str, kind: str, message: str) -> None:
        super().__init__(f"{kind} fetch failed for {node_id!r}: {message}")
        self.node_id = node_id
        self.kind = kind


class PreconditionError(TaskMindError):
    """An operation was requested in a state that does not allow it."""


class InvalidNameError(TaskMindError, ValueError):
    """A node name collapses to an empty slug."""


class IdCollisionError(TaskMindError):
    """A derived id already exists and the collision policy rejects it."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"derived id already exists: {node_id!r}")
        self.node_id = node_id
