"""Flat-to-tree reconstruction.

Converts the parent-pointer records of a :class:`~taskmind.models.fragment.FlatFragment` into
nested :class:`~taskmind.models.fragment.Subtopic` trees. The function is pure: it never
touches the live tree and never raises on malformed hierarchy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from taskmind.logging import get_logger
from taskmind.models.fragment import FlatSubtopic, Subtopic

logger = get_logger(__name__)


@dataclass
class _Shell:
    record: FlatSubtopic
    children: list["_Shell"] = field(default_factory=list)
    parent: "_Shell | None" = None

    def to_subtopic(self) -> Subtopic:
        return Subtopic(
            name=self.record.name,
            details=self.record.details,
            links=list(self.record.links),
            subtopics=[child.to_subtopic() for child in self.children],
        )


@dataclass(frozen=True)
class Reconstruction:
    """Result of :func:`reconstruct_with_report`."""

    roots: list[Subtopic]
    # Records whose parentId was set but did not resolve inside the fragment.
    external_parent_ids: list[str]
    duplicate_ids: list[str]


def reconstruct_with_report(records: Sequence[FlatSubtopic]) -> Reconstruction:
    """Nest ``records`` and report what had to be repaired.

    Rules:
        - A record with no ``parentId`` becomes a root-level result.
        - A record whose ``parentId`` names another record is appended to that record's
          children, in input order.
        - A record whose ``parentId`` is unknown to the fragment becomes a root-level result;
          the caller decides which live node it belongs under.
        - Duplicate ids: the last record wins and takes the position of its last occurrence.
        - Records caught in a parent cycle are promoted to root-level results, so every
          unique id appears exactly once in the output.
    """

    last_index: dict[str, int] = {}
    for i, record in enumerate(records):
        last_index[record.id] = i

    duplicate_ids = sorted({r.id for i, r in enumerate(records) if last_index[r.id] != i})
    if duplicate_ids:
        logger.warning("Fragment contains duplicate ids; last occurrence wins", extra={"ids": duplicate_ids})

    winners = [record for i, record in enumerate(records) if last_index[record.id] == i]
    shells = {record.id: _Shell(record) for record in winners}

    roots: list[_Shell] = []
    external: list[str] = []
    for record in winners:
        shell = shells[record.id]
        parent_id = record.parent_id
        if parent_id is None or parent_id == record.id:
            roots.append(shell)
            continue

        parent = shells.get(parent_id)
        if parent is None:
            external.append(parent_id)
            roots.append(shell)
            continue

        shell.parent = parent
        parent.children.append(shell)

    # Anything not reachable from a root sits on a parent cycle.
    reached: set[str] = set()

    def mark(shell: _Shell) -> None:
        stack = [shell]
        while stack:
            current = stack.pop()
            reached.add(current.record.id)
            stack.extend(current.children)

    for root in roots:
        mark(root)

    for record in winners:
        if record.id in reached:
            continue
        shell = shells[record.id]
        logger.warning("Fragment node is on a parent cycle; promoting to root", extra={"id": record.id})
        if shell.parent is not None:
            shell.parent.children.remove(shell)
            shell.parent = None
        roots.append(shell)
        mark(shell)

    return Reconstruction(
        roots=[root.to_subtopic() for root in roots],
        external_parent_ids=external,
        duplicate_ids=duplicate_ids,
    )


def reconstruct(records: Sequence[FlatSubtopic]) -> list[Subtopic]:
    """Nest flat fragment records into root-level subtrees.

    See :func:`reconstruct_with_report` for the exact rules.
    """

    return reconstruct_with_report(records).roots
