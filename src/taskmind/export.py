"""Tree export and import.

JSON export is full fidelity and round-trips through :func:`load_document`. Markdown export
is a one-way outline for reading and sharing.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from taskmind.models.node import Node, NodeStatus
from taskmind.tree.arena import TaskTree

DOCUMENT_FORMAT_VERSION = 1

_STATUS_LABELS = {
    NodeStatus.IN_PROGRESS: "In progress",
    NodeStatus.DONE: "Done",
    NodeStatus.SKIPPED: "Skipped",
}


class TreeDocument(BaseModel):
    """Serialized form of a whole tree."""

    format_version: int = Field(default=DOCUMENT_FORMAT_VERSION, alias="formatVersion")
    topic: str
    root: Node

    model_config = ConfigDict(populate_by_name=True)


def to_document(tree: TaskTree) -> dict[str, Any]:
    """Return the JSON-ready document for ``tree``."""

    doc = TreeDocument(topic=tree.topic, root=tree.snapshot())
    return doc.model_dump(mode="json", by_alias=True)


def dumps_json(tree: TaskTree, *, indent: int | None = 2) -> str:
    return json.dumps(to_document(tree), ensure_ascii=False, indent=indent)


def load_document(data: str | bytes | Mapping[str, Any], **policies: Any) -> TaskTree:
    """Rebuild a tree from a JSON document.

    Raises:
        pydantic.ValidationError: If the document does not match the schema.
        ValueError: If the document repeats a node id.
    """

    if isinstance(data, (str, bytes)):
        doc = TreeDocument.model_validate_json(data)
    else:
        doc = TreeDocument.model_validate(data)
    return TaskTree.from_node(doc.root, **policies)


def to_markdown(root: Node) -> str:
    """Render a nested tree as a Markdown outline.

    Headings are node names (level = depth + 1, capped at 6), followed by the details, the
    long-form task detail, the checklist, the roles and the links of each node.
    """

    lines: list[str] = []
    _render(root, 0, lines)
    return "\n".join(lines).rstrip() + "\n"


def _render(node: Node, depth: int, lines: list[str]) -> None:
    level = min(depth + 1, 6)
    lines.append(f"{'#' * level} {node.name}")
    lines.append("")

    if node.status in _STATUS_LABELS:
        lines.append(f"_Status: {_STATUS_LABELS[node.status]}_")
        lines.append("")
    if node.details:
        lines.append(node.details)
        lines.append("")
    if node.task_detail:
        lines.append(node.task_detail)
        lines.append("")

    bullets: list[str] = []
    done = node.status is NodeStatus.DONE
    for item in node.evaluation_checklist or []:
        bullets.append(f"- [{'x' if done else ' '}] {item}")
    for role in node.rr_data or []:
        text = f"- **{role.role}**: {role.responsibility}"
        if role.reason:
            text += f" ({role.reason})"
        bullets.append(text)
    if node.links:
        bullets.append("- Links")
        for link in node.links:
            bullets.append(f"  - [{link.title}]({link.url}) ({link.type.value})")
    if bullets:
        lines.extend(bullets)
        lines.append("")

    for child in node.subtopics:
        _render(child, depth + 1, lines)
