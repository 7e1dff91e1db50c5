"""Live tree models.

A :class:`Node` is one task or subtask. Every optional enrichment field has an explicit
default: ``None`` means "not fetched yet", which is different from an empty list.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LinkType(str, Enum):
    """Kind of supporting resource."""

    WEBSITE = "website"
    TUTORIAL = "tutorial"
    VIDEO = "video"
    BOOK = "book"
    ARTICLE = "article"
    FORUM = "forum"
    OTHER = "other"


class NodeStatus(str, Enum):
    """User-tracked progress of a task."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    SKIPPED = "skipped"


class Link(BaseModel):
    """A supporting web resource."""

    model_config = ConfigDict(frozen=True)

    title: str
    type: LinkType = LinkType.WEBSITE
    url: str

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        if isinstance(value, LinkType):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in {t.value for t in LinkType}:
                return normalized
        return LinkType.OTHER


class RoleAssignment(BaseModel):
    """One role/responsibility pair with the reason it is needed."""

    role: str
    responsibility: str
    reason: str = ""


class Node(BaseModel):
    """A node of the task tree, nested through ``subtopics``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    parent_id: str | None = Field(default=None, alias="parentId")
    name: str
    details: str = ""
    links: list[Link] = Field(default_factory=list)

    task_detail: str | None = Field(default=None, alias="taskDetail")
    evaluation_checklist: list[str] | None = Field(default=None, alias="evaluationChecklist")
    rr_data: list[RoleAssignment] | None = Field(default=None, alias="rrData")
    status: NodeStatus = NodeStatus.NOT_STARTED

    subtopics: list["Node"] = Field(default_factory=list)

    def iter_nodes(self):
        """Yield this node and all descendants, depth-first in child order."""

        yield self
        for child in self.subtopics:
            yield from child.iter_nodes()

    def find(self, node_id: str) -> "Node | None":
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None


class NodePatch(BaseModel):
    """Partial update of a node's own fields.

    Structural fields (``id``, ``parentId``, ``subtopics``) cannot be patched.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str | None = None
    details: str | None = None
    links: list[Link] | None = None
    task_detail: str | None = Field(default=None, alias="taskDetail")
    evaluation_checklist: list[str] | None = Field(default=None, alias="evaluationChecklist")
    rr_data: list[RoleAssignment] | None = Field(default=None, alias="rrData")
    status: NodeStatus | None = None

    def changes(self) -> dict[str, Any]:
        """Return only the fields explicitly set on this patch."""

        return {key: getattr(self, key) for key in self.model_fields_set}
