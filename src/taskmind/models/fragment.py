"""Wire models exchanged with the generation collaborators.

These are kept apart from the live :class:`~taskmind.models.node.Node`: a flat fragment
carries model-chosen ids and parent pointers, the nested :class:`Subtopic` carries none, and
live ids are derived only when a subtree is grafted.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from taskmind.logging import get_logger
from taskmind.models.node import Link, RoleAssignment
from taskmind.utils.ids import derive_id, slugify

logger = get_logger(__name__)


class FlatSubtopic(BaseModel):
    """One node of a flat fragment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    parent_id: str | None = Field(default=None, alias="parentId")
    name: str
    details: str = ""
    links: list[Link] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fill_missing_id(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("id"):
            return data
        name = data.get("name")
        if not isinstance(name, str) or not slugify(name):
            return data
        parent = data.get("parentId", data.get("parent_id"))
        data = dict(data)
        data["id"] = derive_id(parent or None, name)
        return data

    @field_validator("details", mode="before")
    @classmethod
    def _null_details_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("links", mode="before")
    @classmethod
    def _drop_invalid_links(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        links: list[Link] = []
        for item in value:
            try:
                links.append(Link.model_validate(item))
            except ValidationError:
                logger.debug("Dropping invalid link from fragment node", extra={"link": item})
        return links

    @model_validator(mode="after")
    def _blank_parent_is_none(self) -> "FlatSubtopic":
        if self.parent_id is not None and not self.parent_id.strip():
            self.parent_id = None
        return self


class FlatFragment(BaseModel):
    """A flat generation response: a topic and parent-pointer nodes."""

    topic: str = ""
    subtopics: list[FlatSubtopic] = Field(default_factory=list)


class Subtopic(BaseModel):
    """A nested subtree without ids, as produced by reconstruction."""

    name: str
    details: str = ""
    links: list[Link] = Field(default_factory=list)
    subtopics: list["Subtopic"] = Field(default_factory=list)

    def count(self) -> int:
        return 1 + sum(child.count() for child in self.subtopics)


class NodeDetail(BaseModel):
    """Long-form description and evaluation checklist for one node."""

    model_config = ConfigDict(populate_by_name=True)

    task_detail: str = Field(alias="taskDetail")
    evaluation_checklist: list[str] = Field(default_factory=list, alias="evaluationChecklist")


class RoleList(BaseModel):
    """Role generation response."""

    roles: list[RoleAssignment] = Field(default_factory=list)
