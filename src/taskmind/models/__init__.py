"""Pydantic models used across the project."""

from __future__ import annotations

from taskmind.models.fragment import FlatFragment, FlatSubtopic, NodeDetail, RoleList, Subtopic
from taskmind.models.node import Link, LinkType, Node, NodePatch, NodeStatus, RoleAssignment
from taskmind.models.search import SearchResult

__all__ = [
    "FlatFragment",
    "FlatSubtopic",
    "Link",
    "LinkType",
    "Node",
    "NodeDetail",
    "NodePatch",
    "NodeStatus",
    "RoleAssignment",
    "RoleList",
    "SearchResult",
    "Subtopic",
]
