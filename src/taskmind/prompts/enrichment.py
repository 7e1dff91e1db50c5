"""Prompts for lazy node enrichment."""

from __future__ import annotations

from typing import Sequence

DETAIL_SYSTEM_PROMPT = """You write task descriptions and evaluation checklists.
Always return JSON only, without any additional text, in this shape:

{
  "taskDetail": "What has to be done to perform this task, in enough detail to start working...",
  "evaluationChecklist": [
    "Check whether the requirements have been achieved",
    "Whether the performance targets are met"
  ]
}
"""

ROLES_SYSTEM_PROMPT = """You define the roles and responsibilities (R&R) a task needs.
Return a JSON object with a "roles" array. Each element has:
- "role": the role,
- "responsibility": what that role is accountable for, measurable against the evaluation criteria,
- "reason": why the role is needed, linked to the task details and evaluation criteria.
Return JSON only."""

SEARCH_QUERY_SYSTEM_PROMPT = """You write web search queries.
Given a task, produce the single most useful search query for finding concrete procedures,
practical examples and case studies that help carry it out. Leave out unnecessary modifiers.
Return only the query text."""


def build_detail_request(topic: str, node_id: str) -> str:
    return f'Generate a task description and evaluation checklist for the task "{topic}" (node ID "{node_id}").'


def build_roles_request(task_detail: str, evaluation_checklist: Sequence[str]) -> str:
    checklist = "\n".join(f"- {item}" for item in evaluation_checklist) or "- (none)"
    return f"[Task Details]\n{task_detail}\n\n[Evaluation Criteria]\n{checklist}"


def build_search_query_request(topic: str, node_id: str) -> str:
    return f"Task: {topic}\nTask node ID: {node_id}"
