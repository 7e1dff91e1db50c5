"""Structural generation of flat fragments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from taskmind.config import Settings
from taskmind.errors import GenerationError
from taskmind.llm.client import AsyncLLMClient, ChatMessage, LLMError
from taskmind.logging import get_logger
from taskmind.models.fragment import FlatFragment, FlatSubtopic
from taskmind.prompts import MINDMAP_EXTERNAL_SYSTEM_PROMPT, MINDMAP_LOCAL_SYSTEM_PROMPT
from taskmind.prompts.mindmap import build_generation_request
from taskmind.utils.ids import derive_id, slugify
from taskmind.utils.jsontext import extract_json_object

logger = get_logger(__name__)


@dataclass(frozen=True)
class FragmentGenerator:
    """Ask the model for a flat fragment: a whole tree, or the children of one node."""

    llm: AsyncLLMClient
    settings: Settings

    async def generate_fragment(self, topic: str, node_id: str | None = None) -> FlatFragment:
        """Generate and parse a fragment.

        Args:
            topic: Task to break down (the node name for expansions).
            node_id: Live id of the node being expanded, if any.

        Raises:
            GenerationError: If the model call fails or its output cannot be parsed.
        """

        local = self.settings.model_mode == "local"
        messages = [
            ChatMessage(
                role="system",
                content=MINDMAP_LOCAL_SYSTEM_PROMPT if local else MINDMAP_EXTERNAL_SYSTEM_PROMPT,
            ),
            ChatMessage(role="user", content=build_generation_request(topic, node_id)),
        ]
        try:
            raw = await self.llm.complete(messages, temperature=0.3, json_mode=not local)
        except LLMError as e:
            raise GenerationError(f"generation request failed: {e}") from e

        return parse_fragment(raw, topic=topic, node_id=node_id)


def parse_fragment(raw: str, *, topic: str, node_id: str | None = None) -> FlatFragment:
    """Parse raw model output into a :class:`FlatFragment`.

    Trailing prose and Markdown fences are tolerated, a cut-off document is repaired back to
    its last complete node, nested ``subtopics`` are flattened, and individual invalid nodes
    are skipped. For expansions, nodes whose parent is not part of the fragment are pointed
    at ``node_id``.

    Raises:
        GenerationError: If no JSON object can be recovered or no node survives validation.
    """

    data = extract_json_object(raw, repair=True)
    if data is None:
        logger.warning("Generation output has no JSON object", extra={"raw": raw[:400]})
        raise GenerationError("model output is not valid JSON")

    items = data.get("subtopics")
    if not isinstance(items, list):
        raise GenerationError("model output has no subtopics list")

    records: list[FlatSubtopic] = []
    invalid = 0
    for item in _flatten(items, parent_id=None):
        try:
            records.append(FlatSubtopic.model_validate(item))
        except ValidationError:
            invalid += 1
    if invalid:
        logger.warning("Skipped invalid fragment nodes", extra={"invalid": invalid, "valid": len(records)})
    if not records:
        raise GenerationError("model output contains no valid subtopics")

    if node_id:
        known = {r.id for r in records}
        records = [
            r if r.parent_id in known else r.model_copy(update={"parent_id": node_id})
            for r in records
        ]

    fragment_topic = data.get("topic")
    if not isinstance(fragment_topic, str) or not fragment_topic.strip():
        fragment_topic = topic
    return FlatFragment(topic=fragment_topic.strip(), subtopics=records)


def _flatten(items: list[Any], *, parent_id: str | None) -> list[Any]:
    """Flatten nested ``subtopics`` lists into parent-pointer records.

    Models sometimes answer in the nested shape instead of the flat one; nested children
    inherit their container's id as ``parentId``.
    """

    out: list[Any] = []
    for item in items:
        if not isinstance(item, dict):
            out.append(item)
            continue
        nested = item.get("subtopics")
        record = {k: v for k, v in item.items() if k != "subtopics"}
        if parent_id is not None and not record.get("parentId"):
            record["parentId"] = parent_id
        if isinstance(nested, list) and nested and not record.get("id"):
            name = record.get("name")
            if isinstance(name, str) and slugify(name):
                record["id"] = derive_id(record.get("parentId") or None, name)
        out.append(record)
        if isinstance(nested, list) and nested:
            out.extend(_flatten(nested, parent_id=record.get("id") or None))
    return out
