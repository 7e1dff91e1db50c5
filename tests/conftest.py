"""Shared fakes for TaskMind tests.

The fakes stand in for the LLM-backed agents and the link searcher so that the core can be
exercised without network access.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import pytest

from taskmind.config import Settings
from taskmind.core.session import MindMapSession
from taskmind.errors import GenerationError
from taskmind.models.fragment import FlatFragment, NodeDetail
from taskmind.models.node import Link, RoleAssignment


def flat(topic: str, *records: tuple[str, str | None, str]) -> FlatFragment:
    """Build a flat fragment from ``(id, parentId, name)`` triples."""

    return FlatFragment.model_validate(
        {
            "topic": topic,
            "subtopics": [
                {"id": node_id, "parentId": parent_id, "name": name, "details": f"About {name}"}
                for node_id, parent_id, name in records
            ],
        }
    )


class FakeGenerator:
    """Fragment source answering from a script keyed by topic."""

    def __init__(self, script: dict[str, FlatFragment | Exception] | None = None, *, delay: float = 0.0) -> None:
        self.script = dict(script or {})
        self.delay = delay
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str | None]] = []

    async def generate_fragment(self, topic: str, node_id: str | None = None) -> FlatFragment:
        self.calls.append((topic, node_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.script.get(topic)
        if result is None:
            raise GenerationError(f"no scripted fragment for {topic!r}")
        if isinstance(result, Exception):
            raise result
        return result


class FakeDetailSource:
    """Detail source counting calls; fails the first ``failures`` calls."""

    def __init__(self, *, failures: int = 0, delay: float = 0.0) -> None:
        self.failures = failures
        self.delay = delay
        self.calls: list[str] = []

    async def generate_detail(self, topic: str, node_id: str) -> NodeDetail:
        self.calls.append(node_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("detail service unavailable")
        return NodeDetail(
            task_detail=f"How to approach {topic}.",
            evaluation_checklist=[f"Can explain {topic}", f"Has practiced {topic}"],
        )


class FakeRoleSource:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, list[str]]] = []

    async def generate_roles(self, task_detail: str, evaluation_checklist: Sequence[str]) -> list[RoleAssignment]:
        self.calls.append((task_detail, list(evaluation_checklist)))
        if self.fail:
            raise RuntimeError("role service unavailable")
        return [RoleAssignment(role="Learner", responsibility="Practice daily", reason="Skill needs repetition")]


class FakeLinkSource:
    def __init__(self, links: list[Link] | None = None) -> None:
        self.links = (
            links
            if links is not None
            else [Link(title="Guitar lessons", url="https://example.com/guitar")]
        )
        self.queries: list[str] = []

    async def search_links_async(self, query: str) -> list[Link]:
        self.queries.append(query)
        return list(self.links)


class FakeQuerySource:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def generate_query(self, topic: str, node_id: str) -> str:
        self.calls.append(node_id)
        return f"{topic} tutorial"


class FakeLLM:
    """Stand-in for ``AsyncLLMClient`` returning scripted completions in order."""

    def __init__(self, *responses: str | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def complete(self, messages: Any, **kwargs: Any) -> str:
        self.calls.append({"messages": list(messages), **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


GUITAR = flat(
    "Learn Guitar",
    ("basics", None, "Basics"),
    ("theory", None, "Music Theory"),
    ("tuning", "basics", "Tuning"),
)
GUITAR_BASICS = flat("Basics", ("open", "Learn-Guitar-Basics", "Open Chords"))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="test-key",
        expand_timeout_s=5.0,
        auto_link_search=True,
        duplicate_child_policy="accumulate",
        id_collision_policy="suffix",
    )


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator({"Learn Guitar": GUITAR, "Basics": GUITAR_BASICS})


@pytest.fixture
def detail_source() -> FakeDetailSource:
    return FakeDetailSource()


@pytest.fixture
def role_source() -> FakeRoleSource:
    return FakeRoleSource()


@pytest.fixture
def link_source() -> FakeLinkSource:
    return FakeLinkSource()


@pytest.fixture
def query_source() -> FakeQuerySource:
    return FakeQuerySource()


@pytest.fixture
def session(
    settings: Settings,
    generator: FakeGenerator,
    detail_source: FakeDetailSource,
    role_source: FakeRoleSource,
    link_source: FakeLinkSource,
    query_source: FakeQuerySource,
) -> MindMapSession:
    return MindMapSession(
        settings,
        generator=generator,
        detail_source=detail_source,
        role_source=role_source,
        link_source=link_source,
        query_source=query_source,
        session_id="test",
    )
