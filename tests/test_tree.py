"""Tests for the live task tree."""

from __future__ import annotations

import pytest

from taskmind.errors import IdCollisionError, InvalidNameError, NotFoundError, PreconditionError
from taskmind.models.fragment import Subtopic
from taskmind.models.node import Link, NodePatch, NodeStatus
from taskmind.tree.arena import ERROR_NODE_NAME, TaskTree


def test_root_id_is_slug_of_topic() -> None:
    tree = TaskTree("Learn Guitar")
    assert tree.root_id == "Learn-Guitar"
    assert tree.topic == "Learn Guitar"
    assert len(tree) == 1


def test_graft_derives_ids_from_live_parent() -> None:
    tree = TaskTree("Learn Guitar")
    result = tree.graft_subtree(
        tree.root_id,
        [Subtopic(name="Basics", subtopics=[Subtopic(name="Open Chords")])],
    )

    assert result.added_ids == ["Learn-Guitar-Basics", "Learn-Guitar-Basics-Open-Chords"]
    assert tree.children_of("Learn-Guitar-Basics") == ["Learn-Guitar-Basics-Open-Chords"]
    assert tree.get("Learn-Guitar-Basics-Open-Chords").parent_id == "Learn-Guitar-Basics"
    assert tree.depth_of("Learn-Guitar-Basics-Open-Chords") == 2


def test_grafting_twice_accumulates_with_suffixed_ids() -> None:
    """Repeated expansion should append, never overwrite, and keep ids unique."""

    tree = TaskTree("Learn Guitar")
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics")])
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics")])

    assert tree.children_of(tree.root_id) == ["Learn-Guitar-Basics", "Learn-Guitar-Basics-2"]
    assert [n.name for n in tree.snapshot().subtopics] == ["Basics", "Basics"]


def test_dedupe_policy_skips_existing_children() -> None:
    tree = TaskTree("Learn Guitar", duplicate_child_policy="dedupe")
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics")])
    result = tree.graft_subtree(tree.root_id, [Subtopic(name="Basics"), Subtopic(name="Scales")])

    assert result.skipped_names == ["Basics"]
    assert tree.children_of(tree.root_id) == ["Learn-Guitar-Basics", "Learn-Guitar-Scales"]


def test_reject_policy_leaves_tree_unchanged() -> None:
    tree = TaskTree("Learn Guitar", id_collision_policy="reject")
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics")])
    version = tree.version

    with pytest.raises(IdCollisionError):
        tree.graft_subtree(tree.root_id, [Subtopic(name="Scales"), Subtopic(name="Basics")])

    assert tree.version == version
    assert "Learn-Guitar-Scales" not in tree


def test_graft_into_missing_node_raises() -> None:
    tree = TaskTree("Learn Guitar")
    with pytest.raises(NotFoundError):
        tree.graft_subtree("nope", [Subtopic(name="Basics")])


def test_blank_names_are_dropped_with_their_subtree() -> None:
    tree = TaskTree("Learn Guitar")
    result = tree.graft_subtree(
        tree.root_id,
        [Subtopic(name="  ", subtopics=[Subtopic(name="Orphan")]), Subtopic(name="Scales")],
    )
    assert result.added_ids == ["Learn-Guitar-Scales"]


def test_delete_follows_structure_not_id_prefixes() -> None:
    """Deleting "Basics" must not touch the sibling "Basics Extra" whose id shares its prefix."""

    tree = TaskTree("Learn Guitar")
    tree.graft_subtree(
        tree.root_id,
        [
            Subtopic(name="Basics", subtopics=[Subtopic(name="Extra")]),
            Subtopic(name="Basics Extra"),
        ],
    )
    # The child id collides with the sibling and receives a suffix.
    assert tree.children_of("Learn-Guitar-Basics") == ["Learn-Guitar-Basics-Extra"]
    assert tree.children_of(tree.root_id) == ["Learn-Guitar-Basics", "Learn-Guitar-Basics-Extra-2"]

    removed = tree.delete_subtree("Learn-Guitar-Basics")

    assert removed == ["Learn-Guitar-Basics", "Learn-Guitar-Basics-Extra"]
    assert tree.children_of(tree.root_id) == ["Learn-Guitar-Basics-Extra-2"]
    assert len(tree) == 2


def test_root_cannot_be_deleted() -> None:
    tree = TaskTree("Learn Guitar")
    with pytest.raises(PreconditionError):
        tree.delete_subtree(tree.root_id)
    with pytest.raises(NotFoundError):
        tree.delete_subtree("missing")


def test_update_node_merges_fields_and_bumps_version() -> None:
    tree = TaskTree("Learn Guitar")
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics", subtopics=[Subtopic(name="Tuning")])])
    before = tree.version

    version = tree.update_node("Learn-Guitar-Basics", {"details": "Start here", "status": "in_progress"})

    node = tree.get("Learn-Guitar-Basics")
    assert version == before + 1
    assert node.details == "Start here"
    assert node.status is NodeStatus.IN_PROGRESS
    # Renaming keeps the id and the children.
    tree.update_node("Learn-Guitar-Basics", NodePatch(name="Fundamentals"))
    assert tree.get("Learn-Guitar-Basics").name == "Fundamentals"
    assert tree.children_of("Learn-Guitar-Basics") == ["Learn-Guitar-Basics-Tuning"]


def test_update_node_rejects_invalid_patches() -> None:
    tree = TaskTree("Learn Guitar")
    with pytest.raises(InvalidNameError):
        tree.update_node(tree.root_id, {"name": "   "})
    with pytest.raises(ValueError):
        tree.update_node(tree.root_id, {"links": None})
    with pytest.raises(NotFoundError):
        tree.update_node("missing", {"details": "x"})


def test_snapshots_are_isolated_from_the_live_tree() -> None:
    tree = TaskTree("Learn Guitar")
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics")])

    snap = tree.snapshot()
    snap.subtopics[0].name = "Changed"
    snap.subtopics.clear()

    assert tree.get("Learn-Guitar-Basics").name == "Basics"
    assert tree.snapshot().find("Learn-Guitar-Basics") is not None


def test_set_links_replaces_links() -> None:
    tree = TaskTree("Learn Guitar")
    tree.set_links(tree.root_id, [Link(title="Lessons", url="https://example.com", type="video")])
    assert tree.get(tree.root_id).links[0].type.value == "video"


def test_error_node_tree() -> None:
    tree = TaskTree.with_error_node("Learn Guitar")
    [error] = tree.snapshot().subtopics
    assert error.name == ERROR_NODE_NAME
    assert error.id == "Learn-Guitar-Error"


def test_from_node_rejects_duplicate_ids() -> None:
    tree = TaskTree("Learn Guitar")
    tree.graft_subtree(tree.root_id, [Subtopic(name="Basics")])
    snap = tree.snapshot()
    snap.subtopics.append(snap.subtopics[0].model_copy())

    with pytest.raises(ValueError):
        TaskTree.from_node(snap)
