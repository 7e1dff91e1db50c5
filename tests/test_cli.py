"""Tests for the CLI commands that work on exported files."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from taskmind.cli import app, build_rich_tree
from taskmind.export import dumps_json
from taskmind.models.fragment import Subtopic
from taskmind.tree.arena import TaskTree

runner = CliRunner()


def write_document(tmp_path: Path) -> Path:
    tree = TaskTree.from_subtopics("Learn Guitar", [Subtopic(name="Basics", subtopics=[Subtopic(name="Tuning")])])
    path = tmp_path / "mindmap.json"
    path.write_text(dumps_json(tree), encoding="utf-8")
    return path


def test_render_writes_markdown(tmp_path: Path) -> None:
    document = write_document(tmp_path)
    output = tmp_path / "out" / "mindmap.md"

    result = runner.invoke(app, ["render", str(document), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert output.read_text(encoding="utf-8").startswith("# Learn Guitar\n\n## Basics")


def test_show_prints_tree(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show", str(write_document(tmp_path))])

    assert result.exit_code == 0, result.output
    assert "Tuning" in result.output
    assert "3 nodes" in result.output


def test_build_rich_tree_nests_children() -> None:
    root = TaskTree.from_subtopics("Learn Guitar", [Subtopic(name="Basics [intro]")]).snapshot()
    tree = build_rich_tree(root)
    assert len(tree.children) == 1
