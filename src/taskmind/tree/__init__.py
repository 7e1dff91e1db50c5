"""Tree reconstruction and the live task tree."""

from __future__ import annotations

from taskmind.tree.arena import GraftResult, TaskTree
from taskmind.tree.reconstruct import Reconstruction, reconstruct, reconstruct_with_report

__all__ = ["GraftResult", "Reconstruction", "TaskTree", "reconstruct", "reconstruct_with_report"]
