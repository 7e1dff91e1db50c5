"""Node id derivation.

Ids are path-shaped: a child's id is its parent's id, a hyphen, and the slug of its own name.
Re-deriving an id for the same (parent, name) pair always yields the same value.
"""

from __future__ import annotations

import re
from typing import Callable

from taskmind.errors import InvalidNameError

ID_SEPARATOR = "-"

_WHITESPACE_RE = re.compile(r"\s+")


def slugify(name: str) -> str:
    """Collapse whitespace runs in ``name`` into single hyphens.

    Leading and trailing whitespace is dropped rather than turned into hyphens.
    """

    return _WHITESPACE_RE.sub(ID_SEPARATOR, name.strip())


def derive_id(parent_id: str | None, name: str) -> str:
    """Derive a node id from its parent id and name.

    Raises:
        InvalidNameError: If ``name`` is empty after collapsing whitespace.
    """

    slug = slugify(name)
    if not slug:
        raise InvalidNameError(f"name {name!r} has an empty slug")
    if parent_id is None:
        return slug
    return f"{parent_id}{ID_SEPARATOR}{slug}"


def unique_id(candidate: str, exists: Callable[[str], bool]) -> str:
    """Return ``candidate`` or the first ``candidate-N`` (N >= 2) for which ``exists`` is false."""

    if not exists(candidate):
        return candidate
    n = 2
    while exists(f"{candidate}{ID_SEPARATOR}{n}"):
        n += 1
    return f"{candidate}{ID_SEPARATOR}{n}"
