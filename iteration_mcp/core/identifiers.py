"""Map a user-supplied project line token onto a remote project id."""

from __future__ import annotations

import re
from typing import Callable, Iterable, Sequence

from .errors import ProjectNotFoundError
from .models import Project

_NUMERIC = re.compile(r"\d+")

Matcher = Callable[[str, str], bool]

# Evaluated in order; within a tier the first project in listed order wins.
_NAME_TIERS: tuple[Matcher, ...] = (
    lambda name, token: name == token,
    lambda name, token: token in name,
    lambda name, token: name in token,
)


def resolve_project_id(token: str, projects: Sequence[Project]) -> int:
    """Return the id of the project ``token`` refers to.

    A positive integer token must equal a project id exactly. Any other token
    is matched against project names: case-sensitive tiers first, then the
    same tiers case-folded.
    """
    cleaned = (token or "").strip()
    if _NUMERIC.fullmatch(cleaned) and int(cleaned) > 0:
        wanted = int(cleaned)
        for project in projects:
            if project.id == wanted:
                return project.id
        raise ProjectNotFoundError(cleaned, _labels(projects))

    if cleaned:
        match = _match_by_name(cleaned, projects, fold=False) or _match_by_name(
            cleaned, projects, fold=True
        )
        if match is not None:
            return match.id
    raise ProjectNotFoundError(cleaned, _labels(projects))


def _match_by_name(
    token: str, projects: Sequence[Project], *, fold: bool
) -> Project | None:
    needle = token.casefold() if fold else token
    for matches in _NAME_TIERS:
        for project in projects:
            name = project.name.casefold() if fold else project.name
            if name and matches(name, needle):
                return project
    return None


def _labels(projects: Iterable[Project]) -> list[str]:
    return [project.label() for project in projects]
