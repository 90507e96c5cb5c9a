"""Project tags embedded in commit messages.

``parse_project_tag`` is total: it never raises for any message and
returns ``None`` when no configured project is tagged, leaving the
fallback to the caller.
"""

from __future__ import annotations

import re
from functools import lru_cache

from timesheet_gen.models.allocation import ProjectTag, RepositoryMapping


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def marker_pattern(project_id: str, prefix: str = "#") -> str:
    """Regex for the default ``<prefix><project_id>`` marker.

    The marker must not be glued to surrounding word characters, so
    ``#proj-a`` does not match inside ``#proj-ab``.
    """
    return rf"(?<![\w-]){re.escape(prefix + project_id)}(?![\w-])"


def project_pattern(tag: ProjectTag, prefix: str = "#") -> re.Pattern[str]:
    return _compile(tag.pattern if tag.pattern else marker_pattern(tag.project_id, prefix))


def validate_pattern(pattern: str) -> str | None:
    """Return an error message for an invalid regex, else ``None``."""
    try:
        re.compile(pattern)
    except re.error as exc:
        return str(exc)
    return None


def parse_project_tag(message: str, mapping: RepositoryMapping) -> str | None:
    """Return the project tagged in *message*, or ``None``.

    Projects are tried in configured order; the first match wins.
    """
    if not message:
        return None
    for tag in mapping.tags:
        if project_pattern(tag, mapping.tag_prefix).search(message):
            return tag.project_id
    return None
