"""Detects questions scoped to a specific project or employer."""

from __future__ import annotations

import re

from ..core.config.settings import ProjectPattern
from ..core.models.query import ProjectContext

_WHITESPACE = re.compile(r"\s+")


class ProjectDetector:
    """Registry of pattern -> canonical project name. First registered match wins."""

    def __init__(self, patterns: list[ProjectPattern] | None = None):
        self._registry: list[tuple[re.Pattern[str], str]] = []
        for entry in patterns or []:
            self.register(entry.pattern, entry.name)

    def register(self, pattern: str | re.Pattern[str], name: str) -> None:
        compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
        self._registry.append((compiled, name))

    def unregister(self, name: str) -> int:
        """Drop every pattern for ``name``; returns how many were removed."""
        before = len(self._registry)
        self._registry = [(p, n) for p, n in self._registry if n != name]
        return before - len(self._registry)

    def known_projects(self) -> list[str]:
        return list(dict.fromkeys(name for _, name in self._registry))

    def detect(self, query: str) -> ProjectContext:
        for pattern, name in self._registry:
            if pattern.search(query):
                cleaned = _WHITESPACE.sub(" ", pattern.sub("", query, count=1)).strip()
                return ProjectContext(
                    is_project_specific=True,
                    project_name=name,
                    clean_query=cleaned or query,
                )
        return ProjectContext(is_project_specific=False, clean_query=query)
