"""Decides which change events should restart the child."""

from pathlib import PurePath
from typing import Iterable

from .watcher import ChangeEvent


class ChangeFilter:
    """Extension suffix check with optional excluded directory names.

    With no exclusions every matching path is relevant, including paths inside
    dependency directories such as node_modules.
    """

    def __init__(self, extensions: Iterable[str], exclude_dirs: Iterable[str] = ()):
        self.extensions = tuple(extensions)
        self.exclude_dirs = frozenset(exclude_dirs)
        if not self.extensions:
            raise ValueError("At least one extension is required")

    def is_relevant(self, event: ChangeEvent) -> bool:
        if not event.path.endswith(self.extensions):
            return False
        if self.exclude_dirs:
            parents = PurePath(event.path).parts[:-1]
            if any(part in self.exclude_dirs for part in parents):
                return False
        return True

    __call__ = is_relevant

    def __repr__(self):
        return f"ChangeFilter(extensions={self.extensions!r}, exclude_dirs={sorted(self.exclude_dirs)!r})"
