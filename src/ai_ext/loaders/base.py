"""
Base component loader interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ParsedComponent:
    """A source file split into its metadata block and instruction body."""

    frontmatter: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    source_path: Path | None = None


class ComponentLoader(ABC):
    """
    Abstract base class for component loaders.

    A loader knows how to recognise one source format and split a file
    into structured metadata plus free-form instructions.
    """

    @abstractmethod
    def can_load(self, path: Path, filename: str | None = None) -> bool:
        """Check if this loader can handle the given file."""
        pass

    @abstractmethod
    def load(self, path: Path, fix_yaml_descriptions: bool = False) -> ParsedComponent:
        """Load a component file."""
        pass

    def discover(
        self,
        base_dir: Path,
        component_dir: str | None,
        filename: str,
    ) -> list[Path]:
        """
        Find component files under ``base_dir / component_dir``.

        Matches ``filename`` case-insensitively at any depth. Results are
        sorted by path so resolution order never depends on the filesystem.

        Args:
            base_dir: Extension root
            component_dir: Subdirectory declared in the manifest (None = kind unused)
            filename: Canonical filename, e.g. ``SKILL.md``

        Returns:
            Sorted list of matching files
        """
        if not component_dir:
            return []

        directory = (Path(base_dir) / component_dir).resolve()
        if not directory.is_dir():
            return []

        return sorted(
            path
            for path in directory.rglob("*")
            if path.is_file() and self.can_load(path, filename)
        )

    def discover_rules(self, base_dir: Path, rules_dir: str | None) -> dict[str, str]:
        """
        Read every ``*.md`` file under the rules directory.

        Returns:
            Mapping of POSIX path relative to the rules root -> content,
            ordered by path
        """
        if not rules_dir:
            return {}

        root = (Path(base_dir) / rules_dir).resolve()
        if not root.is_dir():
            return {}

        rules: dict[str, str] = {}
        for path in sorted(root.rglob("*.md")):
            if path.is_file():
                rules[path.relative_to(root).as_posix()] = path.read_text(encoding="utf-8")
        return rules
