"""
Key/value memory shared across hosts through the runtime server.

Two scopes:
- ``session``: in memory, lost when the server stops
- ``project``: persisted as JSON in ``<project>/.ai-ext/memory.json``
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ai_ext.logging import get_logger
from ai_ext.models import MemoryScope

logger = get_logger("runtime.memory")

SCOPES = (MemoryScope.SESSION.value, MemoryScope.PROJECT.value)
MEMORY_FILENAME = "memory.json"


class MemoryStore:
    """
    Scoped key/value store.

    Every write to the project scope is flushed to disk immediately.

    Example:
        store = MemoryStore(project_dir)
        store.set("last-build", "claude", scope="project")
        store.get("last-build", scope="project")
    """

    def __init__(self, project_dir: str | Path | None = None, dir_name: str = ".ai-ext") -> None:
        self.path = Path(project_dir or Path.cwd()) / dir_name / MEMORY_FILENAME
        self._session: dict[str, Any] = {}
        self._project: dict[str, Any] = self._load()

    def get(self, key: str, scope: str = "session") -> Any:
        return self._store(scope).get(key)

    def set(self, key: str, value: Any, scope: str = "session") -> None:
        self._store(scope)[key] = value
        if scope == MemoryScope.PROJECT.value:
            self._persist()

    def delete(self, key: str, scope: str = "session") -> bool:
        store = self._store(scope)
        if key not in store:
            return False
        del store[key]
        if scope == MemoryScope.PROJECT.value:
            self._persist()
        return True

    def list(self, scope: str = "session") -> list[str]:
        return list(self._store(scope))

    def get_all(self, scope: str = "session") -> dict[str, Any]:
        return dict(self._store(scope))

    def clear(self, scope: str = "session") -> None:
        self._store(scope).clear()
        if scope == MemoryScope.PROJECT.value:
            self._persist()

    def _store(self, scope: str) -> dict[str, Any]:
        if scope == MemoryScope.SESSION.value:
            return self._session
        if scope == MemoryScope.PROJECT.value:
            return self._project
        raise ValueError(f"Unknown memory scope: {scope!r} (expected one of {', '.join(SCOPES)})")

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read project memory %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring project memory %s: not a JSON object", self.path)
            return {}
        return data

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._project, indent=2) + "\n", encoding="utf-8")
