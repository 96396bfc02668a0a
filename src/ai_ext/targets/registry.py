"""
Registry of compilation targets.

There is no module-level registry: callers build one, usually with
:func:`create_default_registry`, and hand it to a
:class:`~ai_ext.compiler.Compiler`. Tests can therefore run compilers with
different target sets side by side.

Example:
    from ai_ext.targets.registry import TargetRegistry, create_default_registry

    registry = create_default_registry()
    registry.register("my-host", MyHostTarget())
    target = registry.get("claude")
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ai_ext.config import AiExtConfig
from ai_ext.logging import get_logger
from ai_ext.targets.base import CompilationTarget

logger = get_logger("targets.registry")

# Factory signature: (config) -> CompilationTarget
TargetFactory = Callable[[AiExtConfig], CompilationTarget]


class UnknownTargetError(KeyError):
    """Raised when a target name is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        listed = ", ".join(available) or "(none)"
        super().__init__(f'Unknown target "{name}". Supported targets: {listed}')

    def __str__(self) -> str:
        return str(self.args[0])


class _TargetEntry:
    """Internal entry holding either a target instance or a factory."""

    __slots__ = ("name", "instance", "factory")

    def __init__(
        self,
        name: str,
        instance: CompilationTarget | None = None,
        factory: TargetFactory | None = None,
    ) -> None:
        self.name = name
        self.instance = instance
        self.factory = factory


class TargetRegistry:
    """
    Named compilation targets.

    Targets can be registered by instance (eager) or by factory (created on
    first ``get()`` with the registry's config).
    """

    def __init__(self, config: AiExtConfig | None = None) -> None:
        self.config = config or AiExtConfig()
        self._entries: dict[str, _TargetEntry] = {}

    def register(self, name: str, target: CompilationTarget) -> None:
        """
        Register a target instance.

        Raises:
            ValueError: If name is empty
        """
        if not name:
            raise ValueError("Target name must not be empty")
        if name in self._entries:
            logger.debug("Overriding target: %s", name)
        self._entries[name] = _TargetEntry(name=name, instance=target)
        logger.debug("Registered target: %s", name)

    def register_factory(self, name: str, factory: TargetFactory) -> None:
        """
        Register a target factory for lazy creation.

        Raises:
            ValueError: If name is empty
        """
        if not name:
            raise ValueError("Target name must not be empty")
        if name in self._entries:
            logger.debug("Overriding target factory: %s", name)
        self._entries[name] = _TargetEntry(name=name, factory=factory)
        logger.debug("Registered target factory: %s", name)

    def get(self, name: str) -> CompilationTarget:
        """
        Get a target by name.

        Raises:
            UnknownTargetError: If the target is not registered
        """
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownTargetError(name, self.list_targets())

        if entry.instance is None:
            if entry.factory is None:
                raise RuntimeError(f"Target '{name}' has no instance or factory")
            logger.debug("Creating target '%s' from factory", name)
            entry.instance = entry.factory(self.config)
        return entry.instance

    def has(self, name: str) -> bool:
        return name in self._entries

    def list_targets(self) -> list[str]:
        """List registered target names in registration order."""
        return list(self._entries.keys())

    def get_info(self, name: str) -> dict[str, Any]:
        """Describe a registered target."""
        target = self.get(name)
        return {
            "name": name,
            "display_name": target.display_name,
            "native_hook_events": sorted(target.native_hook_events),
        }

    def unregister(self, name: str) -> bool:
        """
        Remove a registered target.

        Returns:
            True if removed, False if not found
        """
        if name not in self._entries:
            return False
        del self._entries[name]
        logger.debug("Unregistered target: %s", name)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __repr__(self) -> str:
        return f"TargetRegistry([{', '.join(self._entries)}])"


def create_default_registry(config: AiExtConfig | None = None) -> TargetRegistry:
    """Build a registry with the Claude Code, KiloCode and OpenCode targets."""
    from ai_ext.targets.claude import ClaudeTarget
    from ai_ext.targets.kilocode import KiloCodeTarget
    from ai_ext.targets.opencode import OpenCodeTarget

    registry = TargetRegistry(config)
    registry.register_factory("claude", ClaudeTarget)
    registry.register_factory("kilocode", KiloCodeTarget)
    registry.register_factory("opencode", OpenCodeTarget)
    return registry
