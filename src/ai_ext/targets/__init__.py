"""
Host compilation targets.
"""

from ai_ext.targets.base import (
    HOOK_ENGINE,
    TOOL_SERVER,
    CompilationTarget,
    TargetOutput,
    render_json,
    render_markdown,
)
from ai_ext.targets.claude import ClaudeTarget
from ai_ext.targets.kilocode import KiloCodeTarget
from ai_ext.targets.opencode import OpenCodeTarget
from ai_ext.targets.registry import (
    TargetFactory,
    TargetRegistry,
    UnknownTargetError,
    create_default_registry,
)

__all__ = [
    "HOOK_ENGINE",
    "TOOL_SERVER",
    "ClaudeTarget",
    "CompilationTarget",
    "KiloCodeTarget",
    "OpenCodeTarget",
    "TargetFactory",
    "TargetOutput",
    "TargetRegistry",
    "UnknownTargetError",
    "create_default_registry",
    "render_json",
    "render_markdown",
]
