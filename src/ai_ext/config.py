"""
Configuration for the ai-ext compiler and runtime.

An optional ``ai-ext.yaml`` next to ``extension.yaml`` tunes build defaults
and the compensation runtime. Everything has a sensible default so the file
is never required.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "ai-ext.yaml"

DEFAULT_TARGETS = ["claude", "kilocode", "opencode"]


def _env_float(name: str, default: float) -> float:
    val = os.environ.get(name)
    if not val:
        return default
    try:
        parsed = float(val)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def get_hook_timeout(default: float = 60.0) -> float:
    """Get the default hook handler timeout from ``AI_EXT_HOOK_TIMEOUT``."""
    return _env_float("AI_EXT_HOOK_TIMEOUT", default)


def get_tool_timeout(default: float = 120.0) -> float:
    """Get the default tool command timeout from ``AI_EXT_TOOL_TIMEOUT``."""
    return _env_float("AI_EXT_TOOL_TIMEOUT", default)


@dataclass
class AiExtConfig:
    """
    Build and runtime configuration.

    Example YAML:
        default_targets:
          - claude
          - opencode
        dist_dir_name: build
        fix_yaml_descriptions: true
        hook_timeout_seconds: 30
        runtime_command: uvx
        runtime_args: ["ai-ext", "serve"]
    """

    # Build
    default_targets: list[str] = field(default_factory=lambda: list(DEFAULT_TARGETS))
    out_dir: Path | None = None  # Overrides <source>/<dist_dir_name>/<target>
    dist_dir_name: str = "dist"
    fix_yaml_descriptions: bool = False

    # Compensation runtime
    hook_timeout_seconds: float = 60.0  # Used when a handler declares no timeout
    tool_timeout_seconds: float = 120.0
    runtime_command: str = "ai-ext"
    runtime_args: list[str] = field(default_factory=lambda: ["serve"])
    runtime_server_name: str = "ai-ext-runtime"
    memory_dir_name: str = ".ai-ext"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AiExtConfig:
        """Create config from a dictionary, applying environment overrides."""
        defaults = cls()
        return cls(
            default_targets=list(data.get("default_targets", defaults.default_targets)),
            out_dir=Path(data["out_dir"]) if data.get("out_dir") else None,
            dist_dir_name=data.get("dist_dir_name", defaults.dist_dir_name),
            fix_yaml_descriptions=bool(data.get("fix_yaml_descriptions", False)),
            hook_timeout_seconds=get_hook_timeout(
                float(data.get("hook_timeout_seconds", defaults.hook_timeout_seconds))
            ),
            tool_timeout_seconds=get_tool_timeout(
                float(data.get("tool_timeout_seconds", defaults.tool_timeout_seconds))
            ),
            runtime_command=data.get("runtime_command", defaults.runtime_command),
            runtime_args=list(data.get("runtime_args", defaults.runtime_args)),
            runtime_server_name=data.get("runtime_server_name", defaults.runtime_server_name),
            memory_dir_name=data.get("memory_dir_name", defaults.memory_dir_name),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> AiExtConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> AiExtConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    @classmethod
    def discover(cls, directory: Path) -> AiExtConfig:
        """Load ``ai-ext.yaml`` from an extension directory, or return defaults."""
        path = Path(directory) / CONFIG_FILENAME
        if path.is_file():
            return cls.from_yaml(path)
        return cls.from_dict({})

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "default_targets": list(self.default_targets),
            "out_dir": str(self.out_dir) if self.out_dir else None,
            "dist_dir_name": self.dist_dir_name,
            "fix_yaml_descriptions": self.fix_yaml_descriptions,
            "hook_timeout_seconds": self.hook_timeout_seconds,
            "tool_timeout_seconds": self.tool_timeout_seconds,
            "runtime_command": self.runtime_command,
            "runtime_args": list(self.runtime_args),
            "runtime_server_name": self.runtime_server_name,
            "memory_dir_name": self.memory_dir_name,
        }

    def output_dir_for(self, source_dir: Path, target: str) -> Path:
        """Default output directory for a target."""
        if self.out_dir is not None:
            return self.out_dir
        return Path(source_dir) / self.dist_dir_name / target
