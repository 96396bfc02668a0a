"""
Scaffolding for ``ai-ext init``.
"""

from __future__ import annotations

from pathlib import Path

from ai_ext.loaders.manifest import MANIFEST_FILENAMES

MANIFEST_TEMPLATE = """\
name: {name}
version: 0.1.0
description: A portable AI agent extension
author: ""
license: MIT

skills: ./skills/
agents: ./agents/
hooks: ./hooks/
tools: ./tools/
policies: ./policies/
rules: ./rules/
"""

EXAMPLE_SKILL = """\
---
name: example
description: An example skill that demonstrates the ai-ext canonical format
allowed-tools: Read Grep Glob
---

You are a helpful assistant with access to the project codebase.

When asked to help, use the available tools to read and search files.

Provide clear, concise answers with file references.
"""

EXAMPLE_RULE = """\
# Project Rules

## Code Style
- Use consistent formatting
- Write clear comments
- Follow the project's existing conventions
"""

SCAFFOLD_DIRS = ("skills/example", "agents", "hooks", "tools", "policies", "rules")


def init_extension(directory: str | Path, name: str | None = None) -> Path:
    """
    Create a new extension project.

    Args:
        directory: Project directory, created if missing
        name: Extension name (defaults to the directory name)

    Returns:
        Path of the written manifest

    Raises:
        FileExistsError: If the directory already holds a manifest
    """
    directory = Path(directory).resolve()
    for filename in MANIFEST_FILENAMES:
        if (directory / filename).exists():
            raise FileExistsError(
                f"Extension already exists at {directory}. "
                f"Delete {filename} to reinitialize."
            )

    for sub in SCAFFOLD_DIRS:
        (directory / sub).mkdir(parents=True, exist_ok=True)

    manifest_path = directory / "extension.yaml"
    manifest_path.write_text(
        MANIFEST_TEMPLATE.format(name=name or directory.name or "my-extension"),
        encoding="utf-8",
    )
    (directory / "skills" / "example" / "SKILL.md").write_text(EXAMPLE_SKILL, encoding="utf-8")
    (directory / "rules" / "project-rules.md").write_text(EXAMPLE_RULE, encoding="utf-8")
    return manifest_path
