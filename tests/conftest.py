"""Shared pytest fixtures for ai-ext tests."""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from ai_ext.models import (
    ComponentMetadata,
    ExtensionIR,
    ExtensionManifest,
    HookDefinition,
    HookFallback,
    HookHandler,
    ToolDefinition,
    ToolImplementation,
    ToolParameters,
)


def write(path: Path, content: str) -> Path:
    """Write dedented content, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dedent(content).lstrip(), encoding="utf-8")
    return path


MANIFEST = """
    name: demo-ext
    version: 1.0.0
    description: Demo extension for tests
    author: Test Author
    license: MIT

    skills: ./skills/
    agents: ./agents/
    hooks: ./hooks/
    tools: ./tools/
    policies: ./policies/
    rules: ./rules/
"""


@pytest.fixture
def extension_dir(tmp_path: Path) -> Path:
    """A complete, valid extension exercising every component kind."""
    root = tmp_path / "demo-ext"
    write(root / "extension.yaml", MANIFEST)

    write(
        root / "skills" / "code-review" / "SKILL.md",
        """
        ---
        name: code-review
        description: Review code for style and correctness
        allowed-tools: Read Grep Glob
        argument-hint: "[file]"
        ---

        # Code Review

        Read the file and report problems.
        """,
    )

    write(
        root / "agents" / "reviewer" / "AGENT.md",
        """
        ---
        name: reviewer
        description: Reviews pull requests
        model: sonnet
        maxTurns: 10
        tools:
          allowed: [Read, Grep]
          disallowed: [Bash]
        ---

        You review pull requests.
        """,
    )

    write(
        root / "hooks" / "guard-bash" / "HOOK.md",
        """
        ---
        name: guard-bash
        description: Block dangerous shell commands
        event: PreToolUse
        matcher: Bash
        handlers:
          - type: command
            command: ./scripts/guard.sh
            timeout: 10
        fallback:
          strategy: mcp-tool
        ---
        """,
    )

    write(
        root / "tools" / "word-count" / "TOOL.md",
        """
        ---
        name: word-count
        description: Count words in files
        parameters:
          type: object
          properties:
            files:
              type: array
              items:
                type: string
          required: [files]
        implementation:
          type: command
          command: wc -w {{files}}
        ---
        """,
    )

    write(
        root / "policies" / "safe-shell" / "POLICY.md",
        """
        ---
        name: safe-shell
        description: Keep shell usage safe
        permissions:
          deny: ["Bash(rm -rf *)"]
          ask: ["Bash(git push *)"]
          allow: ["Read"]
        sandbox:
          enabled: true
          network:
            allowedDomains: [github.com]
        ---

        Prefer read-only commands.
        """,
    )

    write(
        root / "rules" / "style.md",
        """
        # Style

        - Use four spaces.
        """,
    )

    return root


def make_hook(
    name: str = "guard-bash",
    event: str = "PreToolUse",
    command: str | None = "exit 0",
    matcher: str | None = None,
    strategy: str | None = None,
    description: str = "Guard",
    handler_type: str = "command",
    timeout: float | None = None,
) -> HookDefinition:
    handler = HookHandler(
        type=handler_type,
        command=command if handler_type == "command" else None,
        prompt="Check it" if handler_type != "command" else None,
        timeout=timeout,
    )
    return HookDefinition(
        metadata=ComponentMetadata(name=name, description=description),
        event=event,
        handlers=[handler],
        matcher=matcher,
        fallback=HookFallback(strategy=strategy) if strategy else None,
    )


def make_tool(
    name: str = "echo-args",
    command: str = "echo {{message}}",
    properties: dict | None = None,
    impl_type: str = "command",
    script: str | None = None,
) -> ToolDefinition:
    return ToolDefinition(
        metadata=ComponentMetadata(name=name, description=f"{name} tool"),
        parameters=ToolParameters(properties=properties or {"message": {"type": "string"}}),
        implementation=ToolImplementation(
            type=impl_type,
            command=command if impl_type == "command" else None,
            script=script,
        ),
    )


def make_ir(**components) -> ExtensionIR:
    return ExtensionIR(
        manifest=ExtensionManifest(name="demo-ext", version="1.0.0", description="Demo"),
        **components,
    )


@pytest.fixture
def hook_factory():
    return make_hook


@pytest.fixture
def tool_factory():
    return make_tool


@pytest.fixture
def ir_factory():
    return make_ir
