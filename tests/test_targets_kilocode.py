"""Tests for the KiloCode target."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from ai_ext.loaders import split_frontmatter
from ai_ext.models import AgentDefinition, ComponentMetadata, ExtensionIR, ToolAccess
from ai_ext.resolver import resolve_extension
from ai_ext.targets import KiloCodeTarget
from ai_ext.targets.kilocode import ALL_GROUPS, infer_tool_groups, title_case


@pytest.fixture
def ir(extension_dir: Path) -> ExtensionIR:
    return resolve_extension(extension_dir).ir


def _agent(**kwargs) -> AgentDefinition:
    return AgentDefinition(
        metadata=ComponentMetadata(name="a", description="d"), instructions="", **kwargs
    )


class TestKiloCodeTarget:
    def test_files(self, ir: ExtensionIR) -> None:
        output = KiloCodeTarget().compile(ir)

        assert set(output.files) == {
            ".kilocode/skills/code-review/SKILL.md",
            ".kilocodemodes",
            ".kilocode/rules/style.md",
            ".kilocode/rules/policy-safe-shell.md",
            ".kilocode/mcp.json",
        }

    def test_bridged_hook_requires_runtime(self, ir_factory, hook_factory) -> None:
        """An mcp-tool hook produces a hook-engine requirement and no native artifact."""
        output = KiloCodeTarget().compile(ir_factory(hooks=[hook_factory(strategy="mcp-tool")]))

        assert output.requires("hook-engine")
        requirement = output.compensation_requirements[0]
        assert requirement.component == "hooks"
        assert requirement.reason.startswith("1 hook(s) require runtime emulation")
        assert not any("hook" in path for path in output.files if path != ".kilocode/mcp.json")
        assert ".kilocode/mcp.json" in output.files

    def test_skill_injection_hook(self, ir_factory, hook_factory) -> None:
        hook = hook_factory(name="lint-first", strategy="skill-injection", command="npm run lint")
        output = KiloCodeTarget().compile(ir_factory(hooks=[hook]))

        content = output.files[".kilocode/rules/hook-lint-first.md"]
        assert "# Hook: lint-first" in content
        assert "`npm run lint`" in content
        assert not output.requires("hook-engine")
        assert ".kilocode/mcp.json" not in output.files

    def test_ignored_hook(self, ir_factory, hook_factory) -> None:
        output = KiloCodeTarget().compile(ir_factory(hooks=[hook_factory(strategy="ignore")]))

        assert output.compensation_requirements == []
        assert any(w.component == "hook:guard-bash" for w in output.warnings)

    def test_modes(self, ir: ExtensionIR) -> None:
        output = KiloCodeTarget().compile(ir)
        modes = yaml.safe_load(output.files[".kilocodemodes"])["customModes"]

        assert modes == [
            {
                "slug": "reviewer",
                "name": "Reviewer",
                "description": "Reviews pull requests",
                "roleDefinition": "You review pull requests.",
                "groups": ["read", "mcp"],
            }
        ]
        agent_warnings = [w for w in output.warnings if w.component == "agent:reviewer"]
        assert len(agent_warnings) == 1
        assert "model" in agent_warnings[0].message

    def test_policy_warning(self, ir: ExtensionIR) -> None:
        output = KiloCodeTarget().compile(ir)

        assert any(w.component == "policy:safe-shell" for w in output.warnings)
        rules = output.files[".kilocode/rules/policy-safe-shell.md"]
        assert "### NEVER do the following:" in rules
        assert "- Bash(rm -rf *)" in rules

    def test_rule_colliding_with_generated_file_warns(self, extension_dir: Path) -> None:
        (extension_dir / "rules" / "policy-safe-shell.md").write_text("# Mine\n")
        output = KiloCodeTarget().compile(resolve_extension(extension_dir).ir)

        collisions = [w for w in output.warnings if w.component == "output"]
        assert len(collisions) == 1
        assert collisions[0].message.startswith(".kilocode/rules/policy-safe-shell.md is produced twice")
        assert output.files[".kilocode/rules/policy-safe-shell.md"].startswith("# Policy: safe-shell")

    def test_skill_frontmatter(self, ir: ExtensionIR) -> None:
        output = KiloCodeTarget().compile(ir)
        fm, _ = split_frontmatter(output.files[".kilocode/skills/code-review/SKILL.md"])

        assert fm["allowed-tools"] == "Read Grep Glob"

    def test_mcp_config(self, ir: ExtensionIR) -> None:
        output = KiloCodeTarget().compile(ir)
        config = json.loads(output.files[".kilocode/mcp.json"])
        assert config["mcpServers"]["ai-ext-runtime"]["command"] == "ai-ext"


class TestToolGroups:
    def test_no_lists_gets_everything(self) -> None:
        assert infer_tool_groups(_agent()) == ALL_GROUPS

    def test_explicit_groups_win(self) -> None:
        agent = _agent(tool_groups=["read"], tools=ToolAccess(allowed=["Bash"]))
        assert infer_tool_groups(agent) == ["read"]

    def test_edit_and_command(self) -> None:
        agent = _agent(tools=ToolAccess(allowed=["Read", "Edit", "Bash"]))
        assert infer_tool_groups(agent) == ["read", "edit", "command", "mcp"]

    def test_denied_read(self) -> None:
        agent = _agent(tools=ToolAccess(disallowed=["Read", "Grep", "Glob", "Bash"]))
        assert infer_tool_groups(agent) == ["mcp"]

    def test_title_case(self) -> None:
        assert title_case("code-reviewer") == "Code Reviewer"
