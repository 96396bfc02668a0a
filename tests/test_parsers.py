"""Tests for frontmatter normalization into canonical definitions."""

from __future__ import annotations

from pathlib import Path

import pytest

from ai_ext.loaders import ParsedComponent
from ai_ext.models import McpServerRef, SkillContext, ToolAccess
from ai_ext.parsers import (
    inline_hook_name,
    kebab_case,
    normalize_invocation,
    normalize_tool_access,
    parse_agent,
    parse_hook,
    parse_inline_hooks,
    parse_policy,
    parse_skill,
    parse_tool,
)


def component(frontmatter: dict, body: str = "Body", path: str = "x/SKILL.md") -> ParsedComponent:
    return ParsedComponent(frontmatter=frontmatter, body=body, source_path=Path(path))


class TestToolAccess:
    """Both frontmatter conventions produce the same canonical value."""

    def test_conventions_are_equivalent(self) -> None:
        canonical = normalize_tool_access({"tools": {"allowed": ["Read", "Grep"]}})
        hyphenated = normalize_tool_access({"allowed-tools": "Read Grep"})
        comma = normalize_tool_access({"allowed-tools": "Read, Grep"})
        camel = normalize_tool_access({"allowedTools": ["Read", "Grep"]})

        expected = ToolAccess(allowed=["Read", "Grep"])
        assert canonical == hyphenated == comma == camel == expected

    def test_bare_list(self) -> None:
        assert normalize_tool_access({"tools": ["Read"]}) == ToolAccess(allowed=["Read"])

    def test_disallowed(self) -> None:
        access = normalize_tool_access({"disallowed-tools": "Bash Write"})
        assert access == ToolAccess(disallowed=["Bash", "Write"])

    def test_canonical_wins(self) -> None:
        access = normalize_tool_access(
            {"tools": {"allowed": ["Read"]}, "allowed-tools": "Bash"}
        )
        assert access.allowed == ["Read"]

    def test_absent(self) -> None:
        assert normalize_tool_access({}) is None


class TestInvocation:
    def test_disable_model_invocation_is_inverted(self) -> None:
        invocation = normalize_invocation({"disable-model-invocation": True})
        assert invocation.model_invocable is False

    def test_canonical_model_invocable(self) -> None:
        invocation = normalize_invocation(
            {"modelInvocable": True, "disable-model-invocation": True}
        )
        assert invocation.model_invocable is True

    def test_user_invocable_conventions(self) -> None:
        assert normalize_invocation({"user-invocable": False}).user_invocable is False
        assert normalize_invocation({"userInvocable": False}).user_invocable is False

    def test_absent(self) -> None:
        assert normalize_invocation({}) is None


class TestParseSkill:
    def test_full(self) -> None:
        skill = parse_skill(
            component(
                {
                    "name": "review",
                    "description": "Review",
                    "allowed-tools": "Read Grep",
                    "argument-hint": "[file]",
                    "context": "fork",
                    "agent": "reviewer",
                    "resources": ["docs/guide.md"],
                },
                body="Do the review.",
            )
        )
        assert skill.name == "review"
        assert skill.instructions == "Do the review."
        assert skill.tools == ToolAccess(allowed=["Read", "Grep"])
        assert skill.invocation.argument_hint == "[file]"
        assert skill.context == SkillContext(mode="fork", agent="reviewer")
        assert skill.resources == ["docs/guide.md"]
        assert skill.user_invocable

    def test_values_are_not_coerced(self) -> None:
        skill = parse_skill(component({"name": 42, "description": "d"}))
        assert skill.metadata.name == 42

    def test_inline_hooks(self) -> None:
        skill = parse_skill(
            component(
                {
                    "name": "s",
                    "description": "d",
                    "hooks": {
                        "PreToolUse": [
                            {"matcher": "Bash", "hooks": [{"type": "command", "command": "./c.sh"}]}
                        ]
                    },
                }
            )
        )
        assert len(skill.hooks) == 1
        hook = skill.hooks[0]
        assert hook.name == "pre-tool-use-bash"
        assert hook.event == "PreToolUse"
        assert hook.matcher == "Bash"
        assert hook.handlers[0].command == "./c.sh"
        assert hook.metadata.description == "Inline hook for PreToolUse"


class TestParseInlineHooks:
    def test_duplicate_names_get_suffix(self) -> None:
        hooks = parse_inline_hooks(
            {
                "Stop": [
                    {"hooks": [{"type": "command", "command": "a"}]},
                    {"hooks": [{"type": "command", "command": "b"}]},
                ]
            }
        )
        assert [h.name for h in hooks] == ["stop-all", "stop-all-2"]

    def test_bad_shape(self) -> None:
        with pytest.raises(ValueError):
            parse_inline_hooks(["PreToolUse"])
        with pytest.raises(ValueError):
            parse_inline_hooks({"Stop": "not a list"})

    def test_name_helpers(self) -> None:
        assert kebab_case("PostToolUseFailure") == "post-tool-use-failure"
        assert inline_hook_name("PreToolUse", "Edit|Write") == "pre-tool-use-edit-write"
        assert len(inline_hook_name("PreToolUse", "x" * 100)) <= 64


class TestParseAgent:
    def test_full(self) -> None:
        agent = parse_agent(
            component(
                {
                    "name": "reviewer",
                    "description": "Reviews",
                    "model": "sonnet",
                    "max-turns": 5,
                    "tools": {"allowed": ["Read"], "disallowed": ["Bash"]},
                    "permission-mode": "plan",
                    "skills": ["review"],
                    "mcpServers": ["github", {"name": "db", "command": "db-mcp"}],
                    "when-to-use": "For reviews",
                },
                path="agents/reviewer/AGENT.md",
            )
        )
        assert agent.max_turns == 5
        assert agent.permission_mode == "plan"
        assert agent.tools == ToolAccess(allowed=["Read"], disallowed=["Bash"])
        assert agent.mcp_servers[0] == "github"
        assert agent.mcp_servers[1] == McpServerRef(name="db", command="db-mcp")
        assert agent.when_to_use == "For reviews"


class TestParseHook:
    def test_full(self) -> None:
        hook = parse_hook(
            component(
                {
                    "name": "guard",
                    "description": "Guard",
                    "event": "PreToolUse",
                    "matcher": "Bash",
                    "handlers": [
                        {"type": "command", "command": "./g.sh", "timeout": 5, "async": True}
                    ],
                    "fallback": "skill-injection",
                }
            )
        )
        assert hook.handlers[0].timeout == 5
        assert hook.handlers[0].async_ is True
        assert hook.fallback.strategy == "skill-injection"
        assert hook.effective_strategy == "skill-injection"

    def test_default_strategy(self) -> None:
        hook = parse_hook(component({"name": "h", "description": "d", "event": "Stop"}))
        assert hook.effective_strategy == "mcp-tool"
        assert hook.handlers == []


class TestParseTool:
    def test_full(self) -> None:
        tool = parse_tool(
            component(
                {
                    "name": "search",
                    "description": "Search",
                    "parameters": {
                        "type": "object",
                        "properties": {"q": {"type": "string"}},
                        "required": ["q"],
                    },
                    "implementation": {"type": "command", "command": "rg {{q}}"},
                    "exposure": {"native": False},
                },
                path="tools/search/TOOL.md",
            )
        )
        assert tool.parameters.required == ["q"]
        assert tool.implementation.command == "rg {{q}}"
        assert tool.exposure.exposed_via_mcp
        assert not tool.exposure.exposed_natively
        assert tool.base_dir == Path("tools/search")

    def test_defaults(self) -> None:
        tool = parse_tool(component({"name": "t", "description": "d"}))
        assert tool.parameters.type == "object"
        assert tool.implementation.type == "command"


class TestParsePolicy:
    def test_full(self) -> None:
        policy = parse_policy(
            component(
                {
                    "name": "p",
                    "description": "d",
                    "permissions": {"deny": ["Bash(rm *)"]},
                    "sandbox": {
                        "enabled": True,
                        "excludedCommands": ["docker"],
                        "network": {"allowedDomains": ["github.com"]},
                    },
                }
            )
        )
        assert policy.permissions.deny == ["Bash(rm *)"]
        assert policy.permissions.allow == []
        assert policy.sandbox.enabled is True
        assert policy.sandbox.excluded_commands == ["docker"]
        assert policy.sandbox.network.allowed_domains == ["github.com"]
