"""
KiloCode target.

Generates::

    .kilocode/skills/<name>/SKILL.md   <- skills (Agent Skills format)
    .kilocodemodes                     <- agents, as custom modes
    .kilocode/rules/<path>             <- rules
    .kilocode/rules/policy-<name>.md   <- policies, as instruction text
    .kilocode/rules/hook-<name>.md     <- skill-injection hooks
    .kilocode/mcp.json                 <- compensation server

KiloCode has no hooks and no permission patterns. Hooks go through their
fallback strategy and policies degrade to instructions with a warning.
Agent tool access maps onto mode tool groups.
"""

from __future__ import annotations

from typing import Any

from ai_ext.logging import get_logger
from ai_ext.models import AgentDefinition, ExtensionIR, SkillDefinition
from ai_ext.targets.base import (
    HOOK_ENGINE,
    CompilationTarget,
    TargetOutput,
    dump_yaml,
    policy_as_rules,
    render_json,
    render_markdown,
)

logger = get_logger("targets.kilocode")

RULES_DIR = ".kilocode/rules"

ALL_GROUPS = ["read", "edit", "browser", "command", "mcp"]
READ_TOOLS = ("Read", "Grep", "Glob")
EDIT_TOOLS = ("Edit", "Write")


def title_case(slug: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-"))


def infer_tool_groups(agent: AgentDefinition) -> list[str]:
    """
    Map an agent's allow/deny tool lists onto KiloCode mode groups.

    ``toolGroups`` on the agent wins when set. Without any tool lists the
    mode gets every group.
    """
    if agent.tool_groups:
        return list(agent.tool_groups)

    tools = agent.tools
    if tools is None or (tools.allowed is None and tools.disallowed is None):
        return list(ALL_GROUPS)

    allowed = set(tools.allowed or [])
    disallowed = set(tools.disallowed or [])
    groups: list[str] = []

    if any(t in allowed for t in READ_TOOLS) or not any(t in disallowed for t in READ_TOOLS):
        groups.append("read")

    if any(t in allowed for t in EDIT_TOOLS) and not any(t in disallowed for t in EDIT_TOOLS):
        groups.append("edit")

    if "Bash" in allowed or ("Bash" not in disallowed and not allowed):
        groups.append("command")

    groups.append("mcp")
    return groups


class KiloCodeTarget(CompilationTarget):
    name = "kilocode"
    display_name = "KiloCode"
    native_hook_events = frozenset()

    def compile(self, ir: ExtensionIR) -> TargetOutput:
        output = TargetOutput()

        for skill in ir.skills:
            output.add_file(f".kilocode/skills/{skill.name}/SKILL.md", self.emit_skill(skill))
            if skill.hooks:
                output.warn(
                    f"skill:{skill.name}",
                    f"Skill-scoped hooks are not supported in KiloCode; "
                    f"{len(skill.hooks)} hook(s) dropped.",
                )

        if ir.agents:
            modes = [self.agent_to_mode(agent, output) for agent in ir.agents]
            output.add_file(".kilocodemodes", dump_yaml({"customModes": modes}))

        # Rules go into .kilocode/rules/, which KiloCode auto-loads
        for path, content in ir.rules.items():
            output.add_file(f"{RULES_DIR}/{path}", content)

        if ir.hooks:
            output.warn(
                "hooks",
                "KiloCode does not support hooks natively. Hooks with fallback strategy "
                "'mcp-tool' are bridged via the ai-ext runtime MCP server, 'skill-injection' "
                "hooks become rule instructions and 'ignore' hooks are skipped.",
            )
            self.compensate_hooks(ir.hooks, output, RULES_DIR)

        for policy in ir.policies:
            output.add_file(f"{RULES_DIR}/policy-{policy.name}.md", policy_as_rules(policy))
            if not policy.permissions.is_empty() or policy.sandbox is not None:
                output.warn(
                    f"policy:{policy.name}",
                    "KiloCode does not support granular permission patterns. The policy is "
                    "emitted as rule instructions; tool restrictions are mapped to mode "
                    "groups where possible.",
                )

        needs_tools = self.tool_requirement(ir.tools, output)
        if needs_tools or output.requires(HOOK_ENGINE):
            output.add_file(
                ".kilocode/mcp.json",
                render_json({"mcpServers": {self.config.runtime_server_name: self.runtime_server_entry()}}),
            )

        logger.debug("Compiled %d file(s) for %s", len(output.files), self.name)
        return output

    def emit_skill(self, skill: SkillDefinition) -> str:
        meta = skill.metadata
        fm: dict[str, Any] = {
            "name": skill.name,
            "description": meta.description,
            "license": meta.license,
            "compatibility": meta.compatibility,
            "metadata": meta.metadata or None,
            "tags": meta.tags or None,
        }

        # Space-delimited per the Agent Skills format
        if skill.tools is not None and skill.tools.allowed:
            fm["allowed-tools"] = " ".join(skill.tools.allowed)

        if skill.invocation is not None:
            fm["argument-hint"] = skill.invocation.argument_hint
            fm["user-invocable"] = skill.invocation.user_invocable
            if skill.invocation.model_invocable is not None:
                fm["disable-model-invocation"] = not skill.invocation.model_invocable

        if skill.context is not None:
            fm["context"] = skill.context.mode
            fm["agent"] = skill.context.agent
            fm["model"] = skill.context.model

        fm["resources"] = skill.resources or None

        return render_markdown(fm, skill.instructions)

    def agent_to_mode(self, agent: AgentDefinition, output: TargetOutput) -> dict[str, Any]:
        component = f"agent:{agent.name}"
        if agent.hooks:
            output.warn(
                component,
                f"Agent-scoped hooks are not supported in KiloCode; "
                f"{len(agent.hooks)} hook(s) dropped.",
            )
        self.warn_unsupported_fields(
            output,
            component,
            {
                "model": agent.model,
                "maxTurns": agent.max_turns,
                "permissionMode": agent.permission_mode,
                "memory": agent.memory,
                "skills": agent.skills,
                "mcpServers": agent.mcp_servers,
            },
        )

        mode: dict[str, Any] = {
            "slug": agent.name,
            "name": title_case(agent.name),
            "description": agent.metadata.description,
            "roleDefinition": agent.instructions,
        }
        if agent.when_to_use:
            mode["whenToUse"] = agent.when_to_use
        mode["groups"] = infer_tool_groups(agent)
        return mode
