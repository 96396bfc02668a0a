"""
Claude Code target.

Generates::

    .claude/skills/<name>/SKILL.md   <- skills
    .claude/agents/<name>.md         <- agents
    .claude/rules/<path>             <- rules
    .claude/rules/_ai-ext-index.md   <- @imports for every rule
    .claude/settings.json            <- hooks + policies
    .mcp.json                        <- compensation server (tools, bridged hooks)

Claude Code has native hooks, a permission block and a sandbox block, so
almost everything maps one to one. The OpenCode-only file events are the
exception and go through the hook fallback strategy.
"""

from __future__ import annotations

from typing import Any

from ai_ext.logging import get_logger
from ai_ext.models import (
    AgentDefinition,
    ExtensionIR,
    HookEvent,
    McpServerRef,
    PolicyDefinition,
    SkillDefinition,
)
from ai_ext.targets.base import (
    CompilationTarget,
    TargetOutput,
    dedupe,
    hooks_to_native_config,
    render_json,
    render_markdown,
)

logger = get_logger("targets.claude")

RULES_DIR = ".claude/rules"
RULES_INDEX = f"{RULES_DIR}/_ai-ext-index.md"


class ClaudeTarget(CompilationTarget):
    name = "claude"
    display_name = "Claude Code"
    native_hook_events = frozenset(
        e.value
        for e in HookEvent
        if e not in (HookEvent.FILE_EDITED, HookEvent.FILE_WATCHER_UPDATED)
    )

    def compile(self, ir: ExtensionIR) -> TargetOutput:
        output = TargetOutput()

        for skill in ir.skills:
            output.add_file(f".claude/skills/{skill.name}/SKILL.md", self.emit_skill(skill))

        for agent in ir.agents:
            output.add_file(f".claude/agents/{agent.name}.md", self.emit_agent(agent))

        # Rules go into .claude/rules/, which Claude Code auto-loads. No root
        # CLAUDE.md is written since the project may already have one.
        for path, content in ir.rules.items():
            output.add_file(f"{RULES_DIR}/{path}", content)
        if ir.rules:
            imports = "\n".join(f"@{RULES_DIR}/{path}" for path in ir.rules)
            output.add_file(
                RULES_INDEX,
                f"# {ir.manifest.name}\n\n{ir.manifest.description}\n\n{imports}\n",
            )

        native_hooks, other_hooks = self.split_hooks(ir.hooks)
        self.compensate_hooks(other_hooks, output, RULES_DIR)

        settings: dict[str, Any] = {}
        if native_hooks:
            settings["hooks"] = hooks_to_native_config(native_hooks)
        permissions = self.merge_permissions(ir.policies)
        if permissions:
            settings["permissions"] = permissions
        sandbox = self.merge_sandbox(ir.policies)
        if sandbox:
            settings["sandbox"] = sandbox
        if settings:
            output.add_file(".claude/settings.json", render_json(settings))

        needs_tools = self.tool_requirement(ir.tools, output)
        if needs_tools or output.requires("hook-engine"):
            output.add_file(
                ".mcp.json",
                render_json({"mcpServers": {self.config.runtime_server_name: self.runtime_server_entry()}}),
            )

        logger.debug("Compiled %d file(s) for %s", len(output.files), self.name)
        return output

    # -- skills --------------------------------------------------------------

    def emit_skill(self, skill: SkillDefinition) -> str:
        fm: dict[str, Any] = {
            "name": skill.name,
            "description": skill.metadata.description,
        }

        if skill.invocation is not None:
            if skill.invocation.argument_hint:
                fm["argument-hint"] = skill.invocation.argument_hint
            if skill.invocation.model_invocable is False:
                fm["disable-model-invocation"] = True
            if skill.invocation.user_invocable is False:
                fm["user-invocable"] = False

        if skill.tools is not None and skill.tools.allowed:
            fm["allowed-tools"] = ", ".join(skill.tools.allowed)

        if skill.context is not None:
            fm["context"] = skill.context.mode
            fm["agent"] = skill.context.agent
            fm["model"] = skill.context.model

        if skill.hooks:
            fm["hooks"] = hooks_to_native_config(skill.hooks)

        return render_markdown(fm, skill.instructions)

    # -- agents --------------------------------------------------------------

    def emit_agent(self, agent: AgentDefinition) -> str:
        fm: dict[str, Any] = {
            "name": agent.name,
            "description": agent.metadata.description,
            "model": agent.model,
            "maxTurns": agent.max_turns,
            "permissionMode": agent.permission_mode,
            "memory": agent.memory,
        }
        if agent.skills:
            fm["skills"] = agent.skills

        if agent.tools is not None:
            if agent.tools.allowed:
                fm["tools"] = ", ".join(agent.tools.allowed)
            if agent.tools.disallowed:
                fm["disallowedTools"] = ", ".join(agent.tools.disallowed)

        if agent.mcp_servers:
            fm["mcpServers"] = [
                s.to_dict() if isinstance(s, McpServerRef) else s for s in agent.mcp_servers
            ]

        if agent.hooks:
            fm["hooks"] = hooks_to_native_config(agent.hooks)

        return render_markdown(fm, agent.instructions)

    # -- policies ------------------------------------------------------------

    @staticmethod
    def merge_permissions(policies: list[PolicyDefinition]) -> dict[str, list[str]]:
        """Merge every policy's rules into one ``permissions`` block."""
        merged: dict[str, list[str]] = {"allow": [], "deny": [], "ask": []}
        for policy in policies:
            merged["allow"].extend(policy.permissions.allow)
            merged["deny"].extend(policy.permissions.deny)
            merged["ask"].extend(policy.permissions.ask)
        return {key: dedupe(values) for key, values in merged.items() if values}

    @staticmethod
    def merge_sandbox(policies: list[PolicyDefinition]) -> dict[str, Any]:
        """Merge sandbox settings; any policy enabling the sandbox enables it."""
        enabled: bool | None = None
        excluded: list[str] = []
        domains: list[str] = []
        sockets: list[str] = []
        local_binding: bool | None = None

        for policy in policies:
            sandbox = policy.sandbox
            if sandbox is None:
                continue
            if sandbox.enabled is not None:
                enabled = bool(enabled) or sandbox.enabled
            excluded.extend(sandbox.excluded_commands)
            if sandbox.network is not None:
                domains.extend(sandbox.network.allowed_domains)
                sockets.extend(sandbox.network.allow_unix_sockets)
                if sandbox.network.allow_local_binding is not None:
                    local_binding = bool(local_binding) or sandbox.network.allow_local_binding

        result: dict[str, Any] = {}
        if enabled is not None:
            result["enabled"] = enabled
        if excluded:
            result["excludedCommands"] = dedupe(excluded)
        network: dict[str, Any] = {}
        if domains:
            network["allowedDomains"] = dedupe(domains)
        if sockets:
            network["allowUnixSockets"] = dedupe(sockets)
        if local_binding is not None:
            network["allowLocalBinding"] = local_binding
        if network:
            result["network"] = network
        return result
