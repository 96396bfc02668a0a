"""
OpenCode target.

Generates::

    .opencode/skills/<name>/SKILL.md   <- skills
    .opencode/commands/<name>.md       <- user-invocable skills
    .opencode/agents/<name>.md         <- agents (subagents)
    .opencode/plugins/ai-ext-hooks.ts  <- hooks OpenCode can trigger
    .opencode/tools/<name>.ts          <- natively exposed command tools
    .opencode/rules/hook-<name>.md     <- skill-injection hooks
    .opencode/policies/<name>.md       <- policies, as instruction text
    opencode.json                      <- compensation server, plugin, instructions
    AGENTS.md                          <- rules

OpenCode plugins see tool execution and a handful of bus events, so only
those canonical events become plugin code; the rest use the fallback
strategy.
"""

from __future__ import annotations

import json
from typing import Any

from ai_ext.logging import get_logger
from ai_ext.models import (
    AgentDefinition,
    ExtensionIR,
    HookDefinition,
    SkillDefinition,
    ToolDefinition,
)
from ai_ext.targets.base import (
    HOOK_ENGINE,
    CompilationTarget,
    TargetOutput,
    policy_as_rules,
    render_json,
    render_markdown,
)

logger = get_logger("targets.opencode")

SCHEMA_URL = "https://opencode.ai/config.json"
PLUGIN_PATH = ".opencode/plugins/ai-ext-hooks.ts"
RULES_DIR = ".opencode/rules"

# Canonical events with a direct plugin hook
TOOL_HOOKS = {
    "PreToolUse": "tool.execute.before",
    "PostToolUse": "tool.execute.after",
}

# Canonical events delivered through the plugin `event` callback
BUS_EVENTS = {
    "SessionStart": "session.created",
    "SessionEnd": "session.deleted",
    "Stop": "session.idle",
    "PreCompact": "session.compacted",
    "PermissionRequest": "permission.updated",
    "FileEdited": "file.edited",
    "FileWatcherUpdated": "file.watcher.updated",
}

_ZOD_TYPES = {
    "string": "tool.schema.string()",
    "number": "tool.schema.number()",
    "integer": "tool.schema.number().int()",
    "boolean": "tool.schema.boolean()",
    "object": "tool.schema.record(tool.schema.string(), tool.schema.unknown())",
}

_HOOK_RUNNER = """\
const DEFAULT_TIMEOUT_MS = {timeout_ms};

async function runHook(command: string, payload: unknown, timeoutMs = DEFAULT_TIMEOUT_MS) {{
  const proc = Bun.spawn(["sh", "-c", command], {{
    stdin: "pipe",
    stdout: "pipe",
    stderr: "pipe",
  }});
  proc.stdin.write(JSON.stringify(payload));
  proc.stdin.end();
  const timer = setTimeout(() => proc.kill(), timeoutMs);
  const code = await proc.exited;
  clearTimeout(timer);
  const stdout = await new Response(proc.stdout).text();
  const stderr = await new Response(proc.stderr).text();
  return {{ code, stdout: stdout.trim(), stderr: stderr.trim() }};
}}
"""

_TOOL_RUNNER = """\
function quote(value: string): string {
  return /^[A-Za-z0-9_@%+=:,./-]+$/.test(value) ? value : "'" + value.replace(/'/g, "'\\"'\\"'") + "'";
}

function render(template: string, args: Record<string, unknown>): string {
  return template.replace(/\\{\\{(\\w+)\\}\\}/g, (_, key) => {
    const value = args[key];
    if (value === undefined || value === null) return "";
    if (Array.isArray(value)) return value.map((v) => quote(String(v))).join(" ");
    if (typeof value === "boolean") return String(value);
    return quote(String(value));
  });
}
"""


def zod_type(prop: dict[str, Any]) -> str:
    """Translate one JSON-Schema property into a ``tool.schema`` (zod) expression."""
    enum = prop.get("enum")
    if isinstance(enum, list) and enum and all(isinstance(v, str) for v in enum):
        expr = f"tool.schema.enum({json.dumps(enum)})"
    elif prop.get("type") == "array":
        items = prop.get("items") if isinstance(prop.get("items"), dict) else {"type": "string"}
        expr = f"tool.schema.array({zod_type(items)})"
    else:
        expr = _ZOD_TYPES.get(prop.get("type"), "tool.schema.unknown()")
    if prop.get("description"):
        expr += f".describe({json.dumps(prop['description'])})"
    return expr


class OpenCodeTarget(CompilationTarget):
    name = "opencode"
    display_name = "OpenCode"
    native_hook_events = frozenset({*TOOL_HOOKS, *BUS_EVENTS})

    def compile(self, ir: ExtensionIR) -> TargetOutput:
        output = TargetOutput()
        instructions: list[str] = []

        for skill in ir.skills:
            output.add_file(f".opencode/skills/{skill.name}/SKILL.md", self.emit_skill(skill))
            if skill.user_invocable:
                output.add_file(f".opencode/commands/{skill.name}.md", self.emit_command(skill))
            if skill.hooks:
                output.warn(
                    f"skill:{skill.name}",
                    f"Skill-scoped hooks are not supported in OpenCode; "
                    f"{len(skill.hooks)} hook(s) dropped.",
                )

        for agent in ir.agents:
            output.add_file(f".opencode/agents/{agent.name}.md", self.emit_agent(agent, output))

        if ir.rules:
            body = "\n\n---\n\n".join(content.strip() for content in ir.rules.values())
            output.add_file(
                "AGENTS.md",
                f"# {ir.manifest.name}\n\n{ir.manifest.description}\n\n{body}\n",
            )

        native_hooks, other_hooks = self.split_hooks(ir.hooks)
        if native_hooks:
            output.add_file(PLUGIN_PATH, self.emit_hooks_plugin(native_hooks, output))
        instructions.extend(self.compensate_hooks(other_hooks, output, RULES_DIR))

        for tool in ir.tools:
            if not tool.exposure.exposed_natively:
                continue
            if tool.implementation.type == "command" and tool.implementation.command:
                output.add_file(f".opencode/tools/{tool.name}.ts", self.emit_native_tool(tool))
            else:
                output.warn(
                    f"tool:{tool.name}",
                    f"Only command tools can be emitted as native OpenCode tools; "
                    f"'{tool.implementation.type}' tools are reachable through MCP only.",
                    severity="info",
                )

        for policy in ir.policies:
            path = f".opencode/policies/{policy.name}.md"
            output.add_file(path, policy_as_rules(policy))
            instructions.append(path)
            if not policy.permissions.is_empty() or policy.sandbox is not None:
                output.warn(
                    f"policy:{policy.name}",
                    "OpenCode uses per-agent permissions rather than a global permissions "
                    "block. The policy is emitted as instructions and is not enforced.",
                )

        config: dict[str, Any] = {"$schema": SCHEMA_URL}
        needs_tools = self.tool_requirement(ir.tools, output)
        if needs_tools or output.requires(HOOK_ENGINE):
            config["mcp"] = {
                self.config.runtime_server_name: {
                    "type": "local",
                    "command": [self.config.runtime_command, *self.config.runtime_args],
                    "enabled": True,
                }
            }
        if native_hooks:
            config["plugin"] = [f"./{PLUGIN_PATH}"]
        if instructions:
            config["instructions"] = instructions
        output.add_file("opencode.json", render_json(config))

        logger.debug("Compiled %d file(s) for %s", len(output.files), self.name)
        return output

    # -- skills and commands ---------------------------------------------------

    def emit_skill(self, skill: SkillDefinition) -> str:
        meta = skill.metadata
        fm: dict[str, Any] = {
            "name": skill.name,
            "description": meta.description,
            "license": meta.license,
            "compatibility": meta.compatibility,
            "metadata": meta.metadata or None,
        }
        if skill.tools is not None and skill.tools.allowed:
            fm["allowed-tools"] = " ".join(skill.tools.allowed)
        return render_markdown(fm, skill.instructions)

    def emit_command(self, skill: SkillDefinition) -> str:
        fm: dict[str, Any] = {"description": skill.metadata.description}
        if skill.context is not None:
            fm["agent"] = skill.context.agent
            fm["model"] = skill.context.model
            if skill.context.mode == "fork":
                fm["subtask"] = True
        return render_markdown(fm, skill.instructions)

    # -- agents ------------------------------------------------------------------

    def emit_agent(self, agent: AgentDefinition, output: TargetOutput) -> str:
        fm: dict[str, Any] = {
            "description": agent.metadata.description,
            "mode": "subagent",
            "model": agent.model,
            "steps": agent.max_turns,
        }

        if agent.tools is not None and (agent.tools.allowed or agent.tools.disallowed):
            permission: dict[str, str] = {}
            tools: dict[str, bool] = {}
            for name in agent.tools.allowed or []:
                permission[name] = "allow"
                tools[name] = True
            for name in agent.tools.disallowed or []:
                permission[name] = "deny"
                tools[name] = False
            fm["permission"] = permission
            fm["tools"] = tools

        component = f"agent:{agent.name}"
        if agent.hooks:
            output.warn(
                component,
                f"Agent-scoped hooks are not supported in OpenCode; "
                f"{len(agent.hooks)} hook(s) dropped.",
            )
        self.warn_unsupported_fields(
            output,
            component,
            {
                "permissionMode": agent.permission_mode,
                "memory": agent.memory,
                "skills": agent.skills,
                "mcpServers": agent.mcp_servers,
            },
        )

        return render_markdown(fm, agent.instructions)

    # -- hooks plugin --------------------------------------------------------------

    def emit_hooks_plugin(self, hooks: list[HookDefinition], output: TargetOutput) -> str:
        timeout_ms = int(self.config.hook_timeout_seconds * 1000)
        lines = [
            'import type { Plugin } from "@opencode-ai/plugin";',
            "",
            "// Generated by ai-ext. Do not edit.",
            "",
            _HOOK_RUNNER.format(timeout_ms=timeout_ms),
            "export const AiExtHooks: Plugin = async () => {",
            "  return {",
        ]

        before = [h for h in hooks if h.event == "PreToolUse"]
        after = [h for h in hooks if h.event == "PostToolUse"]
        bus = [h for h in hooks if h.event in BUS_EVENTS]

        if before:
            lines.append(f'    "{TOOL_HOOKS["PreToolUse"]}": async (input, output) => {{')
            lines.append("      const payload = { toolName: input.tool, toolInput: output.args };")
            lines.extend(self._hook_calls(before, output, blocking=True, indent=6, subject="input.tool"))
            lines.append("    },")
        if after:
            lines.append(f'    "{TOOL_HOOKS["PostToolUse"]}": async (input, output) => {{')
            lines.append(
                "      const payload = { toolName: input.tool, toolInput: output.metadata, "
                "output: output.output };"
            )
            lines.extend(self._hook_calls(after, output, blocking=False, indent=6, subject="input.tool"))
            lines.append("    },")
        if bus:
            lines.append("    event: async ({ event }) => {")
            lines.append("      const payload = { context: JSON.stringify(event.properties ?? {}) };")
            for bus_type in dict.fromkeys(BUS_EVENTS[h.event] for h in bus):
                group = [h for h in bus if BUS_EVENTS[h.event] == bus_type]
                lines.append(f'      if (event.type === "{bus_type}") {{')
                lines.extend(self._hook_calls(group, output, blocking=False, indent=8))
                lines.append("      }")
            lines.append("    },")

        lines.extend(["  };", "};", ""])
        return "\n".join(lines)

    def _hook_calls(
        self,
        hooks: list[HookDefinition],
        output: TargetOutput,
        blocking: bool,
        indent: int,
        subject: str | None = None,
    ) -> list[str]:
        pad = " " * indent
        lines: list[str] = []
        for hook in hooks:
            inner = pad
            lines.append(f"{pad}// {hook.name}")
            matched = bool(hook.matcher and subject)
            if matched:
                lines.append(f"{pad}if (new RegExp({json.dumps(hook.matcher)}).test({subject})) {{")
                inner = pad + "  "
            for handler in hook.handlers:
                if handler.type != "command" or not handler.command:
                    output.warn(
                        f"hook:{hook.name}",
                        f"'{handler.type}' hook handlers cannot run in an OpenCode plugin; skipped.",
                    )
                    continue
                timeout = f", {int(handler.timeout * 1000)}" if handler.timeout else ""
                lines.append(
                    f"{inner}{{ const r = await runHook({json.dumps(handler.command)}, payload{timeout});"
                )
                if blocking:
                    lines.append(
                        f'{inner}  if (r.code === 2) throw new Error(r.stderr || r.stdout || '
                        f'"Hook blocked the action"); }}'
                    )
                else:
                    lines.append(f"{inner}  void r; }}")
            if matched:
                lines.append(f"{pad}}}")
        return lines

    # -- native tools ----------------------------------------------------------------

    def emit_native_tool(self, tool: ToolDefinition) -> str:
        required = set(tool.parameters.required or [])
        args = []
        for name, prop in (tool.parameters.properties or {}).items():
            expr = zod_type(prop if isinstance(prop, dict) else {})
            if name not in required:
                expr += ".optional()"
            args.append(f"    {json.dumps(name)}: {expr},")

        lines = [
            'import { tool } from "@opencode-ai/plugin";',
            "",
            "// Generated by ai-ext. Do not edit.",
            "",
            _TOOL_RUNNER,
            f"const TEMPLATE = {json.dumps(tool.implementation.command)};",
            "",
            "export default tool({",
            f"  description: {json.dumps(tool.metadata.description)},",
            "  args: {",
            *args,
            "  },",
            "  async execute(args) {",
            '    const proc = Bun.spawn(["sh", "-c", render(TEMPLATE, args)], { stdout: "pipe", stderr: "pipe" });',
            "    const code = await proc.exited;",
            "    const stdout = await new Response(proc.stdout).text();",
            "    if (code === 0) return stdout;",
            "    const stderr = await new Response(proc.stderr).text();",
            "    return `Error (exit ${code}): ${stderr || stdout}`;",
            "  },",
            "});",
            "",
        ]
        return "\n".join(lines)
