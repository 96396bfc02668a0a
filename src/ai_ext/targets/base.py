"""
Compilation target interface.

Every host adapter implements :class:`CompilationTarget`. ``compile()`` is
a pure function of the IR: it returns file contents keyed by relative path
plus two side channels, fidelity-loss warnings and the capabilities the
host cannot express that the ``ai-ext serve`` runtime must provide.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import yaml

from ai_ext.config import AiExtConfig
from ai_ext.models import (
    BuildWarning,
    CompensationRequirement,
    ExtensionIR,
    HookDefinition,
    HookFallbackStrategy,
    HookHandler,
    PolicyDefinition,
    ToolDefinition,
)

# Compensation feature tags
HOOK_ENGINE = "hook-engine"
TOOL_SERVER = "tool-server"

# Plain-language trigger for each event, used when a hook is folded into
# instruction text
EVENT_PHRASES = {
    "SessionStart": "at the start of every session",
    "SessionEnd": "when the session ends",
    "UserPromptSubmit": "whenever the user submits a prompt",
    "PreToolUse": "before using a tool",
    "PostToolUse": "after a tool completes",
    "PostToolUseFailure": "after a tool fails",
    "PermissionRequest": "when asking the user for permission",
    "SubagentStart": "when starting a subagent",
    "SubagentStop": "when a subagent finishes",
    "Notification": "when sending a notification",
    "Stop": "before finishing your response",
    "TaskCompleted": "when a task is completed",
    "PreCompact": "before the conversation is compacted",
    "FileEdited": "after editing a file",
    "FileWatcherUpdated": "when a watched file changes on disk",
}


class _FrontmatterDumper(yaml.SafeDumper):
    """SafeDumper that writes multi-line strings as literal blocks."""


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.Node:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_FrontmatterDumper.add_representer(str, _represent_str)


def dump_yaml(data: Any) -> str:
    """Serialize to block-style YAML, keeping key order."""
    return yaml.dump(
        data,
        Dumper=_FrontmatterDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=1000,
    )


def render_markdown(frontmatter: dict[str, Any], body: str) -> str:
    """Render a markdown document with a YAML frontmatter block. None values are dropped."""
    data = {k: v for k, v in frontmatter.items() if v is not None}
    return f"---\n{dump_yaml(data)}---\n\n{body.strip()}\n"


def render_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def dedupe(items: list[str]) -> list[str]:
    """Drop repeated entries, keeping first occurrence order."""
    return list(dict.fromkeys(items))


def hook_handler_to_dict(handler: HookHandler) -> dict[str, Any]:
    """Handler in the Claude Code settings layout (unset flags omitted)."""
    data: dict[str, Any] = {"type": handler.type}
    if handler.command:
        data["command"] = handler.command
    if handler.prompt:
        data["prompt"] = handler.prompt
    if handler.model:
        data["model"] = handler.model
    if handler.timeout:
        data["timeout"] = handler.timeout
    if handler.status_message:
        data["statusMessage"] = handler.status_message
    if handler.async_:
        data["async"] = True
    if handler.once:
        data["once"] = True
    return data


def hooks_to_native_config(hooks: list[HookDefinition]) -> dict[str, list[dict[str, Any]]]:
    """Group hooks as ``{event: [{matcher?, hooks: [handler, ...]}]}``."""
    config: dict[str, list[dict[str, Any]]] = {}
    for hook in hooks:
        entry: dict[str, Any] = {}
        if hook.matcher:
            entry["matcher"] = hook.matcher
        entry["hooks"] = [hook_handler_to_dict(h) for h in hook.handlers]
        config.setdefault(hook.event, []).append(entry)
    return config


def hook_as_instructions(hook: HookDefinition) -> str:
    """Instruction text asking the model to honor a hook it cannot be forced to run."""
    trigger = EVENT_PHRASES.get(hook.event, f"on {hook.event}")
    if hook.matcher:
        trigger += f" whose name matches `{hook.matcher}`"

    parts = [f"# Hook: {hook.name}", "", hook.metadata.description, ""]
    parts.append(f"Apply this {trigger}.")
    if hook.fallback and hook.fallback.description:
        parts.extend(["", hook.fallback.description])
    if hook.instructions:
        parts.extend(["", hook.instructions])

    steps = []
    for handler in hook.handlers:
        if handler.type == "command" and handler.command:
            steps.append(f"- Run `{handler.command}` and stop if it exits with code 2.")
        elif handler.prompt:
            steps.append(f"- {handler.prompt}")
    if steps:
        parts.extend(["", "Steps:", *steps])

    return "\n".join(parts).strip() + "\n"


def policy_as_rules(policy: PolicyDefinition) -> str:
    """Render a policy as rule text for hosts without a permission block."""
    parts = [f"# Policy: {policy.name}", ""]
    if policy.instructions:
        parts.extend([policy.instructions, ""])

    perms = policy.permissions
    if not perms.is_empty():
        parts.append("## Permission Rules")
        if perms.deny:
            parts.extend(["", "### NEVER do the following:", *(f"- {p}" for p in perms.deny)])
        if perms.ask:
            parts.extend(["", "### Always ask before:", *(f"- {p}" for p in perms.ask)])
        if perms.allow:
            parts.extend(["", "### Pre-approved actions:", *(f"- {p}" for p in perms.allow)])
        parts.append("")

    sandbox = policy.sandbox
    if sandbox is not None and sandbox.to_dict():
        parts.append("## Sandbox")
        if sandbox.enabled:
            parts.append("- Run shell commands inside the sandbox.")
        for command in sandbox.excluded_commands:
            parts.append(f"- `{command}` may run outside the sandbox.")
        if sandbox.network and sandbox.network.allowed_domains:
            domains = ", ".join(sandbox.network.allowed_domains)
            parts.append(f"- Only contact these network domains: {domains}.")
        parts.append("")

    return "\n".join(parts).strip() + "\n"


@dataclass
class TargetOutput:
    """Result of compiling an IR for one host."""

    files: dict[str, str] = field(default_factory=dict)  # Relative path -> content
    warnings: list[BuildWarning] = field(default_factory=list)
    compensation_requirements: list[CompensationRequirement] = field(default_factory=list)

    def add_file(self, path: str, content: str) -> None:
        """Add a file; a second write to the same path replaces the first and warns."""
        previous = self.files.get(path)
        if previous is not None and previous != content:
            self.warn(
                "output",
                f"{path} is produced twice; the later content replaces the earlier.",
            )
        self.files[path] = content

    def warn(self, component: str, message: str, severity: str = "warn") -> None:
        self.warnings.append(BuildWarning(component=component, message=message, severity=severity))

    def require(self, feature: str, reason: str, component: str) -> None:
        self.compensation_requirements.append(
            CompensationRequirement(feature=feature, reason=reason, component=component)
        )

    def requires(self, feature: str) -> bool:
        return any(r.feature == feature for r in self.compensation_requirements)


class CompilationTarget(ABC):
    """
    Abstract base class for host adapters.

    Subclasses set ``name``, ``display_name`` and ``native_hook_events``
    (the canonical events the host can trigger by itself) and implement
    ``compile()``.
    """

    name: str = ""
    display_name: str = ""
    native_hook_events: frozenset[str] = frozenset()

    def __init__(self, config: AiExtConfig | None = None) -> None:
        self.config = config or AiExtConfig()

    @abstractmethod
    def compile(self, ir: ExtensionIR) -> TargetOutput:
        """Translate an IR into this host's files. Must not touch the disk."""
        pass

    # -- shared emitters -----------------------------------------------------

    def runtime_server_entry(self) -> dict[str, Any]:
        """Launch entry for the ``ai-ext serve`` compensation server."""
        return {
            "command": self.config.runtime_command,
            "args": list(self.config.runtime_args),
            "env": {},
        }

    def split_hooks(
        self, hooks: list[HookDefinition]
    ) -> tuple[list[HookDefinition], list[HookDefinition]]:
        """Partition hooks into (native, needs compensation) for this host."""
        native = [h for h in hooks if h.event in self.native_hook_events]
        other = [h for h in hooks if h.event not in self.native_hook_events]
        return native, other

    def compensate_hooks(
        self,
        hooks: list[HookDefinition],
        output: TargetOutput,
        rules_dir: str,
    ) -> list[str]:
        """
        Apply each hook's fallback strategy on a host that cannot run it.

        ``mcp-tool`` hooks add one ``hook-engine`` requirement,
        ``skill-injection`` hooks become instruction files under
        ``rules_dir`` and ``ignore`` hooks are dropped with a warning.

        Returns:
            Paths of the instruction files written
        """
        bridged: list[HookDefinition] = []
        injected: list[str] = []

        for hook in hooks:
            strategy = hook.effective_strategy
            if strategy == HookFallbackStrategy.IGNORE.value:
                output.warn(
                    f"hook:{hook.name}",
                    f"{self.display_name} cannot run {hook.event} hooks; "
                    "dropped (fallback strategy 'ignore').",
                )
            elif strategy == HookFallbackStrategy.SKILL_INJECTION.value:
                path = f"{rules_dir}/hook-{hook.name}.md"
                output.add_file(path, hook_as_instructions(hook))
                injected.append(path)
                output.warn(
                    f"hook:{hook.name}",
                    f"{self.display_name} cannot run {hook.event} hooks; "
                    "folded into instructions, so it is advisory only.",
                    severity="info",
                )
            else:
                bridged.append(hook)

        if bridged:
            events = ", ".join(dedupe([h.event for h in bridged]))
            output.require(
                HOOK_ENGINE,
                f"{len(bridged)} hook(s) require runtime emulation "
                f"({self.display_name} has no native support for {events})",
                "hooks",
            )

        return injected

    def tool_requirement(self, tools: list[ToolDefinition], output: TargetOutput) -> bool:
        """Add the ``tool-server`` requirement when any tool is MCP-exposed."""
        mcp_tools = [t for t in tools if t.exposure.exposed_via_mcp]
        if not mcp_tools:
            return False
        output.require(
            TOOL_SERVER,
            f"{len(mcp_tools)} tool(s) require MCP server exposure",
            "tools",
        )
        return True

    def warn_unsupported_fields(
        self,
        output: TargetOutput,
        component: str,
        fields: dict[str, Any],
    ) -> None:
        """Warn once about set fields this host has no place for."""
        present = [name for name, value in fields.items() if value]
        if present:
            output.warn(
                component,
                f"{self.display_name} has no equivalent for: {', '.join(present)}; omitted.",
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
