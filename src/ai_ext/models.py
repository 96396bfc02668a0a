"""
Canonical data models for ai-ext extensions.

Every component kind (skill, agent, hook, tool, policy) parses into one of
these shapes regardless of which frontmatter convention its author used.
Fields keep the raw values found in the source so validation can report
bad input instead of silently coercing it; the enums below define the
allowed values.

``to_dict()`` on each definition returns the canonical camelCase mapping
consumed by the validators and by ``ai-ext validate --json``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

# Opaque key/value bag. The core never looks inside it; emitters pass it
# through unchanged.
MetadataBag = dict[str, Any]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class HookEvent(str, Enum):
    """Canonical lifecycle events a hook can attach to."""

    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    POST_TOOL_USE_FAILURE = "PostToolUseFailure"
    PERMISSION_REQUEST = "PermissionRequest"
    SUBAGENT_START = "SubagentStart"
    SUBAGENT_STOP = "SubagentStop"
    NOTIFICATION = "Notification"
    STOP = "Stop"
    TASK_COMPLETED = "TaskCompleted"
    PRE_COMPACT = "PreCompact"
    FILE_EDITED = "FileEdited"
    FILE_WATCHER_UPDATED = "FileWatcherUpdated"


# Events whose runtime subject is a tool invocation
TOOL_EVENTS = frozenset(
    {
        HookEvent.PRE_TOOL_USE.value,
        HookEvent.POST_TOOL_USE.value,
        HookEvent.POST_TOOL_USE_FAILURE.value,
    }
)


class HookHandlerType(str, Enum):
    COMMAND = "command"
    PROMPT = "prompt"
    AGENT = "agent"


class HookFallbackStrategy(str, Enum):
    """How a hook is honored on a host without native hooks."""

    MCP_TOOL = "mcp-tool"  # Bridge to the compensation server
    SKILL_INJECTION = "skill-injection"  # Fold into instruction text
    IGNORE = "ignore"  # Drop with a warning


class PermissionMode(str, Enum):
    DEFAULT = "default"
    ACCEPT_EDITS = "acceptEdits"
    DONT_ASK = "dontAsk"
    PLAN = "plan"
    DELEGATE = "delegate"
    BYPASS_PERMISSIONS = "bypassPermissions"


class MemoryScope(str, Enum):
    USER = "user"
    PROJECT = "project"
    LOCAL = "local"
    SESSION = "session"


class ContextMode(str, Enum):
    FORK = "fork"  # Isolated sub-context
    INLINE = "inline"  # Same context as the caller


class ToolImplementationType(str, Enum):
    COMMAND = "command"
    SCRIPT = "script"
    MCP_PROXY = "mcp-proxy"


class Severity(str, Enum):
    """Severity of a resolution or build finding."""

    ERROR = "error"
    WARNING = "warning"
    WARN = "warn"
    INFO = "info"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """List the string values of an enum, in declaration order."""
    return [member.value for member in enum_cls]


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


@dataclass
class ComponentMetadata:
    """Identity shared by every component kind."""

    name: str
    description: str
    license: str | None = None
    compatibility: str | None = None
    metadata: MetadataBag = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = _compact(
            {
                "name": self.name,
                "description": self.description,
                "license": self.license,
                "compatibility": self.compatibility,
            }
        )
        if self.metadata:
            data["metadata"] = self.metadata
        if self.tags:
            data["tags"] = self.tags
        return data


@dataclass
class ToolAccess:
    """Allow/deny lists of host tool names."""

    allowed: list[str] | None = None
    disallowed: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({"allowed": self.allowed, "disallowed": self.disallowed})


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


@dataclass
class SkillInvocation:
    user_invocable: bool | None = None
    model_invocable: bool | None = None
    argument_hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "userInvocable": self.user_invocable,
                "modelInvocable": self.model_invocable,
                "argumentHint": self.argument_hint,
            }
        )


@dataclass
class SkillContext:
    mode: str | None = None  # fork | inline
    agent: str | None = None  # Delegate agent
    model: str | None = None  # Model override

    def to_dict(self) -> dict[str, Any]:
        return _compact({"mode": self.mode, "agent": self.agent, "model": self.model})


@dataclass
class SkillDefinition:
    """A behavioral contract loaded from SKILL.md."""

    metadata: ComponentMetadata
    instructions: str
    invocation: SkillInvocation | None = None
    tools: ToolAccess | None = None
    context: SkillContext | None = None
    resources: list[str] = field(default_factory=list)
    hooks: list[HookDefinition] = field(default_factory=list)
    source_path: Path | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def user_invocable(self) -> bool:
        return self.invocation is None or self.invocation.user_invocable is not False

    def to_dict(self) -> dict[str, Any]:
        data = self.metadata.to_dict()
        if self.invocation is not None:
            data["invocation"] = self.invocation.to_dict()
        if self.tools is not None:
            data["tools"] = self.tools.to_dict()
        if self.context is not None:
            data["context"] = self.context.to_dict()
        if self.resources:
            data["resources"] = self.resources
        if self.hooks:
            data["hooks"] = [hook.to_dict() for hook in self.hooks]
        return data


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@dataclass
class McpServerRef:
    """An MCP server declared inline on an agent."""

    name: str
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.command is not None:
            data["command"] = self.command
        if self.args:
            data["args"] = self.args
        if self.env:
            data["env"] = self.env
        return data


@dataclass
class AgentDefinition:
    """A planner/executor profile loaded from AGENT.md."""

    metadata: ComponentMetadata
    instructions: str
    model: str | None = None
    max_turns: int | None = None
    tools: ToolAccess | None = None
    permission_mode: str | None = None
    skills: list[str] = field(default_factory=list)
    mcp_servers: list[str | McpServerRef] = field(default_factory=list)
    memory: str | None = None
    hooks: list[HookDefinition] = field(default_factory=list)
    tool_groups: list[str] | None = None  # KiloCode mode groups
    when_to_use: str | None = None  # KiloCode mode hint
    source_path: Path | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    def to_dict(self) -> dict[str, Any]:
        data = self.metadata.to_dict()
        data.update(
            _compact(
                {
                    "model": self.model,
                    "maxTurns": self.max_turns,
                    "permissionMode": self.permission_mode,
                    "memory": self.memory,
                    "toolGroups": self.tool_groups,
                    "whenToUse": self.when_to_use,
                }
            )
        )
        if self.tools is not None:
            data["tools"] = self.tools.to_dict()
        if self.skills:
            data["skills"] = self.skills
        if isinstance(self.mcp_servers, list):
            if self.mcp_servers:
                data["mcpServers"] = [
                    s.to_dict() if isinstance(s, McpServerRef) else s for s in self.mcp_servers
                ]
        elif self.mcp_servers is not None:
            data["mcpServers"] = self.mcp_servers
        if self.hooks:
            data["hooks"] = [hook.to_dict() for hook in self.hooks]
        return data


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


@dataclass
class HookHandler:
    type: str  # command | prompt | agent
    command: str | None = None
    prompt: str | None = None
    model: str | None = None
    timeout: float | None = None  # Seconds
    status_message: str | None = None
    async_: bool | None = None
    once: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "type": self.type,
                "command": self.command,
                "prompt": self.prompt,
                "model": self.model,
                "timeout": self.timeout,
                "statusMessage": self.status_message,
                "async": self.async_,
                "once": self.once,
            }
        )


@dataclass
class HookFallback:
    strategy: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({"strategy": self.strategy, "description": self.description})


@dataclass
class HookDefinition:
    """An event-triggered contract, from HOOK.md or declared inline."""

    metadata: ComponentMetadata
    event: str
    handlers: list[HookHandler] = field(default_factory=list)
    matcher: str | None = None
    fallback: HookFallback | None = None
    instructions: str = ""
    source_path: Path | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def effective_strategy(self) -> str:
        """Fallback strategy, defaulting to the compensation bridge."""
        if self.fallback is None or not self.fallback.strategy:
            return HookFallbackStrategy.MCP_TOOL.value
        return self.fallback.strategy

    def to_dict(self) -> dict[str, Any]:
        data = self.metadata.to_dict()
        data["event"] = self.event
        if self.matcher is not None:
            data["matcher"] = self.matcher
        data["handlers"] = [h.to_dict() for h in self.handlers]
        if self.fallback is not None:
            data["fallback"] = self.fallback.to_dict()
        return data


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@dataclass
class ToolParameters:
    """JSON-Schema style object describing a tool's arguments."""

    type: str = "object"
    properties: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "properties": self.properties}
        if self.required:
            data["required"] = self.required
        return data


@dataclass
class McpProxy:
    server: str
    tool: str


@dataclass
class ToolImplementation:
    type: str  # command | script | mcp-proxy
    command: str | None = None  # Template with {{param}} placeholders
    script: str | None = None  # Path relative to the tool directory
    mcp_proxy: McpProxy | None = None

    def to_dict(self) -> dict[str, Any]:
        data = _compact({"type": self.type, "command": self.command, "script": self.script})
        if self.mcp_proxy is not None:
            data["mcpProxy"] = {"server": self.mcp_proxy.server, "tool": self.mcp_proxy.tool}
        return data


@dataclass
class ToolExposure:
    mcp: bool | None = None
    native: bool | None = None

    @property
    def exposed_via_mcp(self) -> bool:
        return self.mcp is not False

    @property
    def exposed_natively(self) -> bool:
        return self.native is not False

    def to_dict(self) -> dict[str, Any]:
        return _compact({"mcp": self.mcp, "native": self.native})


@dataclass
class ToolDefinition:
    """A callable capability loaded from TOOL.md."""

    metadata: ComponentMetadata
    parameters: ToolParameters
    implementation: ToolImplementation
    exposure: ToolExposure = field(default_factory=ToolExposure)
    instructions: str = ""
    source_path: Path | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def base_dir(self) -> Path | None:
        return self.source_path.parent if self.source_path else None

    def to_dict(self) -> dict[str, Any]:
        data = self.metadata.to_dict()
        data["parameters"] = self.parameters.to_dict()
        data["implementation"] = self.implementation.to_dict()
        exposure = self.exposure.to_dict()
        if exposure:
            data["exposure"] = exposure
        return data


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


@dataclass
class PermissionRules:
    deny: list[str] = field(default_factory=list)
    ask: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.deny or self.ask or self.allow)

    def to_dict(self) -> dict[str, Any]:
        return {"deny": self.deny, "ask": self.ask, "allow": self.allow}


@dataclass
class NetworkRules:
    allowed_domains: list[str] = field(default_factory=list)
    allow_unix_sockets: list[str] = field(default_factory=list)
    allow_local_binding: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.allowed_domains:
            data["allowedDomains"] = self.allowed_domains
        if self.allow_unix_sockets:
            data["allowUnixSockets"] = self.allow_unix_sockets
        if self.allow_local_binding is not None:
            data["allowLocalBinding"] = self.allow_local_binding
        return data


@dataclass
class SandboxConfig:
    enabled: bool | None = None
    excluded_commands: list[str] = field(default_factory=list)
    network: NetworkRules | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.enabled is not None:
            data["enabled"] = self.enabled
        if self.excluded_commands:
            data["excludedCommands"] = self.excluded_commands
        if self.network is not None:
            network = self.network.to_dict()
            if network:
                data["network"] = network
        return data


@dataclass
class PolicyDefinition:
    """Permission rules and sandbox settings loaded from POLICY.md."""

    metadata: ComponentMetadata
    permissions: PermissionRules = field(default_factory=PermissionRules)
    sandbox: SandboxConfig | None = None
    instructions: str = ""
    source_path: Path | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    def to_dict(self) -> dict[str, Any]:
        data = self.metadata.to_dict()
        data["permissions"] = self.permissions.to_dict()
        if self.sandbox is not None:
            data["sandbox"] = self.sandbox.to_dict()
        return data


# ---------------------------------------------------------------------------
# Manifest and IR
# ---------------------------------------------------------------------------

COMPONENT_KINDS = ("skills", "agents", "hooks", "tools", "policies", "rules")


@dataclass
class ExtensionManifest:
    """Contents of extension.yaml."""

    name: str
    version: str
    description: str
    author: str | None = None
    license: str | None = None
    skills: str | None = None
    agents: str | None = None
    hooks: str | None = None
    tools: str | None = None
    policies: str | None = None
    rules: str | None = None

    def component_dir(self, kind: str) -> str | None:
        """Declared subdirectory for a component kind, if any."""
        if kind not in COMPONENT_KINDS:
            raise ValueError(f"Unknown component kind: {kind}")
        return getattr(self, kind)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "description": self.description,
        }
        for key in ("author", "license", *COMPONENT_KINDS):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class ExtensionIR:
    """
    The fully resolved, host-neutral model of one extension.

    Adapters treat an IR as read-only input.
    """

    manifest: ExtensionManifest
    skills: list[SkillDefinition] = field(default_factory=list)
    agents: list[AgentDefinition] = field(default_factory=list)
    hooks: list[HookDefinition] = field(default_factory=list)
    tools: list[ToolDefinition] = field(default_factory=list)
    policies: list[PolicyDefinition] = field(default_factory=list)
    rules: dict[str, str] = field(default_factory=dict)  # Relative path -> content

    @property
    def name(self) -> str:
        return self.manifest.name

    def mcp_tools(self) -> list[ToolDefinition]:
        """Tools that must be served through the compensation server."""
        return [t for t in self.tools if t.exposure.exposed_via_mcp]

    def counts(self) -> dict[str, int]:
        return {
            "skills": len(self.skills),
            "agents": len(self.agents),
            "hooks": len(self.hooks),
            "tools": len(self.tools),
            "policies": len(self.policies),
            "rules": len(self.rules),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "manifest": self.manifest.to_dict(),
            "skills": [s.to_dict() for s in self.skills],
            "agents": [a.to_dict() for a in self.agents],
            "hooks": [h.to_dict() for h in self.hooks],
            "tools": [t.to_dict() for t in self.tools],
            "policies": [p.to_dict() for p in self.policies],
            "rules": sorted(self.rules),
        }


# ---------------------------------------------------------------------------
# Build shapes
# ---------------------------------------------------------------------------


@dataclass
class BuildWarning:
    """A non-fatal finding raised during resolution or compilation."""

    component: str
    message: str
    severity: str = "warn"  # info | warn | error

    def to_dict(self) -> dict[str, Any]:
        return {"component": self.component, "message": self.message, "severity": self.severity}


@dataclass
class CompensationRequirement:
    """A capability the target cannot express and the runtime must provide."""

    feature: str  # hook-engine | tool-server
    reason: str
    component: str

    def to_dict(self) -> dict[str, Any]:
        return {"feature": self.feature, "reason": self.reason, "component": self.component}


@dataclass
class BuildOptions:
    target: str
    source_dir: Path
    out_dir: Path | None = None
    dry_run: bool = False
    fix_yaml_descriptions: bool = False
    verbose: bool = False


@dataclass
class BuildResult:
    target: str
    files: dict[str, str] = field(default_factory=dict)  # Relative path -> content
    warnings: list[BuildWarning] = field(default_factory=list)
    compensation_requirements: list[CompensationRequirement] = field(default_factory=list)
    out_dir: Path | None = None
    written: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "files": sorted(self.files),
            "warnings": [w.to_dict() for w in self.warnings],
            "compensationRequirements": [r.to_dict() for r in self.compensation_requirements],
            "outDir": str(self.out_dir) if self.out_dir else None,
            "written": self.written,
        }
