"""
Runtime validation of parsed components.

Validators accept arbitrary parsed data (the canonical camelCase mapping a
definition's ``to_dict()`` produces, or raw YAML) and never raise: every
problem becomes a :class:`ValidationIssue` with ``error`` or ``warning``
severity. Warnings never make a component invalid.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from ai_ext.models import (
    ContextMode,
    HookEvent,
    HookFallbackStrategy,
    HookHandlerType,
    MemoryScope,
    PermissionMode,
    ToolImplementationType,
    enum_values,
)

NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024

VALID_HOOK_EVENTS = enum_values(HookEvent)
VALID_HOOK_HANDLER_TYPES = enum_values(HookHandlerType)
VALID_FALLBACK_STRATEGIES = enum_values(HookFallbackStrategy)
VALID_PERMISSION_MODES = enum_values(PermissionMode)
VALID_MEMORY_SCOPES = enum_values(MemoryScope)
VALID_CONTEXT_MODES = enum_values(ContextMode)
VALID_TOOL_IMPL_TYPES = enum_values(ToolImplementationType)
VALID_PARAMETER_TYPES = ["string", "number", "integer", "boolean", "array", "object"]


@dataclass
class ValidationIssue:
    path: str
    message: str
    severity: str = "error"  # error | warning

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def issues(self) -> list[ValidationIssue]:
        return [*self.errors, *self.warnings]


def ok() -> ValidationResult:
    return ValidationResult()


def fail(issues: list[ValidationIssue]) -> ValidationResult:
    errors = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _result(issues: list[ValidationIssue]) -> ValidationResult:
    return fail(issues) if issues else ok()


def error(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(path, message, "error")


def warning(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(path, message, "warning")


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


# ---------------------------------------------------------------------------
# YAML quoting helpers
# ---------------------------------------------------------------------------

# Characters that change meaning when they start a plain YAML scalar
_YAML_INDICATORS = set("!&*{}[]|>'\"%@`#,?:-")


def needs_yaml_quotes(value: str) -> bool:
    """
    Whether a plain YAML scalar would be misparsed without quotes.

    Descriptions copied from prose often contain ``: `` or `` #`` which YAML
    reads as a mapping or a comment.
    """
    stripped = value.strip()
    if not stripped:
        return False
    if stripped[0] in "'\"":
        # Already quoted
        return False
    if ": " in stripped or stripped.endswith(":") or " #" in stripped:
        return True
    return stripped[0] in _YAML_INDICATORS


def ensure_yaml_quotes(value: str) -> str:
    """Wrap a scalar in double quotes when it needs them."""
    stripped = value.strip()
    if not needs_yaml_quotes(stripped):
        return stripped
    escaped = stripped.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# ---------------------------------------------------------------------------
# Shared checks
# ---------------------------------------------------------------------------


def validate_metadata(data: dict[str, Any], prefix: str) -> list[ValidationIssue]:
    """Check the identity fields every component carries."""
    issues: list[ValidationIssue] = []

    name = data.get("name")
    if not name or not isinstance(name, str):
        issues.append(error(f"{prefix}.name", "name is required and must be a string"))
    else:
        if len(name) > MAX_NAME_LENGTH:
            issues.append(error(f"{prefix}.name", f"name must be <= {MAX_NAME_LENGTH} chars"))
        if not NAME_PATTERN.match(name):
            issues.append(
                error(
                    f"{prefix}.name",
                    "name must be lowercase alphanumeric with hyphens, starting with a letter",
                )
            )

    description = data.get("description")
    if not description or not isinstance(description, str):
        issues.append(
            error(f"{prefix}.description", "description is required and must be a string")
        )
    elif len(description) > MAX_DESCRIPTION_LENGTH:
        issues.append(
            warning(f"{prefix}.description", f"description exceeds {MAX_DESCRIPTION_LENGTH} chars")
        )

    tags = data.get("tags")
    if tags is not None and not _is_str_list(tags):
        issues.append(error(f"{prefix}.tags", "must be a list of strings"))

    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        issues.append(error(f"{prefix}.metadata", "must be a mapping"))

    return issues


def _validate_tool_access(tools: Any, prefix: str) -> list[ValidationIssue]:
    if tools is None:
        return []
    if not isinstance(tools, dict):
        return [error(prefix, "must be an object with 'allowed' and/or 'disallowed' lists")]
    issues = []
    for key in ("allowed", "disallowed"):
        value = tools.get(key)
        if value is not None and not _is_str_list(value):
            issues.append(error(f"{prefix}.{key}", "must be a list of tool names"))
    return issues


def _validate_inline_hooks(hooks: Any, prefix: str) -> list[ValidationIssue]:
    if not hooks:
        return []
    if not isinstance(hooks, list):
        return [error(prefix, "must be a list of hooks")]
    issues: list[ValidationIssue] = []
    for i, hook in enumerate(hooks):
        result = validate_hook(hook)
        for issue in result.issues:
            path = issue.path.replace("hook", f"{prefix}[{i}]", 1)
            issues.append(ValidationIssue(path, issue.message, issue.severity))
    return issues


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_manifest(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return fail([error("manifest", "manifest must be an object")])

    issues: list[ValidationIssue] = []
    for key in ("name", "version", "description"):
        value = data.get(key)
        if not value or not isinstance(value, str):
            issues.append(error(f"manifest.{key}", f"{key} is required"))

    for key in ("skills", "agents", "hooks", "tools", "policies", "rules"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            issues.append(error(f"manifest.{key}", "must be a directory path"))

    return _result(issues)


def validate_skill(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return fail([error("skill", "skill must be an object")])

    issues = validate_metadata(data, "skill")

    invocation = data.get("invocation")
    if isinstance(invocation, dict):
        for key in ("userInvocable", "modelInvocable"):
            if key in invocation and not _is_bool(invocation[key]):
                issues.append(error(f"skill.invocation.{key}", "must be boolean"))
        hint = invocation.get("argumentHint")
        if hint is not None and not isinstance(hint, str):
            issues.append(error("skill.invocation.argumentHint", "must be a string"))

    context = data.get("context")
    if isinstance(context, dict):
        mode = context.get("mode")
        if mode and mode not in VALID_CONTEXT_MODES:
            issues.append(error("skill.context.mode", "must be 'fork' or 'inline'"))

    issues.extend(_validate_tool_access(data.get("tools"), "skill.tools"))

    resources = data.get("resources")
    if resources is not None and not _is_str_list(resources):
        issues.append(error("skill.resources", "must be a list of paths"))

    issues.extend(_validate_inline_hooks(data.get("hooks"), "skill.hooks"))

    return _result(issues)


def validate_agent(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return fail([error("agent", "agent must be an object")])

    issues = validate_metadata(data, "agent")

    mode = data.get("permissionMode")
    if mode and mode not in VALID_PERMISSION_MODES:
        issues.append(
            error("agent.permissionMode", f"must be one of: {', '.join(VALID_PERMISSION_MODES)}")
        )

    memory = data.get("memory")
    if memory and memory not in VALID_MEMORY_SCOPES:
        issues.append(error("agent.memory", f"must be one of: {', '.join(VALID_MEMORY_SCOPES)}"))

    if "maxTurns" in data:
        max_turns = data["maxTurns"]
        if not isinstance(max_turns, int) or isinstance(max_turns, bool) or max_turns < 1:
            issues.append(error("agent.maxTurns", "must be a positive integer"))

    issues.extend(_validate_tool_access(data.get("tools"), "agent.tools"))

    skills = data.get("skills")
    if skills is not None and not _is_str_list(skills):
        issues.append(error("agent.skills", "must be a list of skill names"))

    servers = data.get("mcpServers")
    if servers is not None:
        if not isinstance(servers, list):
            issues.append(error("agent.mcpServers", "must be a list"))
        else:
            for i, server in enumerate(servers):
                if isinstance(server, str):
                    continue
                if not isinstance(server, dict) or not server.get("name"):
                    issues.append(
                        error(f"agent.mcpServers[{i}]", "must be a name or an object with a name")
                    )

    groups = data.get("toolGroups")
    if groups is not None and not _is_str_list(groups):
        issues.append(error("agent.toolGroups", "must be a list of group names"))

    issues.extend(_validate_inline_hooks(data.get("hooks"), "agent.hooks"))

    return _result(issues)


def validate_hook(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return fail([error("hook", "hook must be an object")])

    issues = validate_metadata(data, "hook")

    event = data.get("event")
    if not event or event not in VALID_HOOK_EVENTS:
        issues.append(
            error(
                "hook.event",
                f"event is required and must be one of: {', '.join(VALID_HOOK_EVENTS)}",
            )
        )

    matcher = data.get("matcher")
    if matcher is not None:
        if not isinstance(matcher, str):
            issues.append(error("hook.matcher", "must be a string"))
        else:
            try:
                re.compile(matcher)
            except re.error as e:
                issues.append(warning("hook.matcher", f"not a valid regular expression: {e}"))

    handlers = data.get("handlers")
    if not isinstance(handlers, list) or not handlers:
        issues.append(error("hook.handlers", "at least one handler is required"))
    else:
        for i, handler in enumerate(handlers):
            path = f"hook.handlers[{i}]"
            if not isinstance(handler, dict):
                issues.append(error(path, "handler must be an object"))
                continue
            handler_type = handler.get("type")
            if not handler_type or handler_type not in VALID_HOOK_HANDLER_TYPES:
                issues.append(
                    error(f"{path}.type", f"must be one of: {', '.join(VALID_HOOK_HANDLER_TYPES)}")
                )
            if handler_type == "command" and not handler.get("command"):
                issues.append(error(f"{path}.command", "command is required for type 'command'"))
            if handler_type in ("prompt", "agent") and not handler.get("prompt"):
                issues.append(
                    error(f"{path}.prompt", f"prompt is required for type '{handler_type}'")
                )
            if "timeout" in handler and not _is_positive_number(handler["timeout"]):
                issues.append(error(f"{path}.timeout", "must be a positive number of seconds"))

    fallback = data.get("fallback")
    if fallback is not None:
        strategy = fallback.get("strategy") if isinstance(fallback, dict) else None
        if not strategy or strategy not in VALID_FALLBACK_STRATEGIES:
            issues.append(
                error(
                    "hook.fallback.strategy",
                    f"must be one of: {', '.join(VALID_FALLBACK_STRATEGIES)}",
                )
            )

    return _result(issues)


def validate_tool(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return fail([error("tool", "tool must be an object")])

    issues = validate_metadata(data, "tool")

    params = data.get("parameters")
    if not isinstance(params, dict):
        issues.append(error("tool.parameters", "parameters schema is required"))
    else:
        if params.get("type") != "object":
            issues.append(error("tool.parameters.type", "parameters type must be 'object'"))
        properties = params.get("properties") or {}
        if not isinstance(properties, dict):
            issues.append(error("tool.parameters.properties", "must be a mapping"))
            properties = {}
        for prop_name, prop in properties.items():
            prop_type = prop.get("type") if isinstance(prop, dict) else None
            if prop_type is not None and prop_type not in VALID_PARAMETER_TYPES:
                issues.append(
                    error(
                        f"tool.parameters.properties.{prop_name}.type",
                        f"must be one of: {', '.join(VALID_PARAMETER_TYPES)}",
                    )
                )
        required = params.get("required") or []
        if not _is_str_list(required):
            issues.append(error("tool.parameters.required", "must be a list of property names"))
        else:
            for name in required:
                if name not in properties:
                    issues.append(
                        warning("tool.parameters.required", f"'{name}' is not a declared property")
                    )

    impl = data.get("implementation")
    if not isinstance(impl, dict):
        issues.append(error("tool.implementation", "implementation is required"))
    else:
        impl_type = impl.get("type")
        if not impl_type or impl_type not in VALID_TOOL_IMPL_TYPES:
            issues.append(
                error(
                    "tool.implementation.type",
                    f"must be one of: {', '.join(VALID_TOOL_IMPL_TYPES)}",
                )
            )
        if impl_type == "command" and not impl.get("command"):
            issues.append(
                error("tool.implementation.command", "command is required for type 'command'")
            )
        if impl_type == "script" and not impl.get("script"):
            issues.append(
                error("tool.implementation.script", "script is required for type 'script'")
            )
        if impl_type == "mcp-proxy" and not impl.get("mcpProxy"):
            issues.append(
                error("tool.implementation.mcpProxy", "mcpProxy is required for type 'mcp-proxy'")
            )

    exposure = data.get("exposure")
    if isinstance(exposure, dict):
        for key in ("mcp", "native"):
            if key in exposure and not _is_bool(exposure[key]):
                issues.append(error(f"tool.exposure.{key}", "must be boolean"))

    return _result(issues)


def validate_policy(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return fail([error("policy", "policy must be an object")])

    issues = validate_metadata(data, "policy")

    permissions = data.get("permissions")
    if isinstance(permissions, dict):
        for key in ("allow", "deny", "ask"):
            value = permissions.get(key)
            if value and not isinstance(value, list):
                issues.append(
                    error(f"policy.permissions.{key}", "must be an array of permission patterns")
                )

    sandbox = data.get("sandbox")
    if isinstance(sandbox, dict):
        excluded = sandbox.get("excludedCommands")
        if excluded is not None and not _is_str_list(excluded):
            issues.append(error("policy.sandbox.excludedCommands", "must be a list of commands"))
        network = sandbox.get("network")
        if isinstance(network, dict):
            domains = network.get("allowedDomains")
            if domains is not None and not _is_str_list(domains):
                issues.append(
                    error("policy.sandbox.network.allowedDomains", "must be a list of domains")
                )

    return _result(issues)
