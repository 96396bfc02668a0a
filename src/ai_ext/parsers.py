"""
Component parsers.

Each parser turns a loader's frontmatter mapping into one canonical
definition. Authors may write frontmatter in either of two conventions:

- canonical: structured sub-objects and camelCase keys
  (``tools: {allowed: [...]}``, ``userInvocable: false``)
- Agent Skills / host style: hyphenated keys, space-delimited tool
  strings and inverted flags (``allowed-tools: Read Grep``,
  ``disable-model-invocation: true``)

Every dual-convention field goes through one ``normalize_*`` function
that tries the canonical key, then the legacy key(s), then the default.
Values are not coerced: a wrongly typed value is carried into the
definition so the validator can report it.
"""

from __future__ import annotations

import re
from typing import Any

from ai_ext.loaders.base import ParsedComponent
from ai_ext.models import (
    AgentDefinition,
    ComponentMetadata,
    HookDefinition,
    HookFallback,
    HookHandler,
    McpProxy,
    McpServerRef,
    NetworkRules,
    PermissionRules,
    PolicyDefinition,
    SandboxConfig,
    SkillContext,
    SkillDefinition,
    SkillInvocation,
    ToolAccess,
    ToolDefinition,
    ToolExposure,
    ToolImplementation,
    ToolParameters,
)
from ai_ext.validation import MAX_NAME_LENGTH

_MISSING = object()

# Tool lists in host style: "Read Grep" or "Read, Grep"
_TOOL_LIST_SPLIT = re.compile(r"[\s,]+")


def _pick(fm: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key present, in priority order."""
    for key in keys:
        value = fm.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _split_tool_list(value: Any) -> Any:
    if isinstance(value, str):
        return [part for part in _TOOL_LIST_SPLIT.split(value) if part]
    return value


def kebab_case(value: str) -> str:
    """PascalCase or camelCase to kebab-case (``PreToolUse`` -> ``pre-tool-use``)."""
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"-\1", value).lower()


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


# ---------------------------------------------------------------------------
# Field normalizers
# ---------------------------------------------------------------------------


def extract_metadata(fm: dict[str, Any]) -> ComponentMetadata:
    return ComponentMetadata(
        name=fm.get("name"),
        description=fm.get("description"),
        license=fm.get("license"),
        compatibility=fm.get("compatibility"),
        metadata=fm.get("metadata") if fm.get("metadata") is not None else {},
        tags=fm.get("tags") if fm.get("tags") is not None else [],
    )


def normalize_tool_access(fm: dict[str, Any]) -> ToolAccess | None:
    """
    Canonical ``tools: {allowed, disallowed}`` (or a bare list) first, then
    ``allowed-tools``/``allowedTools`` and ``disallowed-tools``/``disallowedTools``.
    """
    tools = fm.get("tools")
    canonical: dict[str, Any] = {}
    if isinstance(tools, dict):
        canonical = tools
    elif isinstance(tools, (list, str)):
        canonical = {"allowed": tools}

    allowed = _split_tool_list(
        _pick(canonical, "allowed", default=None)
        if "allowed" in canonical
        else _pick(fm, "allowed-tools", "allowedTools")
    )
    disallowed = _split_tool_list(
        _pick(canonical, "disallowed", default=None)
        if "disallowed" in canonical
        else _pick(fm, "disallowed-tools", "disallowedTools")
    )

    if allowed is None and disallowed is None:
        return None
    return ToolAccess(allowed=allowed, disallowed=disallowed)


def normalize_user_invocable(fm: dict[str, Any]) -> Any:
    return _pick(fm, "userInvocable", "user-invocable")


def normalize_model_invocable(fm: dict[str, Any]) -> Any:
    """``modelInvocable`` first, then the negation of ``disable-model-invocation``."""
    value = _pick(fm, "modelInvocable")
    if value is not None:
        return value
    disabled = _pick(fm, "disable-model-invocation", "disableModelInvocation")
    if disabled is None:
        return None
    if isinstance(disabled, bool):
        return not disabled
    # Leave non-booleans for the validator
    return disabled


def normalize_argument_hint(fm: dict[str, Any]) -> Any:
    return _pick(fm, "argumentHint", "argument-hint")


def normalize_invocation(fm: dict[str, Any]) -> SkillInvocation | None:
    invocation = SkillInvocation(
        user_invocable=normalize_user_invocable(fm),
        model_invocable=normalize_model_invocable(fm),
        argument_hint=normalize_argument_hint(fm),
    )
    if invocation == SkillInvocation():
        return None
    return invocation


def normalize_context(fm: dict[str, Any]) -> SkillContext | None:
    """``context`` as a mapping or a bare mode string; top-level ``agent``/``model`` override."""
    raw = fm.get("context")
    context = SkillContext()
    if isinstance(raw, dict):
        context = SkillContext(mode=raw.get("mode"), agent=raw.get("agent"), model=raw.get("model"))
    elif raw is not None:
        context = SkillContext(mode=raw)

    if fm.get("agent") is not None:
        context.agent = fm["agent"]
    if fm.get("model") is not None:
        context.model = fm["model"]

    if context == SkillContext():
        return None
    return context


def normalize_max_turns(fm: dict[str, Any]) -> Any:
    return _pick(fm, "maxTurns", "max-turns")


def normalize_permission_mode(fm: dict[str, Any]) -> Any:
    return _pick(fm, "permissionMode", "permission-mode")


def normalize_mcp_servers(fm: dict[str, Any]) -> list[Any]:
    servers = _pick(fm, "mcpServers", "mcp-servers", default=[])
    if not isinstance(servers, list):
        return servers
    result: list[Any] = []
    for server in servers:
        if isinstance(server, dict) and isinstance(server.get("name"), str):
            result.append(
                McpServerRef(
                    name=server["name"],
                    command=server.get("command"),
                    args=list(server.get("args") or []),
                    env=dict(server.get("env") or {}),
                )
            )
        else:
            result.append(server)
    return result


def _parse_handler(data: Any) -> HookHandler:
    if not isinstance(data, dict):
        raise ValueError(f"hook handler must be a mapping, got {type(data).__name__}")
    return HookHandler(
        type=data.get("type"),
        command=data.get("command"),
        prompt=data.get("prompt"),
        model=data.get("model"),
        timeout=data.get("timeout"),
        status_message=_pick(data, "statusMessage", "status-message"),
        async_=data.get("async"),
        once=data.get("once"),
    )


def _parse_fallback(data: Any) -> HookFallback | None:
    if data is None:
        return None
    if isinstance(data, str):
        return HookFallback(strategy=data)
    if isinstance(data, dict):
        return HookFallback(strategy=data.get("strategy"), description=data.get("description"))
    return HookFallback(strategy=data)


def inline_hook_name(event: str, matcher: str | None) -> str:
    """Synthetic name for an inline hook: ``pre-tool-use-bash`` / ``stop-all``."""
    suffix = slugify(matcher) if matcher else ""
    name = f"{kebab_case(event)}-{suffix or 'all'}"
    return name[:MAX_NAME_LENGTH].rstrip("-")


def parse_inline_hooks(data: Any, component: ParsedComponent | None = None) -> list[HookDefinition]:
    """
    Flatten hooks declared in a skill or agent frontmatter.

    Expected shape (the Claude Code settings layout)::

        hooks:
          PreToolUse:
            - matcher: Bash
              hooks:
                - type: command
                  command: ./check.sh
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ValueError("inline hooks must be a mapping of event name to hook entries")

    source_path = component.source_path if component else None
    hooks: list[HookDefinition] = []
    seen: dict[str, int] = {}

    for event, entries in data.items():
        if not isinstance(entries, list):
            raise ValueError(f"inline hooks for {event} must be a list")
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError(f"inline hook entry for {event} must be a mapping")
            matcher = entry.get("matcher")
            name = entry.get("name") or inline_hook_name(str(event), matcher)
            seen[name] = seen.get(name, 0) + 1
            if seen[name] > 1:
                name = f"{name}-{seen[name]}"
            handlers = entry.get("hooks")
            if handlers is None:
                handlers = entry.get("handlers", [])
            hooks.append(
                HookDefinition(
                    metadata=ComponentMetadata(
                        name=name,
                        description=entry.get("description") or f"Inline hook for {event}",
                    ),
                    event=event,
                    matcher=matcher,
                    handlers=[_parse_handler(h) for h in handlers or []],
                    fallback=_parse_fallback(entry.get("fallback")),
                    source_path=source_path,
                )
            )

    return hooks


# ---------------------------------------------------------------------------
# Component parsers
# ---------------------------------------------------------------------------


def parse_skill(component: ParsedComponent) -> SkillDefinition:
    fm = component.frontmatter
    return SkillDefinition(
        metadata=extract_metadata(fm),
        instructions=component.body,
        invocation=normalize_invocation(fm),
        tools=normalize_tool_access(fm),
        context=normalize_context(fm),
        resources=fm.get("resources") if fm.get("resources") is not None else [],
        hooks=parse_inline_hooks(fm.get("hooks"), component),
        source_path=component.source_path,
    )


def parse_agent(component: ParsedComponent) -> AgentDefinition:
    fm = component.frontmatter
    return AgentDefinition(
        metadata=extract_metadata(fm),
        instructions=component.body,
        model=fm.get("model"),
        max_turns=normalize_max_turns(fm),
        tools=normalize_tool_access(fm),
        permission_mode=normalize_permission_mode(fm),
        skills=fm.get("skills") if fm.get("skills") is not None else [],
        mcp_servers=normalize_mcp_servers(fm),
        memory=fm.get("memory"),
        hooks=parse_inline_hooks(fm.get("hooks"), component),
        tool_groups=_pick(fm, "toolGroups", "tool-groups"),
        when_to_use=_pick(fm, "whenToUse", "when-to-use"),
        source_path=component.source_path,
    )


def parse_hook(component: ParsedComponent) -> HookDefinition:
    fm = component.frontmatter
    handlers = fm.get("handlers")
    return HookDefinition(
        metadata=extract_metadata(fm),
        event=fm.get("event"),
        matcher=fm.get("matcher"),
        handlers=[_parse_handler(h) for h in handlers] if isinstance(handlers, list) else [],
        fallback=_parse_fallback(fm.get("fallback")),
        instructions=component.body,
        source_path=component.source_path,
    )


def parse_tool(component: ParsedComponent) -> ToolDefinition:
    fm = component.frontmatter

    raw_params = fm.get("parameters")
    if isinstance(raw_params, dict):
        parameters = ToolParameters(
            type=raw_params.get("type"),
            properties=raw_params.get("properties") or {},
            required=raw_params.get("required") or [],
        )
    else:
        parameters = ToolParameters()

    impl = fm.get("implementation")
    if isinstance(impl, dict):
        proxy = _pick(impl, "mcpProxy", "mcp-proxy")
        implementation = ToolImplementation(
            type=impl.get("type"),
            command=impl.get("command"),
            script=impl.get("script"),
            mcp_proxy=(
                McpProxy(server=proxy.get("server"), tool=proxy.get("tool"))
                if isinstance(proxy, dict)
                else None
            ),
        )
    else:
        implementation = ToolImplementation(type="command")

    exposure = ToolExposure()
    raw_exposure = fm.get("exposure")
    if isinstance(raw_exposure, dict):
        exposure = ToolExposure(mcp=raw_exposure.get("mcp"), native=raw_exposure.get("native"))

    return ToolDefinition(
        metadata=extract_metadata(fm),
        parameters=parameters,
        implementation=implementation,
        exposure=exposure,
        instructions=component.body,
        source_path=component.source_path,
    )


def parse_policy(component: ParsedComponent) -> PolicyDefinition:
    fm = component.frontmatter

    permissions = PermissionRules()
    raw_perms = fm.get("permissions")
    if isinstance(raw_perms, dict):
        permissions = PermissionRules(
            deny=raw_perms.get("deny") or [],
            ask=raw_perms.get("ask") or [],
            allow=raw_perms.get("allow") or [],
        )

    sandbox = None
    raw_sandbox = fm.get("sandbox")
    if isinstance(raw_sandbox, dict):
        raw_network = raw_sandbox.get("network")
        network = None
        if isinstance(raw_network, dict):
            network = NetworkRules(
                allowed_domains=raw_network.get("allowedDomains") or [],
                allow_unix_sockets=raw_network.get("allowUnixSockets") or [],
                allow_local_binding=raw_network.get("allowLocalBinding"),
            )
        sandbox = SandboxConfig(
            enabled=raw_sandbox.get("enabled"),
            excluded_commands=_pick(raw_sandbox, "excludedCommands", "excluded-commands", default=[]),
            network=network,
        )

    return PolicyDefinition(
        metadata=extract_metadata(fm),
        permissions=permissions,
        sandbox=sandbox,
        instructions=component.body,
        source_path=component.source_path,
    )


PARSERS = {
    "skill": parse_skill,
    "agent": parse_agent,
    "hook": parse_hook,
    "tool": parse_tool,
    "policy": parse_policy,
}
