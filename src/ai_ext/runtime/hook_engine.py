"""
Hook compensation engine.

Hosts without native support for an event get one MCP tool per event
(``ai-ext_hook_<event>``), called a probe. The agent is instructed to call
the probe at the right lifecycle point; the engine runs the matching hook
handlers and answers allow or deny.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ai_ext.logging import get_logger
from ai_ext.models import TOOL_EVENTS, HookDefinition, HookEvent, HookFallbackStrategy, HookHandler
from ai_ext.parsers import kebab_case
from ai_ext.runtime.base import ShellRuntime

logger = get_logger("runtime.hooks")

PROBE_PREFIX = "ai-ext_hook_"

_EVENTS_BY_SLUG = {kebab_case(e.value): e.value for e in HookEvent}

# Exit code a command handler uses to block the action
BLOCKING_EXIT_CODE = 2


def probe_name_for(event: str) -> str:
    """``PreToolUse`` -> ``ai-ext_hook_pre-tool-use``."""
    return f"{PROBE_PREFIX}{kebab_case(event)}"


def event_for_probe(name: str) -> str:
    """Reverse of :func:`probe_name_for`."""
    slug = name[len(PROBE_PREFIX):] if name.startswith(PROBE_PREFIX) else name
    if slug in _EVENTS_BY_SLUG:
        return _EVENTS_BY_SLUG[slug]
    return "".join(word[:1].upper() + word[1:] for word in slug.split("-"))


@dataclass(frozen=True)
class ProbeOperation:
    """An MCP tool that stands in for one hook event."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class HookExecutionResult:
    allowed: bool
    reason: str | None = None
    context: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"allowed": self.allowed}
        if self.reason:
            data["reason"] = self.reason
        if self.context:
            data["context"] = self.context
        return data


def probe_schema(event: str) -> dict[str, Any]:
    if event in TOOL_EVENTS:
        return {
            "type": "object",
            "properties": {
                "toolName": {"type": "string", "description": "Name of the tool being called"},
                "toolInput": {"description": "Input arguments to the tool"},
            },
            "required": ["toolName"],
        }
    if event == HookEvent.USER_PROMPT_SUBMIT.value:
        return {
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "description": "The user prompt being submitted"},
            },
        }
    return {
        "type": "object",
        "properties": {
            "context": {"type": "string", "description": "Contextual information for the hook"},
        },
    }


def probe_description(event: str, hooks: list[HookDefinition]) -> str:
    descriptions = [h.metadata.description for h in hooks if h.metadata.description]
    checks = "; ".join(descriptions) or ", ".join(h.name for h in hooks)
    return (
        f"[ai-ext hook emulation] Call this BEFORE {event} to check: {checks}. "
        "Returns {allowed: boolean, reason?: string}."
    )


class HookEngine:
    """
    Runs hooks on behalf of hosts that cannot.

    Only hooks whose fallback strategy bridges to the runtime are exposed
    and executed. Handlers run one at a time in declaration order and the
    first deny wins. Errors and timeouts allow the action.

    Example:
        engine = HookEngine(ir.hooks)
        result = await engine.execute(
            "ai-ext_hook_pre-tool-use", {"toolName": "Bash", "toolInput": {...}}
        )
        if not result.allowed:
            ...
    """

    def __init__(
        self,
        hooks: Iterable[HookDefinition],
        runtime: ShellRuntime | None = None,
        default_timeout: float = 60.0,
    ) -> None:
        self.hooks: tuple[HookDefinition, ...] = tuple(hooks)
        self.default_timeout = default_timeout
        self.runtime = runtime or ShellRuntime(default_timeout=default_timeout)

    def bridged_hooks(self) -> list[HookDefinition]:
        return [
            h
            for h in self.hooks
            if h.effective_strategy
            not in (HookFallbackStrategy.IGNORE.value, HookFallbackStrategy.SKILL_INJECTION.value)
        ]

    def list_probes(self) -> list[ProbeOperation]:
        """One probe per event with bridged hooks, in first-seen order."""
        groups: dict[str, list[HookDefinition]] = {}
        for hook in self.bridged_hooks():
            groups.setdefault(hook.event, []).append(hook)

        return [
            ProbeOperation(
                name=probe_name_for(event),
                description=probe_description(event, hooks),
                input_schema=probe_schema(event),
            )
            for event, hooks in groups.items()
        ]

    def is_probe(self, name: str) -> bool:
        return name.startswith(PROBE_PREFIX)

    def matching_hooks(self, event: str, args: dict[str, Any]) -> list[HookDefinition]:
        tool_name = args.get("toolName")
        matched = []
        for hook in self.bridged_hooks():
            if hook.event != event:
                continue
            if hook.matcher and tool_name:
                try:
                    if not re.search(hook.matcher, str(tool_name)):
                        continue
                except re.error as e:
                    logger.warning("Invalid matcher %r on hook %s: %s", hook.matcher, hook.name, e)
                    continue
            matched.append(hook)
        return matched

    async def execute(self, name: str, args: dict[str, Any] | None = None) -> HookExecutionResult:
        """
        Run the hooks behind a probe.

        Args:
            name: Probe name (``ai-ext_hook_<event>``)
            args: Probe arguments, passed to command handlers as JSON on stdin

        Returns:
            The first deny, or an allow carrying collected context and warnings
        """
        args = args or {}
        event = event_for_probe(name)
        hooks = self.matching_hooks(event, args)
        if not hooks:
            return HookExecutionResult(allowed=True, reason="No matching hooks")

        contexts: list[str] = []
        notes: list[str] = []
        for hook in hooks:
            for handler in hook.handlers:
                result = await self.execute_handler(handler, args)
                if not result.allowed:
                    logger.info("Hook %s denied %s: %s", hook.name, event, result.reason)
                    return result
                if result.context:
                    contexts.append(result.context)
                if result.reason:
                    notes.append(result.reason)

        return HookExecutionResult(
            allowed=True,
            reason="; ".join(notes) or None,
            context="\n".join(contexts) or None,
        )

    async def execute_handler(
        self, handler: HookHandler, args: dict[str, Any]
    ) -> HookExecutionResult:
        if handler.type != "command" or not handler.command:
            return HookExecutionResult(allowed=True, reason="Hook type not yet supported in runtime")

        timeout = handler.timeout or self.default_timeout
        try:
            result = await self.runtime.execute(
                handler.command,
                input=json.dumps(args),
                timeout=timeout,
            )
        except Exception as e:
            logger.warning("Hook command failed to run: %s", e)
            return HookExecutionResult(allowed=True, reason=f"Hook execution error: {e}")

        if result.timed_out:
            logger.warning("Hook command timed out after %ss: %s", timeout, handler.command)
            return HookExecutionResult(allowed=True, reason=f"Hook warning: timed out after {timeout}s")

        stdout = result.output.strip()
        stderr = result.error.strip()

        if result.exit_code == 0:
            return HookExecutionResult(allowed=True, context=stdout or None)

        if result.exit_code == BLOCKING_EXIT_CODE:
            return HookExecutionResult(
                allowed=False,
                reason=stderr or stdout or "Hook blocked the action",
            )

        logger.warning("Hook command exited with %d: %s", result.exit_code, handler.command)
        return HookExecutionResult(allowed=True, reason=f"Hook warning: exit code {result.exit_code}")
