"""
Execution of extension-defined tools.
"""

from __future__ import annotations

import json
import re
import shlex
import sys
from typing import Any

from ai_ext.logging import get_logger
from ai_ext.models import ToolDefinition, ToolImplementationType, ToolParameters
from ai_ext.runtime.base import ExecutionResult, ShellRuntime

logger = get_logger("runtime.tools")

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][\w-]*)\s*\}\}")

ARGS_ENV_VAR = "AI_EXT_TOOL_ARGS"


def format_argument(value: Any) -> str:
    """Render one argument as shell-safe text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return " ".join(format_argument(item) for item in value)
    if isinstance(value, dict):
        return shlex.quote(json.dumps(value))
    return shlex.quote(str(value))


def render_command_template(
    template: str,
    args: dict[str, Any] | None,
    parameters: ToolParameters | None = None,
) -> str:
    """
    Substitute every ``{{name}}`` placeholder in a command template.

    Values are shell-quoted; list items are quoted one by one and joined
    with spaces. A missing argument falls back to the parameter's declared
    ``default``, else to an empty string.
    """
    args = args or {}
    properties = parameters.properties if parameters else {}

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in args:
            return format_argument(args[key])
        schema = properties.get(key) or {}
        if "default" in schema:
            return format_argument(schema["default"])
        return ""

    return PLACEHOLDER_PATTERN.sub(replace, template)


def script_command(script: str) -> str:
    """Command line that runs a tool script by its extension."""
    quoted = shlex.quote(script)
    if script.endswith(".py"):
        return f"{shlex.quote(sys.executable)} {quoted}"
    if script.endswith(".sh"):
        return f"sh {quoted}"
    return quoted


def format_tool_output(result: ExecutionResult) -> str:
    if result.timed_out:
        return f"Error: {result.error}"
    if result.exit_code == 0:
        return result.output
    return f"Error (exit {result.exit_code}): {result.error or result.output}"


class ToolExecutor:
    """
    Runs a tool's implementation and returns its text result.

    ``command`` tools render their template and run through the shell.
    ``script`` tools run from the tool's directory with the arguments as
    JSON in ``AI_EXT_TOOL_ARGS``.
    """

    def __init__(self, runtime: ShellRuntime | None = None, timeout: float = 120.0) -> None:
        self.timeout = timeout
        self.runtime = runtime or ShellRuntime(default_timeout=timeout)

    async def execute(self, tool: ToolDefinition, args: dict[str, Any] | None = None) -> str:
        impl = tool.implementation
        args = args or {}

        if impl.type == ToolImplementationType.COMMAND.value and impl.command:
            command = render_command_template(impl.command, args, tool.parameters)
            logger.debug("Running tool %s: %s", tool.name, command)
            result = await self.runtime.execute(command, timeout=self.timeout)
            return format_tool_output(result)

        if impl.type == ToolImplementationType.SCRIPT.value and impl.script:
            logger.debug("Running tool script %s for %s", impl.script, tool.name)
            result = await self.runtime.execute(
                script_command(impl.script),
                cwd=tool.base_dir,
                env={ARGS_ENV_VAR: json.dumps(args)},
                timeout=self.timeout,
            )
            return format_tool_output(result)

        return f'Tool implementation type "{impl.type}" not yet supported'
