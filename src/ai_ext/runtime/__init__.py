"""
Compensation runtime: hook emulation, tool execution and memory served
over MCP by ``ai-ext serve``.
"""

from ai_ext.runtime.base import ExecutionResult, ShellRuntime
from ai_ext.runtime.hook_engine import (
    HookEngine,
    HookExecutionResult,
    ProbeOperation,
    event_for_probe,
    probe_name_for,
)
from ai_ext.runtime.memory import MemoryStore
from ai_ext.runtime.server import (
    RuntimeToolbox,
    UnknownToolError,
    create_runtime_server,
    run_runtime_server,
)
from ai_ext.runtime.tool_executor import ToolExecutor, render_command_template

__all__ = [
    "ExecutionResult",
    "ShellRuntime",
    "HookEngine",
    "HookExecutionResult",
    "ProbeOperation",
    "probe_name_for",
    "event_for_probe",
    "ToolExecutor",
    "render_command_template",
    "MemoryStore",
    "RuntimeToolbox",
    "UnknownToolError",
    "create_runtime_server",
    "run_runtime_server",
]
