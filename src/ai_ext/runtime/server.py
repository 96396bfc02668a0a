"""
Runtime MCP server (``ai-ext serve``).

Exposes, over stdio:
- every MCP-exposed extension tool as ``ai-ext_<name>``
- one hook probe per bridged hook event
- ``ai-ext_memory_read`` / ``ai-ext_memory_write`` / ``ai-ext_memory_list``
- the memory scopes as ``ai-ext://memory/<scope>`` resources

:class:`RuntimeToolbox` holds the dispatch logic and knows nothing about
MCP; :func:`create_runtime_server` binds it to the SDK.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.lowlevel import NotificationOptions
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool

from ai_ext.config import AiExtConfig
from ai_ext.logging import get_logger
from ai_ext.models import ExtensionIR, ToolDefinition
from ai_ext.runtime.hook_engine import HookEngine
from ai_ext.runtime.memory import SCOPES, MemoryStore
from ai_ext.runtime.tool_executor import ToolExecutor

logger = get_logger("runtime.server")

TOOL_PREFIX = "ai-ext_"
MEMORY_READ = "ai-ext_memory_read"
MEMORY_WRITE = "ai-ext_memory_write"
MEMORY_LIST = "ai-ext_memory_list"
MEMORY_URI_PREFIX = "ai-ext://memory/"

_SCOPE_PROPERTY = {"type": "string", "enum": list(SCOPES), "description": "Memory scope"}

MEMORY_TOOLS: list[dict[str, Any]] = [
    {
        "name": MEMORY_READ,
        "description": "Read a value from the ai-ext memory store",
        "inputSchema": {
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "Memory key to read"},
                "scope": _SCOPE_PROPERTY,
            },
            "required": ["key"],
        },
    },
    {
        "name": MEMORY_WRITE,
        "description": "Write a value to the ai-ext memory store",
        "inputSchema": {
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "Memory key to write"},
                "value": {"description": "Value to store"},
                "scope": _SCOPE_PROPERTY,
            },
            "required": ["key", "value"],
        },
    },
    {
        "name": MEMORY_LIST,
        "description": "List all keys in the ai-ext memory store",
        "inputSchema": {
            "type": "object",
            "properties": {"scope": _SCOPE_PROPERTY},
        },
    },
]

MEMORY_RESOURCES: list[dict[str, str]] = [
    {
        "uri": f"{MEMORY_URI_PREFIX}session",
        "name": "Session Memory",
        "description": "Current session memory store",
        "mimeType": "application/json",
    },
    {
        "uri": f"{MEMORY_URI_PREFIX}project",
        "name": "Project Memory",
        "description": "Persistent project memory store",
        "mimeType": "application/json",
    },
]


class UnknownToolError(LookupError):
    pass


class RuntimeToolbox:
    """
    Lists and dispatches the runtime server's tools and resources.

    Args:
        ir: Resolved extension
        hook_engine: Engine behind the hook probes
        executor: Runs extension tools
        memory: Memory store behind the memory tools and resources
    """

    def __init__(
        self,
        ir: ExtensionIR,
        hook_engine: HookEngine | None = None,
        executor: ToolExecutor | None = None,
        memory: MemoryStore | None = None,
    ) -> None:
        self.ir = ir
        self.hook_engine = hook_engine or HookEngine(ir.hooks)
        self.executor = executor or ToolExecutor()
        self.memory = memory or MemoryStore()
        self._tools: dict[str, ToolDefinition] = {
            f"{TOOL_PREFIX}{tool.name}": tool for tool in ir.mcp_tools()
        }

    def list_tools(self) -> list[dict[str, Any]]:
        tools = [
            {
                "name": name,
                "description": tool.metadata.description,
                "inputSchema": tool.parameters.to_dict(),
            }
            for name, tool in self._tools.items()
        ]
        tools.extend(probe.to_dict() for probe in self.hook_engine.list_probes())
        tools.extend(MEMORY_TOOLS)
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """
        Run a tool and return its text result.

        Raises:
            UnknownToolError: If no tool has this name
            ValueError: If a memory scope is not recognized
        """
        args = arguments or {}

        if name == MEMORY_READ:
            value = self.memory.get(args["key"], args.get("scope") or "session")
            return json.dumps(value)
        if name == MEMORY_WRITE:
            self.memory.set(args["key"], args.get("value"), args.get("scope") or "session")
            return "OK"
        if name == MEMORY_LIST:
            return json.dumps(self.memory.list(args.get("scope") or "session"))

        if self.hook_engine.is_probe(name):
            result = await self.hook_engine.execute(name, args)
            return json.dumps(result.to_dict())

        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return await self.executor.execute(tool, args)

    def list_resources(self) -> list[dict[str, str]]:
        return [dict(r) for r in MEMORY_RESOURCES]

    def read_resource(self, uri: str) -> str:
        scope = uri[len(MEMORY_URI_PREFIX):] if uri.startswith(MEMORY_URI_PREFIX) else ""
        if scope not in SCOPES:
            raise ValueError(f"Unknown resource: {uri}")
        return json.dumps(self.memory.get_all(scope))


def create_runtime_server(
    ir: ExtensionIR,
    project_dir: str | Path | None = None,
    config: AiExtConfig | None = None,
    toolbox: RuntimeToolbox | None = None,
) -> Server:
    """Build an MCP server over a :class:`RuntimeToolbox` for ``ir``."""
    config = config or AiExtConfig()
    if toolbox is None:
        toolbox = RuntimeToolbox(
            ir,
            hook_engine=HookEngine(ir.hooks, default_timeout=config.hook_timeout_seconds),
            executor=ToolExecutor(timeout=config.tool_timeout_seconds),
            memory=MemoryStore(project_dir, dir_name=config.memory_dir_name),
        )

    server = Server(f"{config.runtime_server_name}:{ir.name}")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [
            Tool(name=t["name"], description=t["description"], inputSchema=t["inputSchema"])
            for t in toolbox.list_tools()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        logger.debug("Tool call: %s", name)
        text = await toolbox.call_tool(name, arguments)
        return [TextContent(type="text", text=text)]

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        return [
            Resource(
                uri=r["uri"],
                name=r["name"],
                description=r["description"],
                mimeType=r["mimeType"],
            )
            for r in toolbox.list_resources()
        ]

    @server.read_resource()
    async def read_resource(uri) -> list[ReadResourceContents]:
        text = toolbox.read_resource(str(uri))
        return [ReadResourceContents(content=text, mime_type="application/json")]

    return server


async def run_runtime_server(
    ir: ExtensionIR,
    project_dir: str | Path | None = None,
    config: AiExtConfig | None = None,
) -> None:
    """Serve ``ir`` over stdio until the client disconnects."""
    server = create_runtime_server(ir, project_dir=project_dir, config=config)
    counts = ir.counts()
    logger.info(
        "ai-ext runtime server starting (%d tools, %d hooks)",
        counts.get("tools", 0),
        counts.get("hooks", 0),
    )

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=server.name,
                server_version=ir.manifest.version or "0.1.0",
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )
