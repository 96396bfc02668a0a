"""Tests for tool execution and the shell runtime."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ai_ext.models import ToolParameters
from ai_ext.runtime import ShellRuntime, ToolExecutor
from ai_ext.runtime.tool_executor import format_argument, render_command_template

from conftest import make_tool


class TestRenderCommandTemplate:
    def test_scalars_are_quoted(self) -> None:
        assert render_command_template("echo {{msg}}", {"msg": "it's"}) == "echo 'it'\"'\"'s'"

    def test_array_items_quoted_individually(self) -> None:
        rendered = render_command_template(
            "wc -w {{files}} && ls {{ files }}", {"files": ["a.txt", "b c.txt"]}
        )
        assert rendered == "wc -w a.txt 'b c.txt' && ls a.txt 'b c.txt'"

    def test_missing_uses_default_then_empty(self) -> None:
        params = ToolParameters(properties={"count": {"type": "integer", "default": 3}})
        rendered = render_command_template("head -n {{count}} {{file}}", {}, params)
        assert rendered == "head -n 3 "

    def test_format_argument(self) -> None:
        assert format_argument(True) == "true"
        assert format_argument(None) == ""
        assert format_argument(42) == "42"
        assert format_argument({"a": 1}) == "'{\"a\": 1}'"


class TestToolExecutor:
    @pytest.mark.asyncio
    async def test_command_tool(self) -> None:
        tool = make_tool(
            name="count",
            command="printf '%s,' {{files}} {{files}}",
            properties={"files": {"type": "array", "items": {"type": "string"}}},
        )

        output = await ToolExecutor().execute(tool, {"files": ["a", "b"]})

        assert output == "a,b,a,b,"

    @pytest.mark.asyncio
    async def test_array_and_boolean_parameters(self) -> None:
        tool = make_tool(
            name="lint",
            command="printf '%s ' {{files}} --fix={{fix}} {{files}}",
            properties={
                "files": {"type": "array", "items": {"type": "string"}},
                "fix": {"type": "boolean"},
            },
        )

        output = await ToolExecutor().execute(tool, {"files": ["a.ts", "b.ts"], "fix": True})

        assert output == "a.ts b.ts --fix=true a.ts b.ts "

    @pytest.mark.asyncio
    async def test_injection_is_inert(self) -> None:
        tool = make_tool(command="printf %s {{message}}")

        output = await ToolExecutor().execute(tool, {"message": "x; echo pwned"})

        assert output == "x; echo pwned"

    @pytest.mark.asyncio
    async def test_failure_output(self) -> None:
        tool = make_tool(command="printf oops >&2; exit 3")

        output = await ToolExecutor().execute(tool, {})

        assert output == "Error (exit 3): oops"

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_stdout(self) -> None:
        tool = make_tool(command="printf partial; exit 1")

        assert await ToolExecutor().execute(tool, {}) == "Error (exit 1): partial"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        tool = make_tool(command="sleep 5")

        output = await ToolExecutor(timeout=0.2).execute(tool, {})

        assert output == "Error: Command timed out after 0.2s"

    @pytest.mark.asyncio
    async def test_script_tool(self, tmp_path: Path) -> None:
        (tmp_path / "run.sh").write_text('printf "%s" "$AI_EXT_TOOL_ARGS"; pwd >&2\n')
        tool = make_tool(name="scripted", impl_type="script", script="run.sh")
        tool.source_path = tmp_path / "TOOL.md"

        output = await ToolExecutor().execute(tool, {"n": 1})

        assert json.loads(output) == {"n": 1}

    @pytest.mark.asyncio
    async def test_unsupported_type(self) -> None:
        tool = make_tool(impl_type="mcp-proxy")

        output = await ToolExecutor().execute(tool, {})

        assert output == 'Tool implementation type "mcp-proxy" not yet supported'


class TestShellRuntime:
    @pytest.mark.asyncio
    async def test_streams_are_separate(self) -> None:
        result = await ShellRuntime().execute("printf out; printf err >&2")

        assert result.success
        assert result.output == "out"
        assert result.error == "err"

    @pytest.mark.asyncio
    async def test_stdin_and_env(self) -> None:
        result = await ShellRuntime().execute(
            'cat; printf " $GREETING"', env={"GREETING": "hi"}, input="hello"
        )
        assert result.output == "hello hi"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        result = await ShellRuntime().execute("sleep 5", timeout=0.1)

        assert result.timed_out
        assert result.exit_code == -1
        assert not result.success

    @pytest.mark.asyncio
    async def test_truncation(self) -> None:
        result = await ShellRuntime(max_output_size=10).execute("printf 0123456789abcdef")

        assert result.output == "0123456789\n... (output truncated)"
