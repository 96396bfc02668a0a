"""
Shell execution runtime used by hooks and tools.
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ExecutionResult:
    """Result of a shell execution."""

    success: bool
    output: str = ""
    error: str = ""
    exit_code: int = 0
    timed_out: bool = False
    duration_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_process(
        cls, exit_code: int, output: str, error: str, duration_ms: float = 0.0
    ) -> ExecutionResult:
        return cls(
            success=exit_code == 0,
            output=output,
            error=error,
            exit_code=exit_code,
            duration_ms=duration_ms,
        )

    @classmethod
    def timeout_result(cls, timeout: float, duration_ms: float = 0.0) -> ExecutionResult:
        return cls(
            success=False,
            error=f"Command timed out after {timeout}s",
            exit_code=-1,
            timed_out=True,
            duration_ms=duration_ms,
        )


class ShellRuntime:
    """
    Runs commands through ``/bin/sh -c``.

    Output streams are captured separately. On timeout the process is
    killed and reaped before returning.
    """

    def __init__(
        self,
        shell: str = "/bin/sh",
        default_timeout: float = 60.0,
        max_output_size: int = 1_000_000,  # 1MB
    ) -> None:
        self.shell = shell
        self.default_timeout = default_timeout
        self.max_output_size = max_output_size

    async def execute(
        self,
        command: str,
        cwd: str | os.PathLike[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        input: str | None = None,
    ) -> ExecutionResult:
        """
        Execute a command.

        Args:
            command: Shell command line
            cwd: Working directory
            env: Extra environment variables, merged over the current ones
            timeout: Seconds before the process is killed
            input: Text written to the process's stdin

        Returns:
            ExecutionResult with both output streams and the exit code

        Raises:
            OSError: If the shell cannot be started
        """
        start = time.perf_counter()
        timeout = timeout or self.default_timeout

        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        process = await asyncio.create_subprocess_exec(
            self.shell,
            "-c",
            command,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=full_env,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input.encode("utf-8") if input is not None else None),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return ExecutionResult.timeout_result(timeout, _elapsed_ms(start))

        return ExecutionResult.from_process(
            exit_code=process.returncode if process.returncode is not None else -1,
            output=self._decode_output(stdout),
            error=self._decode_output(stderr),
            duration_ms=_elapsed_ms(start),
        )

    def _decode_output(self, data: bytes) -> str:
        """Decode command output, truncating if necessary."""
        text = data.decode("utf-8", errors="replace")
        if len(text) > self.max_output_size:
            text = text[: self.max_output_size] + "\n... (output truncated)"
        return text


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
