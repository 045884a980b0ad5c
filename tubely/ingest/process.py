from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from tubely.core.logging import get_logger

logger = get_logger(component="tool_runner")


@dataclass(slots=True, frozen=True)
class ToolResult:
    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolError(Exception):
    """The tool could not be run to completion (missing binary, deadline exceeded)."""

    def __init__(self, message: str, *, command: Sequence[str]):
        super().__init__(message)
        self.command = tuple(command)


class ToolTimeout(ToolError):
    def __init__(self, command: Sequence[str], timeout_s: float):
        super().__init__(f"{command[0]} timed out after {timeout_s:g}s", command=command)
        self.timeout_s = timeout_s


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_tool(command: Sequence[str], *, timeout_s: Optional[float] = None) -> ToolResult:
    """Run an external tool and collect its output.

    ``communicate`` drains stdout and stderr concurrently while waiting for
    exit, so a chatty child cannot block on a full pipe. When ``timeout_s``
    elapses the child is killed and reaped before ``ToolTimeout`` is raised.
    """
    argv = tuple(str(part) for part in command)
    logger.info("tool_invoked", command=list(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.error("tool_spawn_failed", command=list(argv), error=str(exc))
        raise ToolError(f"failed to start {argv[0]}: {exc}", command=argv) from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError:
        await _terminate(proc)
        logger.error("tool_timed_out", command=list(argv), timeout_s=timeout_s)
        raise ToolTimeout(argv, timeout_s or 0.0) from None
    except asyncio.CancelledError:
        await _terminate(proc)
        raise

    result = ToolResult(
        command=argv,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if not result.ok:
        logger.warning("tool_failed", command=list(argv), returncode=result.returncode, stderr=result.stderr.strip())
    return result


__all__ = ["ToolResult", "ToolError", "ToolTimeout", "run_tool"]
