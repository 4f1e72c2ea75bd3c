"""Process supervision for tool provider subprocesses.

Spawns provider processes with piped stdio, drains their stderr for
diagnostics, and reports each process exit exactly once. Failed
processes are never restarted here.
"""

import asyncio
import logging
import os
from collections import deque
from collections.abc import Callable
from contextlib import suppress
from datetime import UTC, datetime

from autodev.domain.exceptions.mcp import MCPServerSpawnError
from autodev.domain.model.mcp.server import ServerDescriptor

logger = logging.getLogger(__name__)

# Default time to wait for SIGTERM before killing
DEFAULT_GRACE_PERIOD = 5.0

_STDERR_CHUNK_SIZE = 4096
_STDERR_FLUSH_TIMEOUT = 1.0

ExitCallback = Callable[["ProcessHandle", int], None]


class ProcessHandle:
    """A running provider process.

    Exposes the child's streams and a one-shot exit notification. The
    handle is created by ``ProcessSupervisor.spawn``.
    """

    def __init__(
        self,
        name: str,
        process: asyncio.subprocess.Process,
        stderr_tail_lines: int = 50,
    ) -> None:
        self.name = name
        self.started_at = datetime.now(UTC)
        self._process = process
        self._stderr_tail: deque[str] = deque(maxlen=stderr_tail_lines)
        self._exit_code: int | None = None
        self._exited = asyncio.Event()
        self._exit_callbacks: list[ExitCallback] = []
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        self._watch_task = asyncio.create_task(self._watch_exit())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdin(self) -> asyncio.StreamWriter:
        return self._process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader:
        return self._process.stderr

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def is_running(self) -> bool:
        return self._process.returncode is None

    def stderr_tail(self) -> str:
        """Get the most recent stderr lines."""
        return "\n".join(self._stderr_tail)

    def add_exit_callback(self, callback: ExitCallback) -> None:
        """Register a callback fired once with (handle, exit code).

        Fires on the next loop iteration when the process already exited.
        """
        if self._exit_code is not None:
            asyncio.get_running_loop().call_soon(callback, self, self._exit_code)
            return
        self._exit_callbacks.append(callback)

    async def wait_exited(self) -> int:
        """Wait for the process to exit and return its exit code."""
        await self._exited.wait()
        return self._exit_code

    async def terminate(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> None:
        """Terminate the process: SIGTERM, then SIGKILL after the grace period.

        Idempotent; does nothing if the process already exited.
        """
        proc = self._process
        if proc.returncode is None:
            try:
                proc.terminate()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=grace_period)
                except TimeoutError:
                    logger.warning(
                        f"MCP server '{self.name}' (PID={self.pid}) did not terminate, killing"
                    )
                    with suppress(ProcessLookupError):
                        proc.kill()
                    await proc.wait()
                logger.info(f"Stopped MCP server '{self.name}' (PID={self.pid})")
            except ProcessLookupError:
                pass

        # Let the watcher record the exit so callbacks see a consistent state
        with suppress(asyncio.CancelledError):
            await self._watch_task
        # Give stderr a moment to reach EOF so the tail is complete
        done, _ = await asyncio.wait({self._stderr_task}, timeout=_STDERR_FLUSH_TIMEOUT)
        if not done:
            self._stderr_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._stderr_task

    async def _watch_exit(self) -> None:
        returncode = await self._process.wait()
        self._exit_code = returncode
        self._exited.set()
        logger.debug(f"MCP server '{self.name}' (PID={self.pid}) exited with code {returncode}")

        callbacks, self._exit_callbacks = self._exit_callbacks, []
        for callback in callbacks:
            try:
                callback(self, returncode)
            except Exception as e:
                logger.error(f"Exit callback for MCP server '{self.name}' failed: {e}")

    async def _drain_stderr(self) -> None:
        """Read stderr continuously so the child never blocks on a full pipe."""
        stream = self._process.stderr
        if stream is None:
            return

        partial = b""
        try:
            while True:
                chunk = await stream.read(_STDERR_CHUNK_SIZE)
                if not chunk:
                    break
                partial += chunk
                *lines, partial = partial.split(b"\n")
                for line in lines:
                    self._record_stderr(line)
            if partial:
                self._record_stderr(partial)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Stopped reading stderr for MCP server '{self.name}': {e}")

    def _record_stderr(self, raw: bytes) -> None:
        text = raw.decode("utf-8", errors="replace").rstrip()
        if not text:
            return
        self._stderr_tail.append(text)
        logger.debug(f"[{self.name} stderr] {text}")


class ProcessSupervisor:
    """Spawns tool provider processes."""

    def __init__(self, stderr_tail_lines: int = 50) -> None:
        self._stderr_tail_lines = stderr_tail_lines

    async def spawn(self, descriptor: ServerDescriptor) -> ProcessHandle:
        """Start a provider process with piped stdio.

        Args:
            descriptor: Server to start.

        Returns:
            ProcessHandle for the running process.

        Raises:
            MCPServerSpawnError: If the executable cannot be started.
        """
        env = None
        if descriptor.env:
            env = {**os.environ, **descriptor.env}

        logger.info(f"Starting MCP server '{descriptor.name}': {descriptor.command_line}")

        try:
            process = await asyncio.create_subprocess_exec(
                descriptor.command,
                *descriptor.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=descriptor.cwd,
                env=env,
            )
        except OSError as e:
            logger.error(f"Failed to start MCP server '{descriptor.name}': {e}")
            raise MCPServerSpawnError(
                descriptor.name, descriptor.command_line, original_error=e
            ) from e

        logger.info(f"Started MCP server '{descriptor.name}' (PID={process.pid})")
        return ProcessHandle(
            descriptor.name,
            process,
            stderr_tail_lines=self._stderr_tail_lines,
        )
