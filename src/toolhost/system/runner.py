"""CommandRunner — runs platform utilities on the host and captures output."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, Field

from toolhost.errors import CommandError, CommandTimeoutError

logger = logging.getLogger(__name__)


class CommandRequest(BaseModel):
    """A command to execute on the host."""

    command: list[str] = Field(..., description="Command and arguments to execute.")
    timeout: float | None = Field(default=None, description="Per-request timeout override.")


class CommandResult(BaseModel):
    """Captured outcome of a host command."""

    exit_code: int = Field(..., description="Process exit code.")
    stdout: str = Field(default="", description="Captured stdout.")
    stderr: str = Field(default="", description="Captured stderr.")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Executes commands directly on the host (no shell interpolation)."""

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    async def execute(self, request: CommandRequest) -> CommandResult:
        """Run a command and wait for it to finish.

        Raises:
            CommandError: If the executable cannot be started.
            CommandTimeoutError: If it runs past the timeout (it is killed).
        """
        logger.debug("Executing %s", request.command)
        timeout = request.timeout or self._timeout

        try:
            proc = await asyncio.create_subprocess_exec(
                *request.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandError(str(exc)) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandTimeoutError(timeout) from None

        return CommandResult(
            exit_code=proc.returncode if proc.returncode is not None else 0,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
        )
