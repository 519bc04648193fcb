from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from relish.services.errors import CommandError, CommandTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT_SECONDS = 600.0


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str


async def run_command(
    command: str,
    *args: str,
    timeout: float = DEFAULT_COMMAND_TIMEOUT_SECONDS,
) -> CommandResult:
    """Run an external program and capture its output.

    Raises:
        CommandError: non-zero exit status, or the program is not installed.
        CommandTimeoutError: the program did not finish within ``timeout``.
    """
    logger.debug("Running command: %s %s", command, " ".join(args))
    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as error:
        raise CommandError(command, None, stderr=str(error), message=f"Command not found: {command}") from error

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as error:
        process.kill()
        await process.wait()
        raise CommandTimeoutError(command, timeout) from error

    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")

    if process.returncode != 0:
        raise CommandError(command, process.returncode, stdout, stderr)

    return CommandResult(stdout=stdout, stderr=stderr)
