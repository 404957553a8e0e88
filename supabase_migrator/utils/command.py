"""
External command execution.

The relational stages shell out to the Supabase CLI and psql. CommandRunner
runs one fully-formed shell command line to completion and turns a non-zero
exit into a ProcessError. Quoting embedded values is the caller's job.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from supabase_migrator.core.exceptions import ProcessError
from supabase_migrator.utils.sanitize import redact

logger = logging.getLogger(__name__)


@dataclass
class CompletedOutput:
    """Captured output of a successful command."""
    command: str
    stdout: str
    stderr: str
    returncode: int = 0


class CommandRunner:
    """Runs shell commands and captures their output."""

    def __init__(self, cwd: Optional[str] = None, timeout: Optional[float] = None):
        """
        Args:
            cwd: Working directory for launched commands
            timeout: Optional limit in seconds for a single command
        """
        self.cwd = cwd
        self.timeout = timeout

    async def run(self, command: str, secrets: Iterable[str] = ()) -> CompletedOutput:
        """
        Run a command line and wait for it to finish.

        Args:
            command: Shell command line
            secrets: Extra literal values to mask when logging

        Returns:
            CompletedOutput with the full stdout and stderr

        Raises:
            ProcessError: If the command cannot be launched, times out or exits non-zero
        """
        secrets = tuple(secrets)
        shown = redact(" ".join(command.split()), secrets)
        logger.debug(f"Running: {shown}")

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd
            )
        except OSError as e:
            logger.error(f"Error: failed to launch command: {e}")
            raise ProcessError(f"Failed to launch command: {e}", command=shown)

        try:
            stdout_b, stderr_b = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"Error: command timed out after {self.timeout}s: {shown}")
            raise ProcessError(f"Command timed out after {self.timeout}s", command=shown)

        stdout = stdout_b.decode(errors="replace")
        stderr = redact(stderr_b.decode(errors="replace"), secrets)

        if process.returncode != 0:
            logger.error(f"Error: command exited with status {process.returncode}: {shown}")
            if stderr.strip():
                logger.error(f"stderr: {stderr.strip()}")
            raise ProcessError(
                f"Command exited with status {process.returncode}: {stderr.strip() or 'no output'}",
                command=shown,
                returncode=process.returncode,
                stderr=stderr
            )

        if stderr.strip():
            logger.warning(f"stderr: {stderr.strip()}")
        logger.debug(f"stdout: {stdout.strip()}")

        return CompletedOutput(command=shown, stdout=stdout, stderr=stderr, returncode=0)
