"""
Kasa command executor.

Runs the python-kasa CLI against a single smart plug.  Every call is one
process launch of the shape:

    uv run kasa --host <ip> --username <user> --password <pass> <args...>

executed from the python-kasa checkout directory.  The process exit status
decides success; stderr is carried back on failure.  There are no retries.
"""

import asyncio
import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MASK = "[MASKED]"

# Argument tokens containing any of these (case-insensitive) never hit the log
_SENSITIVE_MARKERS = ("username", "password")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CommandError(Exception):
    """Base class for a failed kasa invocation."""


class InvocationError(CommandError):
    """The kasa CLI could not be started at all."""


class CommandFailed(CommandError):
    """The kasa CLI ran and exited with a non-zero status."""

    def __init__(self, returncode: int, stderr: str) -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed (exit {returncode}): {stderr.strip()}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeviceCredentials:
    """Connection details for the plug, loaded once at startup."""
    host: str
    username: str
    password: str = field(repr=False)
    workdir: str


def mask_args(args: Sequence[str]) -> list[str]:
    """Replace every credential-looking token with MASK."""
    masked = []
    for arg in args:
        lowered = arg.lower()
        if any(marker in lowered for marker in _SENSITIVE_MARKERS):
            masked.append(MASK)
        else:
            masked.append(arg)
    return masked


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class KasaExecutor:
    """
    Launches the kasa CLI with fixed credentials.

    Calls are independent: concurrent callers each get their own process and
    nothing serialises them against the device.
    """

    def __init__(
        self,
        credentials: DeviceCredentials,
        command: Sequence[str] = ("uv", "run", "kasa"),
    ) -> None:
        self._creds = credentials
        self._command = tuple(command)

    def build_argv(self, args: Sequence[str]) -> list[str]:
        return [
            *self._command,
            "--host", self._creds.host,
            "--username", self._creds.username,
            "--password", self._creds.password,
            *args,
        ]

    def _run(self, argv: list[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            argv,
            cwd=self._creds.workdir,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
        )

    async def execute(self, args: Sequence[str]) -> None:
        """
        Run one kasa command.

        Raises:
            InvocationError: the CLI could not be launched
            CommandFailed: the CLI exited with a non-zero status
        """
        logger.info("Executing kasa command with args: %s", mask_args(args))
        argv = self.build_argv(args)

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._run, argv)
        except OSError as exc:
            logger.error("Failed to execute kasa command: %s", exc)
            raise InvocationError(f"Failed to execute kasa command: {exc}") from exc

        logger.info("Kasa command stdout: %s", result.stdout)
        if result.stderr:
            logger.error("Kasa command stderr: %s", result.stderr)

        if result.returncode != 0:
            raise CommandFailed(result.returncode, result.stderr)
