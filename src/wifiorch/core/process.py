"""Safe execution of native WiFi tools.

Every command runs as an argument list through
``asyncio.create_subprocess_exec``; nothing is ever passed to a shell, so
SSIDs and passwords cannot inject commands.
"""

import asyncio
import logging
import shutil

from .errors import (
    CommandError,
    CommandNotFoundError,
    CommandTimeoutError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

PERMISSION_MARKERS = (
    "permission denied",
    "not authorized",
    "not permitted",
    "insufficient privileges",
    "access is denied",
    "requires elevation",
)


def redact(cmd: tuple[str, ...]) -> tuple[str, ...]:
    """Mask the value following a password argument."""
    masked = list(cmd)
    for i, arg in enumerate(masked[:-1]):
        if arg in ("password", "psk", "wifi-sec.psk", "key"):
            masked[i + 1] = "***"
        elif arg == "-setairportnetwork" and len(masked) > i + 3:
            masked[i + 3] = "***"
    return tuple(masked)


def looks_like_permission_error(text: str) -> bool:
    """Whether tool output reports missing privileges."""
    lowered = text.lower()
    return any(marker in lowered for marker in PERMISSION_MARKERS)


class CommandRunner:
    """Runs native tools asynchronously with a timeout.

    Adapters receive a runner by injection; tests substitute one that
    returns canned output.

    Usage:
        runner = CommandRunner(timeout=30.0)
        output = await runner.run("nmcli", "-t", "device", "status")
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    def which(self, program: str) -> str | None:
        """Resolve ``program`` on PATH."""
        return shutil.which(program)

    async def run(
        self,
        *cmd: str,
        check: bool = True,
        timeout: float | None = None,
    ) -> str:
        """Run a command and return its stdout.

        Args:
            *cmd: Program followed by its arguments
            check: Raise on non-zero exit
            timeout: Command timeout in seconds (default: runner timeout)

        Returns:
            Decoded, stripped stdout

        Raises:
            CommandNotFoundError: The program is not installed
            CommandTimeoutError: The program did not finish in time
            PermissionDeniedError: The program reported missing privileges
            CommandError: Any other non-zero exit when ``check`` is set
        """
        timeout = self.timeout if timeout is None else timeout
        shown = redact(cmd)
        logger.debug("Running: %s", " ".join(shown))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(
                f"{cmd[0]} not found", details={"command": cmd[0]}, cause=e
            ) from e
        except PermissionError as e:
            raise PermissionDeniedError(
                f"Not allowed to run {cmd[0]}", details={"command": cmd[0]}, cause=e
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandTimeoutError(
                f"{cmd[0]} timed out", details={"args": shown[1:], "timeout": timeout}
            )
        except asyncio.CancelledError:
            proc.kill()
            await asyncio.shield(proc.wait())
            raise

        out = stdout.decode(errors="replace").strip() if stdout else ""
        err = stderr.decode(errors="replace").strip() if stderr else ""

        if proc.returncode != 0:
            if looks_like_permission_error(err) or looks_like_permission_error(out):
                raise PermissionDeniedError(
                    f"{cmd[0]} refused: {err or out}",
                    details={"args": shown[1:], "returncode": proc.returncode},
                )
            if check:
                raise CommandError(
                    f"{cmd[0]} failed: {err or out or 'Unknown error'}",
                    details={"args": shown[1:], "returncode": proc.returncode},
                )

        return out
