"""
Bounded execution of external tools and git.

Every analyzer and git call goes through :func:`run_safe`. Commands are
argument lists, never shell strings. Each call has a deadline, and a process
that misses it is killed together with everything it spawned.
"""
import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from .log_utils import scrub

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300
# Exit codes a shell would report for these spawn failures
NOT_FOUND_EXIT = 127
NOT_EXECUTABLE_EXIT = 126
PARTIAL_OUTPUT_CHARS = 1000


class ProcessRunError(Exception):
    """Base for failures raised by :func:`run_safe`."""

    def __init__(self, message: str, cmd: List[str]):
        super().__init__(message)
        self.cmd = cmd


class SubprocessTimeout(ProcessRunError):
    """The process missed its deadline and was killed."""

    def __init__(self, message: str, cmd: List[str], timeout: int, partial_output: str = ""):
        super().__init__(message, cmd)
        self.timeout = timeout
        self.partial_output = partial_output


class SubprocessError(ProcessRunError):
    """The process exited non-zero and the caller asked for ``check``."""

    def __init__(self, message: str, cmd: List[str], returncode: int, stderr: str = ""):
        super().__init__(message, cmd)
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class SafeProcessResult:
    args: List[str]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def _text(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _spawn_failure(cmd: List[str], returncode: int, reason: str) -> SafeProcessResult:
    return SafeProcessResult(args=cmd, returncode=returncode, stdout="", stderr=f"{reason}: {cmd[0]}")


def _kill_process_tree(process: subprocess.Popen) -> None:
    """SIGKILL the process group on POSIX, ``taskkill /T`` on Windows."""
    try:
        if os.name == "nt":
            subprocess.run(["taskkill", "/F", "/T", "/PID", str(process.pid)],
                           capture_output=True, timeout=10)
            return
        os.killpg(os.getpgid(process.pid), signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.kill()
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Could not kill process tree %d: %s", process.pid, e)


def _drain_killed(process: subprocess.Popen) -> str:
    """Collect what a killed process wrote before it died."""
    try:
        stdout, _ = process.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait(timeout=5)
        return ""
    return _text(stdout)[:PARTIAL_OUTPUT_CHARS]


def run_safe(
    cmd: List[str],
    timeout: int = DEFAULT_TIMEOUT,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    check: bool = False,
) -> SafeProcessResult:
    """
    Run ``cmd`` to completion or until ``timeout`` seconds pass.

    stdin is closed, so a tool waiting for input fails instead of hanging.
    A missing executable is reported as return code 127 rather than raised,
    which lets adapters treat it as "tool not installed".

    Args:
        cmd: Program and arguments
        timeout: Deadline in seconds
        cwd: Working directory
        env: Extra environment variables, merged over the current environment
        check: Raise :class:`SubprocessError` on a non-zero exit

    Raises:
        SubprocessTimeout: The deadline passed; the process tree was killed
        SubprocessError: ``check`` was set and the exit code was non-zero
    """
    started = time.monotonic()
    options = {
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
        "stdin": subprocess.DEVNULL,
        "cwd": cwd,
        "env": {**os.environ, **(env or {})},
    }
    if os.name != "nt":
        # Own process group, so the whole tree can be killed at once
        options["start_new_session"] = True

    try:
        process = subprocess.Popen(cmd, **options)
    except FileNotFoundError:
        return _spawn_failure(cmd, NOT_FOUND_EXIT, "Command not found")
    except PermissionError:
        return _spawn_failure(cmd, NOT_EXECUTABLE_EXIT, "Permission denied")

    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("Killing %r after %ss", scrub(cmd[0]), timeout)
        _kill_process_tree(process)
        raise SubprocessTimeout(
            f"Command timed out after {timeout}s: {cmd[0]}",
            cmd=cmd,
            timeout=timeout,
            partial_output=_drain_killed(process),
        )
    except BaseException:
        _kill_process_tree(process)
        process.wait(timeout=5)
        raise

    result = SafeProcessResult(
        args=cmd,
        returncode=process.returncode,
        stdout=_text(stdout),
        stderr=_text(stderr),
        duration_seconds=time.monotonic() - started,
    )
    if check and not result.ok:
        raise SubprocessError(
            f"Command failed with exit code {result.returncode}: {cmd[0]}",
            cmd=cmd,
            returncode=result.returncode,
            stderr=result.stderr[:PARTIAL_OUTPUT_CHARS],
        )
    return result
