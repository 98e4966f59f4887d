"""Synchronous and asynchronous helper program invocation."""

import logging
import os
import subprocess

import psutil

from ..core.exceptions import ProbeError
from .protocol import INVALID_PID

logger = logging.getLogger(__name__)


class HelperRunner:
    """Runs a helper synchronously for a discovery or capability verb.

    No timeout is applied; a helper that never exits blocks the caller.
    """

    def run(self, helper: str, args: list[str]) -> str:
        """
        Run a helper and return its standard output.

        Args:
            helper: Path to the helper executable
            args: Protocol arguments

        Returns:
            Captured stdout

        Raises:
            ProbeError: if the helper cannot start or exits nonzero
        """
        helper = os.path.abspath(helper)
        cmd = [helper, *args]
        cwd = os.path.dirname(helper)
        logger.debug("Running helper: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise ProbeError(helper, str(e)) from e

        if result.stderr:
            logger.debug("Helper %s stderr: %s", helper, result.stderr.strip())

        if result.returncode != 0:
            raise ProbeError(helper, f"exited with status {result.returncode}")

        return result.stdout


class ProcessLauncher:
    """Starts long-running capture helpers and tracks their process handles.

    Helpers are never signaled. Releasing a handle drops it from the
    tracked set; the helper is expected to exit once its channel goes away.
    Released helpers that are still alive are polled on later calls until
    they exit, so no child is left unreaped.
    """

    def __init__(self) -> None:
        self._processes: dict[int, subprocess.Popen] = {}
        self._released: list[subprocess.Popen] = []

    def spawn(self, argv: list[str]) -> int:
        """Start a helper without waiting for it. Returns its pid or INVALID_PID."""
        self._reap()
        logger.debug("Spawning helper: %s", " ".join(argv))

        try:
            process = subprocess.Popen(argv, stdin=subprocess.DEVNULL)
        except (OSError, ValueError) as e:
            logger.warning("Failed to spawn %s: %s", argv[0] if argv else "<empty>", e)
            return INVALID_PID

        self._processes[process.pid] = process
        return process.pid

    def release(self, pid: int) -> bool:
        """Drop the handle for pid without waiting for the helper to exit."""
        self._reap()
        if pid == INVALID_PID:
            return False

        process = self._processes.pop(pid, None)
        if process is None:
            return False

        returncode = process.poll()
        if returncode is None:
            logger.debug("Helper PID %d still running after release", pid)
            self._released.append(process)
        else:
            logger.debug("Helper PID %d exited with status %d", pid, returncode)
        return True

    def is_running(self, pid: int) -> bool:
        """Check whether a helper process is alive."""
        self._reap()
        if pid == INVALID_PID:
            return False

        process = self._processes.get(pid)
        if process is not None and process.poll() is not None:
            return False

        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return True

    def _reap(self) -> None:
        """Poll released helpers and forget the ones that have exited."""
        alive = []
        for process in self._released:
            returncode = process.poll()
            if returncode is None:
                alive.append(process)
            else:
                logger.debug("Released helper PID %d exited with status %d", process.pid, returncode)
        self._released = alive

    @property
    def pids(self) -> list[int]:
        return list(self._processes)

    @property
    def released_pids(self) -> list[int]:
        """Pids released while still running and not yet reaped."""
        return [process.pid for process in self._released]
