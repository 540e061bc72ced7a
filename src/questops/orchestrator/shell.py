"""Shell command execution for the deployment pipeline."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Protocol

from questops.errors import CommandError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 600


class CommandRunner(Protocol):
    """Runs platform CLIs and build tools."""

    def run(
        self,
        command: str,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
    ) -> str:
        """Run to completion and return stdout; raise CommandError on non-zero exit."""
        ...

    def start(
        self,
        command: str,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.Popen:
        """Start a long-running process (e.g. a server under test)."""
        ...


class LocalCommandRunner:
    """Executes commands locally through the shell."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else None

    def _cwd(self, cwd: str | Path | None) -> Path | None:
        if cwd is None:
            return self._base_dir
        p = Path(cwd)
        if self._base_dir and not p.is_absolute():
            return self._base_dir / p
        return p

    @staticmethod
    def _env(env: dict[str, str] | None) -> dict[str, str] | None:
        if env is None:
            return None
        return {**os.environ, **env}

    def run(
        self,
        command: str,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
    ) -> str:
        workdir = self._cwd(cwd)
        logger.debug("run: %s", command, extra={"cwd": str(workdir) if workdir else None})
        try:
            res = subprocess.run(
                command,
                shell=True,
                cwd=workdir,
                env=self._env(env),
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandError(command, -1, f"timed out after {timeout}s") from e
        except OSError as e:
            raise CommandError(command, -1, str(e)) from e
        if res.returncode != 0:
            raise CommandError(command, res.returncode, (res.stdout or "") + (res.stderr or ""))
        return res.stdout

    def start(
        self,
        command: str,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.Popen:
        workdir = self._cwd(cwd)
        logger.debug("start: %s", command, extra={"cwd": str(workdir) if workdir else None})
        return subprocess.Popen(
            command,
            shell=True,
            cwd=workdir,
            env=self._env(env),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )


def stop_process(process: subprocess.Popen, timeout: float = 5.0) -> None:
    """Terminate a started process, killing it if it does not exit in time."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
