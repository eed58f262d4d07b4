"""Git transport used to populate the repository cache."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from ..errors import PermanentCloneError, TransientCloneError
from ..logging import get_logger

_PERMANENT_MARKERS = (
    "repository not found",
    "not found",
    "authentication failed",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "terminal prompts disabled",
    "permission denied",
    "does not appear to be a git repository",
    "does not exist",
)

_TRANSIENT_MARKERS = (
    "could not resolve host",
    "failed to connect",
    "could not connect to server",
    "connection timed out",
    "connection reset",
    "connection refused",
    "operation timed out",
    "early eof",
    "rpc failed",
    "the remote end hung up unexpectedly",
    "unexpected disconnect",
    "tls connection was non-properly terminated",
    "ssl_error_syscall",
    "gnutls_handshake",
    "http/2 stream",
    "internal server error",
    "error: 502",
    "error: 503",
    "error: 504",
)


class Transport(Protocol):
    """Anything able to place a working copy of `url` at `destination`."""

    def clone(self, url: str, destination: Path, *, depth: Optional[int] = 1) -> None:
        """Create `destination` as a checkout of `url` or raise a TransportError."""


def classify_clone_failure(message: str) -> type[PermanentCloneError] | type[TransientCloneError]:
    """Decide whether a git error message is worth retrying."""
    lowered = message.lower()
    if any(marker in lowered for marker in _PERMANENT_MARKERS):
        return PermanentCloneError
    if any(marker in lowered for marker in _TRANSIENT_MARKERS):
        return TransientCloneError
    return PermanentCloneError


class GitTransport:
    """Clones repositories with the git command line client."""

    def __init__(
        self,
        runner: Callable[..., str] | None = None,
        *,
        executable: str = "git",
        timeout: Optional[float] = None,
    ) -> None:
        self._runner = runner or self._default_runner
        self.executable = executable
        self.timeout = timeout
        self.logger = get_logger("transport")

    def clone(self, url: str, destination: Path, *, depth: Optional[int] = 1) -> None:
        """Shallow-clone `url` into `destination`, which must not exist yet."""
        args = [self.executable, "clone", "--quiet", "--no-tags"]
        if depth:
            args.extend(["--depth", str(depth)])
        args.extend([url, str(destination)])

        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"

        self.logger.debug("Running %s", " ".join(args))
        try:
            self._run(args, cwd=destination.parent, env=env)
        except FileNotFoundError as exc:
            raise PermanentCloneError(f"'{self.executable}' executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise TransientCloneError(f"clone timed out after {exc.timeout:g}s") from exc
        except subprocess.CalledProcessError as exc:
            message = (exc.stderr or exc.stdout or "").strip() or f"git exited with status {exc.returncode}"
            error_type = classify_clone_failure(message)
            raise error_type(_last_line(message)) from exc

    # ------------------------------------------------------------------
    # Helpers

    def _run(self, args: Iterable[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
        return self._runner(args, cwd=cwd, env=env, timeout=self.timeout)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        timeout: Optional[float] = None,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=True,
            timeout=timeout,
        )
        return completed.stdout


def _last_line(message: str) -> str:
    lines = [line.strip() for line in message.splitlines() if line.strip()]
    return lines[-1] if lines else message


__all__ = ["GitTransport", "Transport", "classify_clone_failure"]
