"""Error kinds and process exit codes."""

from enum import IntEnum
from pathlib import Path


class ExitCode(IntEnum):
    """Process exit statuses."""

    OK = 0
    FAILURE = 1
    USAGE = 2
    NOT_FOUND = 3
    CONFLICT = 4
    INTERRUPTED = 130


class PplacesError(Exception):
    """Base class for errors reported to the user."""

    exit_code: int = ExitCode.FAILURE


class ConfigError(PplacesError):
    """Configuration file missing or invalid."""

    exit_code = ExitCode.USAGE


class PathNotFound(PplacesError):
    """A path given on the command line does not exist."""

    exit_code = ExitCode.NOT_FOUND


class NotARepository(PplacesError):
    """An operation required a git repository where there is none."""

    exit_code = ExitCode.NOT_FOUND

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Not a git repository: {self.path}")


class CorruptRepository(PplacesError):
    """Git metadata is present but cannot be read."""


class AlreadyExists(PplacesError):
    """A clone target already holds the repository."""

    exit_code = ExitCode.CONFLICT

    def __init__(self, path: Path | str, message: str | None = None):
        self.path = Path(path)
        super().__init__(message or f"Repository already exists: {self.path}")


class ExternalOperationFailed(PplacesError):
    """The git client or hosting API reported a failure.

    ``returncode`` is the delegate's exit status when it had one, and becomes
    the process exit status. A child killed by a signal maps to 128 + signal.
    """

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    @property
    def exit_code(self) -> int:
        if not self.returncode:
            return ExitCode.FAILURE
        if self.returncode < 0:
            # Killed by signal N, reported the way a shell does
            return 128 - self.returncode
        return self.returncode
