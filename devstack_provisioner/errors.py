from __future__ import annotations


class FatalError(RuntimeError):
    """Aborts the whole run. Carries the process exit code to propagate."""

    def __init__(self, message: str, *, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code or 1


class PreconditionError(FatalError):
    pass


class SessionRefusedError(FatalError):
    pass


class StageError(RuntimeError):
    """A stage could not reach its end state (recorded as FAILED, siblings continue)."""
