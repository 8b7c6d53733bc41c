"""Error taxonomy for a sync run.

Every error raised by the engine derives from ``SyncError`` and is fatal to
the run: the checkpoint is only advanced when no error escaped.

- ``TransportError``  -- a call to the source repository failed.
- ``NotFoundError``   -- the requested path does not exist (HTTP 404).
- ``ValidationError`` -- the fetched snapshot violates naming or reference
  rules; carries every problem found in one pass.
- ``NamingError``     -- a single path failed classification.
- ``ApplyError``      -- a destination write failed.
- ``CheckpointError`` -- the checkpoint store could not be read or updated.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync run failures."""


class TransportError(SyncError):
    """A source-control request failed (status, network error, timeout).

    Attributes:
        operation: Short description of the request (e.g. ``"list diff"``).
        status_code: HTTP status code, or ``None`` for network failures.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        detail = f"{operation} failed: {message}"
        if status_code is not None:
            detail = f"{operation} failed (HTTP {status_code}): {message}"
        super().__init__(detail)


class NotFoundError(TransportError):
    """The repository has no item at the requested path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            "get content", f"path not found: {path}", status_code=404
        )


class ValidationError(SyncError):
    """The snapshot cannot be applied.

    Attributes:
        problems: One human-readable line per offending path or reference.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        lines = [f"{len(self.problems)} validation problem(s):"]
        lines.extend(f"  {p}" for p in self.problems)
        super().__init__("\n".join(lines))


class NamingError(ValidationError):
    """A repository path does not follow the content naming convention."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__([f"{path}: {reason}"])


class ApplyError(SyncError):
    """A write to a destination failed.

    Attributes:
        destination: ``"relational"``, ``"document"`` or ``"blob"``.
        key: Path or key of the record being written.
    """

    def __init__(self, destination: str, key: str, cause: Exception) -> None:
        self.destination = destination
        self.key = key
        self.cause = cause
        super().__init__(
            f"{destination} write failed for {key}: "
            f"{type(cause).__name__}: {cause}"
        )


class CheckpointError(SyncError):
    """Reading or advancing the stored checkpoint failed.

    Attributes:
        operation: ``"read checkpoint"`` or ``"commit checkpoint"``.
    """

    def __init__(self, operation: str, cause: Exception) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"{operation} failed: {type(cause).__name__}: {cause}"
        )
