from __future__ import annotations

"""Engine exception classes.

Every failure the extraction/merge engine can report derives from
:class:`L10nError`.  Per-document and per-unit failures are normally caught by
the engine and recorded in a report (see :mod:`dita_l10n.core.models`) so that
one bad document never aborts a multi-document batch; the exceptions only
propagate to callers for whole-job failures such as an unreadable root map.
"""

from pathlib import Path
from typing import Optional, Union

__all__ = [
    "L10nError",
    "InputError",
    "StructuralMismatchError",
    "MissingTargetError",
    "ReconciliationConflictError",
]


class L10nError(Exception):
    """Base exception for all engine errors.

    Carries the offending file (when known) and the underlying exception so
    that reports and logs can point at the source of the problem.
    """

    kind = "error"

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else None
        self.cause = cause

    def __str__(self) -> str:
        if self.path:
            return f"[{self.path}] {super().__str__()}"
        return super().__str__()


class InputError(L10nError):
    """Raised for missing/unreadable sources and malformed map, topic, DITAVAL or XLIFF markup."""

    kind = "input"


class StructuralMismatchError(L10nError):
    """Raised when a translation unit cannot be placed back into its document.

    This covers a segment marker that no longer exists in the skeleton and a
    target whose inline codes do not match the codes of its source.
    """

    kind = "structure"

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 unit_id: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> None:
        super().__init__(message, path, cause)
        self.unit_id = unit_id


class MissingTargetError(L10nError):
    """Raised in strict mode for a translation unit without a target."""

    kind = "missing-target"

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 unit_id: Optional[str] = None) -> None:
        super().__init__(message, path)
        self.unit_id = unit_id


class ReconciliationConflictError(L10nError):
    """Raised when two merges disagree on a non-profiling attribute of one reference."""

    kind = "conflict"

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None,
                 attribute: Optional[str] = None,
                 existing: Optional[str] = None,
                 incoming: Optional[str] = None) -> None:
        super().__init__(message, path)
        self.attribute = attribute
        self.existing = existing
        self.incoming = incoming
