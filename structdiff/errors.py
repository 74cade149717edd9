"""
structdiff.errors — Exception hierarchy.

    StructDiffError
      ├── UsageError   an extension point was called outside its contract
      └── PatchError   a Change's path does not resolve against a target

Comparison and cloning never raise for values they cannot classify; such
values are treated as opaque scalars (see structdiff.kinds).
"""

from typing import Any, Optional


class StructDiffError(Exception):
    """Base class for every error raised by structdiff."""


class UsageError(StructDiffError):
    """An internal-only extension point was invoked incorrectly."""


class PatchError(StructDiffError):
    """
    A Change could not be applied to the given target.

    The target is left untouched when this is raised.
    """

    def __init__(self, message: str, path: tuple = (), segment_index: Optional[int] = None,
                 cause: Any = None):
        super().__init__(message)
        self.path = path
        self.segment_index = segment_index
        self.cause = cause

    def __str__(self) -> str:
        msg = super().__str__()
        if self.segment_index is None:
            return msg
        return f"{msg} (at path segment {self.segment_index})"
