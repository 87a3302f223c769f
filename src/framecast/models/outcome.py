"""
Decode Outcomes
===============

Tagged result of a single decode attempt.

Every call into the decoder adapter resolves to exactly one
DecodeOutcome. Failures are values, not exceptions, so the pacing
controller can feed them straight into the failure policy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from framecast.models.frame import PixelFrame


class OutcomeKind(str, Enum):
    """
    Classification of a decode attempt.

    Attributes:
        SUCCESS: A complete frame was decoded
        EMPTY_OUTPUT: The decoder exited cleanly but wrote no bytes
        SIZE_MISMATCH: Byte count differs from width*height*3
        TIMEOUT: The decode did not finish within its deadline
        SUBPROCESS_ERROR: Non-zero exit, stream error, or launch failure
        SOURCE_NOT_FOUND: The source path or URL does not exist
    """

    SUCCESS = "SUCCESS"
    EMPTY_OUTPUT = "EMPTY_OUTPUT"
    SIZE_MISMATCH = "SIZE_MISMATCH"
    TIMEOUT = "TIMEOUT"
    SUBPROCESS_ERROR = "SUBPROCESS_ERROR"
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"


@dataclass(frozen=True, slots=True)
class DecodeOutcome:
    """
    Result of one decode attempt.

    Attributes:
        kind: Outcome classification
        frame: Decoded frame (SUCCESS only)
        actual_bytes: Bytes received (SIZE_MISMATCH only)
        partial: Truncated best-effort frame (SIZE_MISMATCH only, never published)
        message: Diagnostic text for failures
    """

    kind: OutcomeKind
    frame: Optional[PixelFrame] = None
    actual_bytes: Optional[int] = None
    partial: Optional[PixelFrame] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls, frame: PixelFrame) -> "DecodeOutcome":
        return cls(kind=OutcomeKind.SUCCESS, frame=frame)

    @classmethod
    def empty_output(cls, message: str = "") -> "DecodeOutcome":
        return cls(kind=OutcomeKind.EMPTY_OUTPUT, message=message)

    @classmethod
    def size_mismatch(
        cls,
        actual_bytes: int,
        partial: Optional[PixelFrame] = None,
        message: str = "",
    ) -> "DecodeOutcome":
        return cls(
            kind=OutcomeKind.SIZE_MISMATCH,
            actual_bytes=actual_bytes,
            partial=partial,
            message=message,
        )

    @classmethod
    def timeout(cls, message: str = "") -> "DecodeOutcome":
        return cls(kind=OutcomeKind.TIMEOUT, message=message)

    @classmethod
    def subprocess_error(cls, message: str) -> "DecodeOutcome":
        return cls(kind=OutcomeKind.SUBPROCESS_ERROR, message=message)

    @classmethod
    def source_not_found(cls, message: str = "") -> "DecodeOutcome":
        return cls(kind=OutcomeKind.SOURCE_NOT_FOUND, message=message)

    def __repr__(self) -> str:
        if self.ok:
            return f"DecodeOutcome(SUCCESS, {self.frame!r})"
        detail = f", bytes={self.actual_bytes}" if self.actual_bytes is not None else ""
        return f"DecodeOutcome({self.kind.value}{detail})"
