from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Typed outcomes for every failure path in the scraping pipeline."""
    # Reveal level: recovered into an empty contact field
    TRIGGER_NOT_FOUND = "TriggerNotFound"
    CLICK_FAILED = "ClickFailed"
    REVEAL_TIMEOUT = "RevealTimeout"
    EXTRACTION_FAILED = "ExtractionFailed"
    EMPTY_VALUE = "EmptyValue"
    # Profile level: surfaced as a failed result, isolated per item
    NAVIGATION_TIMEOUT = "NavigationTimeout"
    PARSE_FAILURE = "ParseFailure"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    UNEXPECTED_EXCEPTION = "UnexpectedException"


@dataclass(frozen=True)
class ExtractionResult(Generic[T]):
    """Uniform envelope returned by every extraction operation.

    ``success=False`` implies ``data is None`` and ``error`` is populated.
    """
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    failure: Optional[FailureKind] = None
    request_time_ms: Optional[int] = None

    def __post_init__(self):
        if not self.success:
            if self.data is not None:
                raise ValueError("failed ExtractionResult must not carry data")
            if not self.error:
                raise ValueError("failed ExtractionResult requires an error message")

    @classmethod
    def ok(cls, data: T, request_time_ms: Optional[int] = None) -> "ExtractionResult[T]":
        return cls(success=True, data=data, request_time_ms=request_time_ms)

    @classmethod
    def fail(cls, failure: FailureKind, error: str, request_time_ms: Optional[int] = None) -> "ExtractionResult[T]":
        return cls(success=False, error=error, failure=failure, request_time_ms=request_time_ms)


@dataclass(frozen=True)
class ErrorRecord:
    message: str
    context: Dict[str, Any]
    timestamp_ms: int


@dataclass
class RunStats:
    """Per-run counters. ``processed == succeeded + failed`` after each item."""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"processed": self.processed, "succeeded": self.succeeded, "failed": self.failed}


@dataclass(frozen=True)
class ProfileEvent:
    url: str
    profile: Any
    index: int
    total: int


@dataclass(frozen=True)
class ErrorEvent:
    url: str
    error: str
    index: int
    failure: Optional[FailureKind] = field(default=None)
