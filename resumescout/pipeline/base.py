from __future__ import annotations

import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .results import ErrorRecord

MAX_ERRORS = 20


class BaseExtractor:
    """Common base for extractors: bounded diagnostic error log.

    - Keeps the most recent ``MAX_ERRORS`` records, oldest evicted first
    - Best-effort: recording never raises to the caller
    - Purely diagnostic: nothing in the pipeline reads it for decisions
    """

    def __init__(self) -> None:
        self._errors: Deque[ErrorRecord] = deque(maxlen=MAX_ERRORS)

    def extract(self, page, context: Optional[Dict[str, Any]] = None):
        raise NotImplementedError("extract() must be implemented by subclass")

    def validate(self, data) -> bool:
        return data is not None

    def add_error(self, error: Any, context: Optional[Dict[str, Any]] = None) -> None:
        try:
            message = str(error) if not isinstance(error, BaseException) else (str(error) or type(error).__name__)
            self._errors.append(
                ErrorRecord(
                    message=message,
                    context=dict(context or {}),
                    timestamp_ms=int(time.time() * 1000),
                )
            )
        except Exception:
            # Never propagate diagnostics errors
            pass

    def get_errors(self) -> List[ErrorRecord]:
        return list(self._errors)

    def clear_errors(self) -> None:
        self._errors.clear()
