from __future__ import annotations

from typing import List, Optional


class WWHAMError(Exception):
    """Base class for triage engine errors."""


class DatasetUnavailable(WWHAMError):
    def __init__(self, message: str = "Data not loaded", *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class UnresolvedCondition(WWHAMError):
    def __init__(self, text_length: int, candidates: List[str]):
        super().__init__(f"could not resolve condition from {text_length} chars of text")
        self.candidates = candidates


class InvalidSlotAnswer(WWHAMError):
    def __init__(self, slot: str, message: str):
        super().__init__(f"{slot}: {message}")
        self.slot = slot
        self.message = message
