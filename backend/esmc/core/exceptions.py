"""
Error types raised across the checkpoint, ledger, synthesizer and packaging code
"""
from typing import Any, Dict, Optional


class ESMCError(Exception):
    """Base error carrying a message and optional structured details"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        payload: Dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SynthesisInputError(ESMCError, ValueError):
    """An intelligence fragment could not be parsed"""


class LedgerError(ESMCError):
    """The lessons ledger could not be read or written"""


class IntegrityError(ESMCError):
    """Package manifest or signature is missing or unreadable"""
