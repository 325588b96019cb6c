"""
Error Types for PNRGOV/PAXLST Reconciliation

Fatal conditions that abort a comparison run. Non-fatal findings are never
raised; they travel as warnings on the comparison result.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Fatal error categories surfaced by a comparison run."""
    FOLDER_NOT_FOUND = "folder-not-found"
    NO_INPUT_FILES = "no-input-files"
    NO_OUTPUT_FILES = "no-output-files"
    MULTIPLE_OUTPUTS = "multiple-outputs"
    UNB_MISSING = "unb-missing"
    UNZ_MISSING = "unz-missing"
    ICR_MISMATCH = "icr-mismatch"


class ComparisonError(Exception):
    """Raised when a comparison run cannot continue."""

    def __init__(self, kind: ErrorKind, message: str, source: Optional[str] = None):
        """
        Initialize comparison error.

        Args:
            kind: Error category
            message: Human-readable description
            source: Folder, file or message label the error refers to
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.source = source

    def to_dict(self) -> dict:
        """Serialize error for JSON output."""
        return {
            "error": self.kind.value,
            "message": self.message,
            "source": self.source,
        }


class OperationCancelled(Exception):
    """Raised when a caller cancels a running comparison."""
    pass
