"""
EDIFACT Decoding Module

Decoding of the PAXLST/PNRGOV subset of UN/EDIFACT used by the
reconciliation engine.

Main components:
- separators: UNA/UNB separator resolution
- segments: Segment, element and component splitting
- scanner: Message boundary scanning in application logs
- multipart: Multipart grouping and merging
- validator: Envelope and SRC/RCI structure checks

Usage:
    from src.edifact import resolve_separators, split_segments, MessageBoundaryScanner

    separators = resolve_separators(text)
    segments = split_segments(text, separators)

    for message in MessageBoundaryScanner().scan(log_text):
        print(message.marker, message.line_number)
"""

from src.edifact.separators import Separators, DEFAULT_SEPARATORS, resolve_separators
from src.edifact.segments import split_segments, split_elements, split_components, join_segments
from src.edifact.scanner import MessageBoundaryScanner, MarkerRule, RawMessage, DEFAULT_MARKER_RULES
from src.edifact.multipart import MultipartAnalyzer, MessageMerger, MultipartGroup, ScopedTempFile
from src.edifact.validator import StructuralValidator

__all__ = [
    "Separators",
    "DEFAULT_SEPARATORS",
    "resolve_separators",
    "split_segments",
    "split_elements",
    "split_components",
    "join_segments",
    "MessageBoundaryScanner",
    "MarkerRule",
    "RawMessage",
    "DEFAULT_MARKER_RULES",
    "MultipartAnalyzer",
    "MessageMerger",
    "MultipartGroup",
    "ScopedTempFile",
    "StructuralValidator",
]

__version__ = "1.0.0"
