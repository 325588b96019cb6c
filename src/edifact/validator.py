"""
Structural Validator for PNRGOV Messages

Checks the interchange envelope (UNB/UNZ presence and interchange control
reference agreement) and the SRC/RCI structure of PNR blocks. Envelope
violations are fatal; everything else is reported as warnings.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from src.edifact.separators import Separators, DEFAULT_SEPARATORS
from src.edifact.segments import get_value, segment_tag, split_components, split_elements, unescape
from src.utils.errors import ComparisonError, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_RCI_LOOKAHEAD = 10
MAX_COMPANY_ID_LENGTH = 3
MAX_RESERVATION_NUMBER_LENGTH = 20


@dataclass(frozen=True)
class RciInfo:
    """Decoded reservation control information."""
    company_id: Optional[str]
    reservation_number: Optional[str]


@dataclass(frozen=True)
class EnvelopeInfo:
    """Interchange control references read from UNB and UNZ."""
    header_reference: Optional[str]
    trailer_reference: Optional[str]

    @property
    def references_match(self) -> bool:
        return self.header_reference == self.trailer_reference


def parse_rci(segment: str, separators: Separators = DEFAULT_SEPARATORS) -> Optional[RciInfo]:
    """
    Decode an RCI segment (RCI+<company>:<reservation number>...).

    Returns:
        RciInfo, or None when the segment has no data element
    """
    elements = split_elements(segment, separators)
    if len(elements) < 2:
        return None

    components = [unescape(c, separators).strip() for c in split_components(elements[1], separators)]
    company_id = components[0] if components and components[0] else None
    reservation_number = components[1] if len(components) > 1 and components[1] else None
    return RciInfo(company_id, reservation_number)


class StructuralValidator:
    """
    Validates EDIFACT envelope and PNR block structure.

    Holds no state between calls; every call returns its own warning list.
    """

    def __init__(self, strict: bool = False, rci_lookahead: int = DEFAULT_RCI_LOOKAHEAD):
        """
        Initialize the validator.

        Args:
            strict: Treat an interchange control reference mismatch as fatal
            rci_lookahead: Number of segments after an SRC searched for its RCI
        """
        self.strict = strict
        self.rci_lookahead = rci_lookahead
        logger.debug(f"Initialized StructuralValidator (strict={strict})")

    def read_envelope(self, segments: Sequence[str], separators: Separators, label: str) -> EnvelopeInfo:
        """
        Locate the first UNB and the last UNZ and read their references.

        Raises:
            ComparisonError: UNB_MISSING or UNZ_MISSING
        """
        unb = next((s for s in segments if segment_tag(s, separators) == "UNB"), None)
        if unb is None:
            logger.error(f"UNB segment not found in {label}")
            raise ComparisonError(ErrorKind.UNB_MISSING, f"UNB segment not found in {label}", label)

        unz = next((s for s in reversed(segments) if segment_tag(s, separators) == "UNZ"), None)
        if unz is None:
            logger.error(f"UNZ segment not found in {label}")
            raise ComparisonError(ErrorKind.UNZ_MISSING, f"UNZ segment not found in {label}", label)

        return EnvelopeInfo(
            header_reference=get_value(unb, 5, 0, separators),
            trailer_reference=get_value(unz, 2, 0, separators),
        )

    def validate_envelope(self, segments: Sequence[str], separators: Separators, label: str) -> List[str]:
        """
        Validate the interchange envelope of one message.

        Args:
            segments: Message segments
            separators: Separators of the message
            label: Source label used in messages

        Returns:
            Warnings (reference mismatch in lenient mode)

        Raises:
            ComparisonError: Missing UNB/UNZ, or reference mismatch in strict mode
        """
        envelope = self.read_envelope(segments, separators, label)
        warnings: List[str] = []

        if envelope.header_reference is None or envelope.trailer_reference is None:
            warnings.append(f"Could not read interchange control reference from UNB/UNZ in {label}")
        elif not envelope.references_match:
            message = (
                f"Interchange control reference mismatch in {label}: "
                f"UNB({envelope.header_reference}) vs UNZ({envelope.trailer_reference})"
            )
            if self.strict:
                logger.error(message)
                raise ComparisonError(ErrorKind.ICR_MISMATCH, message, label)
            warnings.append(message)

        for warning in warnings:
            logger.warning(warning)
        return warnings

    def validate_pnr_structure(
        self,
        segments: Sequence[str],
        separators: Separators,
        label: str,
        segment_sources: Optional[Sequence[str]] = None
    ) -> List[str]:
        """
        Check SRC/RCI pairing and RCI field formats.

        Positions in warnings are 1-based indexes into `segments`.

        Args:
            segments: Message segments
            separators: Separators of the message
            label: Source label used when no per-segment source is known
            segment_sources: Per-segment source labels of a merged message

        Returns:
            Warnings in order of observation
        """
        warnings: List[str] = []
        tags = [segment_tag(segment, separators) for segment in segments]

        def source_at(index: int) -> str:
            if segment_sources is not None and index < len(segment_sources):
                return segment_sources[index]
            return label

        if "SRC" not in tags:
            warnings.append(f"No SRC segments found in {label}")
        if "RCI" not in tags:
            warnings.append(f"No RCI segments found in {label}")

        for index, tag in enumerate(tags):
            if tag != "SRC":
                continue

            found = False
            for ahead in range(index + 1, min(len(tags), index + 1 + self.rci_lookahead)):
                if tags[ahead] == "SRC":
                    break
                if tags[ahead] == "RCI":
                    found = True
                    break

            if not found:
                warnings.append(
                    f"Missing Mandatory RCI segment after SRC at position {index + 1} "
                    f"in {source_at(index)}"
                )

        for index, tag in enumerate(tags):
            if tag == "RCI":
                warnings.extend(self.validate_rci(segments[index], separators, index + 1, source_at(index)))

        for warning in warnings:
            logger.warning(warning)
        return warnings

    def validate_rci(self, segment: str, separators: Separators, position: int, source: str) -> List[str]:
        """
        Check the company identifier and reservation number of one RCI segment.

        Args:
            segment: RCI segment
            separators: Separators of the message
            position: 1-based segment position
            source: Source label of the segment

        Returns:
            Warnings for this segment
        """
        where = f"RCI segment at position {position} in {source}"
        info = parse_rci(segment, separators)
        if info is None:
            return [f"{where} has insufficient elements"]

        warnings = []
        company_id = info.company_id or ""
        if not (1 <= len(company_id) <= MAX_COMPANY_ID_LENGTH and company_id.isalnum()):
            warnings.append(
                f"Invalid company identifier '{company_id}' in {where} "
                f"(expected 1-{MAX_COMPANY_ID_LENGTH} alphanumeric characters)"
            )

        number = info.reservation_number
        if not number:
            warnings.append(f"Missing reservation control number in {where}")
        elif len(number) > MAX_RESERVATION_NUMBER_LENGTH or not number.isalnum():
            warnings.append(
                f"Invalid reservation control number '{number}' in {where} "
                f"(expected up to {MAX_RESERVATION_NUMBER_LENGTH} alphanumeric characters)"
            )

        return warnings
