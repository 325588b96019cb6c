"""
Multipart Message Analysis and Merging

Groups PNRGOV message parts by (message reference, identifier) taken from
their UNH segment, decides completeness, and merges the parts of a complete
group into one logical message with a synthesized UNT/UNZ trailer.
"""

import os
import logging
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from src.edifact.separators import Separators, resolve_separators
from src.edifact.segments import (
    get_value,
    is_envelope_segment,
    join_segments,
    segment_tag,
    split_components,
    split_elements,
    split_segments,
)

logger = logging.getLogger(__name__)

SYSTEM_SOURCE = "SYSTEM"
MESSAGE_EXTENSIONS = (".edi", ".txt", ".edifact")
FINAL_PART = "F"
CONTINUED_PART = "C"


@dataclass(frozen=True)
class CandidateMessage:
    """
    One decoded message offered to the comparison.

    Attributes:
        label: Display label (file name, suffixed "#n" for the n-th message of a log)
        path: File the message was read from
        text: Message text, UNA header included when known
    """
    label: str
    path: str
    text: str

    @property
    def separators(self) -> Separators:
        return resolve_separators(self.text)

    @property
    def source(self) -> str:
        """File-level source label: the file name without its message extension."""
        return file_source_label(self.path)


def file_source_label(path: str) -> str:
    """
    Source label of a file: its base name with a message extension removed.

    Every message read from one file shares this label, so repeats inside
    one log never look like they came from different files.
    """
    name = os.path.basename(path)
    for extension in MESSAGE_EXTENSIONS:
        if name.lower().endswith(extension):
            return name[:-len(extension)]
    return name


@dataclass(frozen=True)
class UnhHeader:
    """Fields of a UNH message header."""
    reference: str
    message_type: str
    identifier: Optional[str] = None
    part_number: Optional[int] = None
    indicator: Optional[str] = None

    @property
    def is_pnrgov_part(self) -> bool:
        return (
            self.message_type == "PNRGOV"
            and bool(self.identifier)
            and self.part_number is not None
        )


def parse_unh(text: str, separators: Optional[Separators] = None) -> Optional[UnhHeader]:
    """
    Parse the first UNH segment of a message.

    Layouts:
        UNH+<ref>+PNRGOV:<ver>...+<identifier>+<part>[:<C|F>]
        UNH+<ref>+PAXLST:D:05B:UN:IATA+<flightInfo>[+<part>[:<C|F>]]

    Args:
        text: Message text
        separators: Separators of the message (resolved when omitted)

    Returns:
        UnhHeader, or None when the message has no usable UNH segment
    """
    separators = separators or resolve_separators(text)

    for segment in split_segments(text, separators):
        if segment_tag(segment, separators) != "UNH":
            continue

        reference = get_value(segment, 1, 0, separators)
        message_type = get_value(segment, 2, 0, separators)
        if not reference or not message_type:
            return None

        elements = split_elements(segment, separators)
        identifier = None
        if len(elements) > 3 and elements[3].strip():
            identifier = elements[3].strip()

        part_number = None
        indicator = None
        if len(elements) > 4:
            components = split_components(elements[4], separators)
            if components[0].strip().isdigit():
                part_number = int(components[0].strip())
            if len(components) > 1 and components[1].strip() in (CONTINUED_PART, FINAL_PART):
                indicator = components[1].strip()

        return UnhHeader(reference, message_type, identifier, part_number, indicator)

    return None


@dataclass
class MultipartGroup:
    """Parts of one logical message, keyed by part number."""
    reference: str
    identifier: str
    parts: Dict[int, CandidateMessage] = field(default_factory=dict)
    indicators: Dict[int, Optional[str]] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.reference, self.identifier)

    @property
    def is_complete(self) -> bool:
        """True once any part carries the final-part indicator."""
        return FINAL_PART in self.indicators.values()

    @property
    def expected_parts(self) -> int:
        """Highest observed part number."""
        return max(self.parts) if self.parts else 0

    def missing_parts(self) -> List[int]:
        """Part numbers between 1 and expected_parts that were never seen."""
        return [number for number in range(1, self.expected_parts + 1) if number not in self.parts]

    @property
    def has_all_parts(self) -> bool:
        return self.is_complete and not self.missing_parts()

    def add_part(self, number: int, candidate: CandidateMessage, indicator: Optional[str]) -> bool:
        """
        Add a part to the group.

        Returns:
            False if the part number was already present (first one kept)
        """
        if number in self.parts:
            return False
        self.parts[number] = candidate
        self.indicators[number] = indicator
        return True

    def ordered_parts(self) -> List[CandidateMessage]:
        """Parts sorted ascending by part number."""
        return [self.parts[number] for number in sorted(self.parts)]


@dataclass
class MultipartAnalysis:
    """Outcome of grouping a set of candidate messages."""
    complete_groups: List[MultipartGroup] = field(default_factory=list)
    incomplete_groups: List[MultipartGroup] = field(default_factory=list)
    single_messages: List[CandidateMessage] = field(default_factory=list)
    invalid: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "complete_groups": [_group_summary(group) for group in self.complete_groups],
            "incomplete_groups": [_group_summary(group) for group in self.incomplete_groups],
            "single_messages": [candidate.label for candidate in self.single_messages],
            "invalid": [{"source": label, "reason": reason} for label, reason in self.invalid],
        }


def _group_summary(group: MultipartGroup) -> Dict[str, object]:
    return {
        "reference": group.reference,
        "identifier": group.identifier,
        "parts": {number: group.parts[number].label for number in sorted(group.parts)},
        "expected_parts": group.expected_parts,
        "missing_parts": group.missing_parts(),
        "is_complete": group.is_complete,
    }


class MultipartAnalyzer:
    """Groups candidate messages into multipart groups and single messages."""

    def __init__(self):
        logger.debug("Initialized MultipartAnalyzer")

    def analyze(
        self,
        candidates: List[CandidateMessage],
        unreadable: Optional[List[Tuple[str, str]]] = None
    ) -> MultipartAnalysis:
        """
        Group candidates by (message reference, identifier).

        An identifier already seen with a different reference makes the
        later candidate invalid.

        Args:
            candidates: Decoded messages, in discovery order
            unreadable: (label, reason) pairs for sources that failed to load

        Returns:
            MultipartAnalysis
        """
        analysis = MultipartAnalysis(invalid=list(unreadable or []))
        groups: Dict[Tuple[str, str], MultipartGroup] = {}
        reference_by_identifier: Dict[str, str] = {}

        for candidate in candidates:
            header = parse_unh(candidate.text, candidate.separators)
            if header is None or not header.is_pnrgov_part:
                analysis.single_messages.append(candidate)
                continue

            known_reference = reference_by_identifier.setdefault(header.identifier, header.reference)
            if known_reference != header.reference:
                reason = (
                    f"Message reference {header.reference} does not match reference "
                    f"{known_reference} already seen for identifier {header.identifier}"
                )
                logger.warning(f"{candidate.label}: {reason}")
                analysis.invalid.append((candidate.label, reason))
                continue

            key = (header.reference, header.identifier)
            group = groups.get(key)
            if group is None:
                group = MultipartGroup(header.reference, header.identifier)
                groups[key] = group

            if not group.add_part(header.part_number, candidate, header.indicator):
                logger.warning(
                    f"{candidate.label}: duplicate part {header.part_number} for "
                    f"{header.reference}/{header.identifier}, keeping {group.parts[header.part_number].label}"
                )

        for group in groups.values():
            if group.is_complete:
                analysis.complete_groups.append(group)
            else:
                analysis.incomplete_groups.append(group)
            if group.missing_parts():
                logger.warning(
                    f"Multipart group {group.reference}/{group.identifier} "
                    f"is missing parts {group.missing_parts()}"
                )

        logger.info(
            f"Multipart analysis: {len(analysis.complete_groups)} complete, "
            f"{len(analysis.incomplete_groups)} incomplete, "
            f"{len(analysis.single_messages)} single, {len(analysis.invalid)} invalid"
        )
        return analysis


@dataclass(frozen=True)
class MergedMessage:
    """
    A merged multipart message.

    `segment_sources[i]` names the file-level source label segment `i` came
    from; synthesized trailer segments are attributed to SYSTEM.
    """
    text: str
    segments: Tuple[str, ...]
    segment_sources: Tuple[str, ...]
    separators: Separators
    message_reference: Optional[str]
    interchange_reference: Optional[str]
    part_labels: Tuple[str, ...]

    @property
    def content_segment_count(self) -> int:
        return sum(1 for segment in self.segments if not is_envelope_segment(segment, self.separators))

    def source_of(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.segment_sources):
            return self.segment_sources[index]
        return None


def _raw_value(segment: str, element_index: int, separators: Separators) -> Optional[str]:
    elements = split_elements(segment, separators)
    if element_index >= len(elements):
        return None
    value = split_components(elements[element_index], separators)[0].strip()
    return value or None


class MessageMerger:
    """Merges the ordered parts of a multipart group into one message."""

    def __init__(self):
        logger.debug("Initialized MessageMerger")

    def merge(self, group: MultipartGroup) -> MergedMessage:
        """
        Merge the parts of a group.

        The first non-empty part contributes its UNA, UNB, UNH and content.
        Its own UNT/UNZ are not copied, even though the part carries them:
        the synthesized UNT/UNZ are the only trailer of the merged message.
        Later parts contribute content only (UNA, UNB, UNH, UNT and UNZ are
        dropped).

        Args:
            group: Multipart group to merge

        Returns:
            MergedMessage
        """
        segments: List[str] = []
        sources: List[str] = []
        separators: Optional[Separators] = None
        message_reference = None
        interchange_reference = None

        for candidate in group.ordered_parts():
            part_separators = candidate.separators
            part_segments = split_segments(candidate.text, part_separators)
            if not part_segments:
                logger.warning(f"Skipping empty part {candidate.label}")
                continue

            if separators is None:
                separators = part_separators
                for segment in part_segments:
                    tag = segment_tag(segment, separators)
                    if tag == "UNH" and message_reference is None:
                        message_reference = _raw_value(segment, 1, separators)
                    elif tag == "UNB" and interchange_reference is None:
                        interchange_reference = _raw_value(segment, 5, separators)
                    elif tag in ("UNT", "UNZ"):
                        continue
                    segments.append(segment)
                    sources.append(candidate.source)
                continue

            if part_separators != separators:
                logger.warning(f"Part {candidate.label} uses different separators than the first part")

            for segment in part_segments:
                if is_envelope_segment(segment, part_separators):
                    continue
                segments.append(segment)
                sources.append(candidate.source)

        separators = separators or Separators()
        element = separators.element
        content_count = sum(1 for segment in segments if not is_envelope_segment(segment, separators))

        if message_reference:
            segments.append(f"UNT{element}{content_count + 2}{element}{message_reference}")
            sources.append(SYSTEM_SOURCE)
        else:
            logger.warning(f"No UNH reference captured for {group.reference}/{group.identifier}, UNT not synthesized")

        segments.append(f"UNZ{element}1{element}{interchange_reference or '1'}")
        sources.append(SYSTEM_SOURCE)

        labels = tuple(candidate.label for candidate in group.ordered_parts())
        logger.info(
            f"Merged {len(labels)} parts of {group.reference}/{group.identifier} "
            f"into {len(segments)} segments ({content_count} content segments)"
        )

        return MergedMessage(
            text=join_segments(segments, separators, line_breaks=True),
            segments=tuple(segments),
            segment_sources=tuple(sources),
            separators=separators,
            message_reference=message_reference,
            interchange_reference=interchange_reference,
            part_labels=labels,
        )


class ScopedTempFile:
    """
    Context manager owning one temporary file holding merged message text.

    The file is uniquely named and removed on every exit path.
    """

    def __init__(
        self,
        text: str,
        directory: Optional[str] = None,
        prefix: str = "merged_",
        suffix: str = ".edi"
    ):
        """
        Initialize the scoped temp file.

        Args:
            text: Content to write
            directory: Directory to create the file in (system default when None)
            prefix: File name prefix
            suffix: File name suffix
        """
        self.text = text
        self.directory = directory
        self.prefix = prefix
        self.suffix = suffix
        self.path: Optional[str] = None

    def __enter__(self) -> str:
        fd, path = tempfile.mkstemp(prefix=self.prefix, suffix=self.suffix, dir=self.directory)
        self.path = path
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.text)
        except OSError:
            self._remove()
            raise
        logger.debug(f"Wrote merged message to {path}")
        return path

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._remove()

    def _remove(self) -> None:
        if self.path and os.path.exists(self.path):
            os.remove(self.path)
            logger.debug(f"Removed temp file {self.path}")
        self.path = None
