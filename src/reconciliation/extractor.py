"""
PNR Block and Passenger Extraction

Splits a decoded PNRGOV segment stream into PNR blocks at SRC segments and
turns every block into a PnrRecord holding its passengers (TIF) and their
travel legs (TVL).
"""

import logging
from typing import List, Optional, Sequence, Tuple

from src.edifact.multipart import MESSAGE_EXTENSIONS
from src.edifact.separators import Separators, DEFAULT_SEPARATORS
from src.edifact.segments import segment_tag, split_components, split_elements, unescape
from src.edifact.validator import parse_rci
from src.reconciliation.flight import parse_tvl
from src.reconciliation.models import PassengerRecord, PnrBlock, PnrData, PnrRecord

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "UNKNOWN"


def source_label(label: str) -> str:
    """Strip the message-file extension from a source label."""
    for extension in MESSAGE_EXTENSIONS:
        if label.lower().endswith(extension):
            return label[:-len(extension)]
    return label


def placeholder_rloc(source: str, index: int) -> str:
    """Record locator used for a PNR block without a readable RCI."""
    return f"NO-RLOC-{source}-{index}"


class PnrBlockExtractor:
    """Splits a segment stream into PNR blocks delimited by SRC."""

    def __init__(self, separators: Separators = DEFAULT_SEPARATORS):
        self.separators = separators

    def split(
        self,
        segments: Sequence[str],
        default_source: str,
        segment_sources: Optional[Sequence[str]] = None
    ) -> List[PnrBlock]:
        """
        Split segments into PNR blocks.

        Segments before the first SRC (message header) form no block.

        Args:
            segments: Message segments
            default_source: Source label when no per-segment source is known
            segment_sources: Per-segment source labels of a merged message

        Returns:
            Blocks in message order, each starting with an SRC segment
        """
        starts = [i for i, segment in enumerate(segments) if segment_tag(segment, self.separators) == "SRC"]
        blocks = []

        for block_index, start in enumerate(starts):
            end = starts[block_index + 1] if block_index + 1 < len(starts) else len(segments)
            source = default_source
            if segment_sources is not None and start < len(segment_sources):
                source = source_label(segment_sources[start])
            blocks.append(PnrBlock(block_index, tuple(segments[start:end]), source, start))

        return blocks


class PassengerRecordExtractor:
    """Builds PnrRecords (with passengers) from PNR blocks."""

    def __init__(self, separators: Separators = DEFAULT_SEPARATORS):
        self.separators = separators

    def parse_name(self, segment: str) -> Optional[str]:
        """
        Decode a TIF segment into a display name.

        Layout: TIF+<surname>+<given name>[:...] or TIF+<surname>:<given>.
        The given name is component 1 of the surname element when present,
        else component 0 of the next element.

        Returns:
            "SURNAME/GIVEN", "SURNAME", or None when the surname is empty
        """
        elements = split_elements(segment, self.separators)[1:]
        if not elements:
            return None

        components = [unescape(c, self.separators).strip() for c in split_components(elements[0], self.separators)]
        surname = components[0] if components else ""
        given = components[1] if len(components) > 1 else ""
        if not given and len(elements) > 1:
            given = unescape(split_components(elements[1], self.separators)[0], self.separators).strip()

        if not surname:
            return None
        return f"{surname}/{given}" if given else surname

    def format_leg(self, segment: str) -> str:
        """Render a TVL segment as a leg string."""
        leg = parse_tvl(segment, self.separators)
        if leg["origin"] and leg["destination"]:
            flight = f"{leg['airline'] or ''}{leg['flight_number'] or ''}"
            parts = [flight, f"{leg['origin']}-{leg['destination']}", leg["departure_date"] or ""]
            return " ".join(part for part in parts if part)
        return segment[3:].lstrip(self.separators.element)

    def extract(self, block: PnrBlock, message_label: Optional[str] = None) -> Tuple[PnrRecord, List[str]]:
        """
        Build the PnrRecord of one block.

        TVL segments before the first TIF are block legs; they are given to
        every passenger that has no legs of its own.

        Args:
            block: PNR block
            message_label: Message the block belongs to; names placeholder
                record locators (defaults to the block source)

        Returns:
            (PnrRecord, warnings)
        """
        warnings: List[str] = []
        rloc = None
        passengers: List[PassengerRecord] = []
        block_legs: List[str] = []
        current: Optional[PassengerRecord] = None

        for offset, segment in enumerate(block.segments):
            tag = segment_tag(segment, self.separators)
            position = block.start + offset + 1

            if tag == "RCI" and rloc is None:
                info = parse_rci(segment, self.separators)
                if info is not None and info.reservation_number:
                    rloc = info.reservation_number
            elif tag == "TIF":
                name = self.parse_name(segment)
                if name is None:
                    warnings.append(f"TIF segment at position {position} in {block.source} has no surname")
                    name = UNKNOWN_NAME
                current = PassengerRecord(block.index, "", name, block.source)
                passengers.append(current)
            elif tag == "TVL":
                leg = self.format_leg(segment)
                if current is None:
                    block_legs.append(leg)
                else:
                    current.legs.append(leg)

        has_rloc = rloc is not None
        if not has_rloc:
            rloc = placeholder_rloc(message_label or block.source, block.index)
            logger.debug(f"PNR block {block.index} in {block.source} has no record locator, using {rloc}")

        for passenger in passengers:
            passenger.rloc = rloc
            if not passenger.legs:
                passenger.legs = list(block_legs)

        record = PnrRecord(block.index, rloc, block.source, passengers, has_rloc)
        return record, warnings


class PnrDataExtractor:
    """Decodes one message into PnrData."""

    def __init__(self, separators: Separators = DEFAULT_SEPARATORS):
        self.separators = separators
        self.block_extractor = PnrBlockExtractor(separators)
        self.passenger_extractor = PassengerRecordExtractor(separators)

    def extract(
        self,
        segments: Sequence[str],
        file_path: str,
        label: str,
        segment_sources: Optional[Sequence[str]] = None,
        part_count: int = 1,
        source: Optional[str] = None
    ) -> Tuple[PnrData, List[str]]:
        """
        Extract PNR records and passengers from a segment stream.

        Args:
            segments: Message segments
            file_path: Path the message was read from (or merged into)
            label: Display label of the message
            segment_sources: Per-segment source labels of a merged message
            part_count: Number of physical parts behind the message
            source: File-level source label given to passengers (derived from
                `label` when omitted)

        Returns:
            (PnrData, warnings)
        """
        warnings: List[str] = []
        default_source = source or source_label(label)
        message_label = source_label(label)
        records = []

        for block in self.block_extractor.split(segments, default_source, segment_sources):
            record, block_warnings = self.passenger_extractor.extract(block, message_label)
            records.append(record)
            warnings.extend(block_warnings)

        dcs_count = sum(1 for segment in segments if segment_tag(segment, self.separators) == "TRI")
        data = PnrData(
            file_path=file_path,
            pnr_records=records,
            pnr_count=len(records),
            dcs_count=dcs_count,
            part_count=part_count,
            sources=[label],
        )

        logger.info(
            f"Extracted {len(records)} PNRs and {len(data.passengers)} passengers from {label}"
        )
        return data, warnings
