"""
Flight Details Extraction

Reads flight identity from a message through a declarative segment-field
table (TDT/LOC/DTM for PAXLST, TVL for PNRGOV, BGM for the manifest type),
then fills remaining gaps from the flight token embedded in the UNH header.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from src.edifact.multipart import parse_unh
from src.edifact.separators import Separators, resolve_separators
from src.edifact.segments import get_value, segment_tag, split_components, split_segments
from src.reconciliation.models import FlightDetails

logger = logging.getLogger(__name__)

MANIFEST_TYPES = {"745": "PASSENGER", "250": "CREW"}

_FLIGHT_NUMBER_PATTERN = re.compile(r"^([A-Z]{3}|[A-Z0-9]{2})0*(\d+)([A-Z]?)$")


@dataclass(frozen=True)
class SegmentField:
    """
    Where one flight field lives in a segment.

    Attributes:
        tag: Segment tag
        target: Field name filled from the value
        element: Element position (0 is the tag)
        component: Component position within the element
        qualifier: Required value of element 1, component 0
    """
    tag: str
    target: str
    element: int
    component: int = 0
    qualifier: Optional[str] = None


SEGMENT_FIELDS: Tuple[SegmentField, ...] = (
    SegmentField("BGM", "manifest_type", 1),
    SegmentField("TDT", "flight_number", 2),
    SegmentField("LOC", "departure_airport", 2, qualifier="125"),
    SegmentField("LOC", "arrival_airport", 2, qualifier="87"),
    SegmentField("DTM", "departure_stamp", 1, 1, qualifier="189"),
    SegmentField("DTM", "arrival_stamp", 1, 1, qualifier="232"),
    SegmentField("TVL", "departure_date", 1, 0),
    SegmentField("TVL", "departure_time", 1, 1),
    SegmentField("TVL", "arrival_date", 1, 2),
    SegmentField("TVL", "arrival_time", 1, 3),
    SegmentField("TVL", "departure_airport", 2),
    SegmentField("TVL", "arrival_airport", 3),
    SegmentField("TVL", "airline", 4),
    SegmentField("TVL", "flight_suffix", 5),
)


def normalize_flight_number(value: Optional[str]) -> Optional[str]:
    """
    Normalize a flight number for comparison.

    The airline designator is kept and leading zeros of the numeric part
    are removed, so "EK0160" and "EK160" compare equal.
    """
    if not value:
        return value

    compact = re.sub(r"\s+", "", value).upper()
    match = _FLIGHT_NUMBER_PATTERN.match(compact)
    if not match:
        return compact

    airline, number, suffix = match.groups()
    return f"{airline}{int(number)}{suffix}"


def _format_date(value: Optional[str], pattern: str) -> Optional[str]:
    if not value:
        return None
    try:
        return datetime.strptime(value, pattern).strftime("%Y-%m-%d")
    except ValueError:
        return value


def _format_time(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if len(value) == 4 and value.isdigit():
        return f"{value[:2]}:{value[2:]}"
    return value


def _split_stamp(stamp: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split a YYMMDDHHMM stamp into formatted date and time."""
    if not stamp or len(stamp) < 6:
        return None, None
    date = _format_date(stamp[:6], "%y%m%d")
    time = _format_time(stamp[6:10]) if len(stamp) >= 10 else None
    return date, time


def parse_flight_token(token: str) -> Dict[str, str]:
    """
    Decode a flight token carried in a UNH header.

    Formats:
        PNRGOV "EK0160/290825/1435" (flight/DDMMYY/HHMM)
        PAXLST "TS2302507251130" (flight followed by YYMMDDHHMM)

    Returns:
        Field mapping, empty when the token is not recognised
    """
    token = token.strip()
    if "/" in token:
        parts = [part.strip() for part in token.split("/")]
        fields = {"flight_number": parts[0]} if parts[0] else {}
        if len(parts) > 1 and parts[1]:
            fields["departure_date"] = _format_date(parts[1], "%d%m%y")
        if len(parts) > 2 and parts[2]:
            fields["departure_time"] = _format_time(parts[2])
        return fields

    if len(token) > 10 and token[-10:].isdigit():
        date, time = _split_stamp(token[-10:])
        fields = {"flight_number": token[:-10]}
        if date:
            fields["departure_date"] = date
        if time:
            fields["departure_time"] = time
        return fields

    return {}


def parse_tvl(segment: str, separators: Separators) -> Dict[str, Optional[str]]:
    """
    Decode a TVL travel leg segment.

    Layout: TVL+<DDMMYY>:<HHMM>:<DDMMYY>:<HHMM>+<origin>+<destination>+<airline>+<number>

    Returns:
        Mapping with date, time, origin, destination, airline and flight number
    """
    return {
        "departure_date": get_value(segment, 1, 0, separators),
        "departure_time": get_value(segment, 1, 1, separators),
        "origin": get_value(segment, 2, 0, separators),
        "destination": get_value(segment, 3, 0, separators),
        "airline": get_value(segment, 4, 0, separators),
        "flight_number": get_value(segment, 5, 0, separators),
    }


class FlightDetailsExtractor:
    """Extracts FlightDetails from message text."""

    def __init__(self, fields: Tuple[SegmentField, ...] = SEGMENT_FIELDS):
        """
        Initialize the extractor.

        Args:
            fields: Segment-field table consulted in order
        """
        self.fields_by_tag: Dict[str, Tuple[SegmentField, ...]] = {}
        for segment_field in fields:
            self.fields_by_tag[segment_field.tag] = self.fields_by_tag.get(segment_field.tag, ()) + (segment_field,)
        logger.debug("Initialized FlightDetailsExtractor")

    def scan_segments(self, text: str, separators: Separators) -> Dict[str, str]:
        """
        Apply the segment-field table; first occurrence of each field wins.

        Returns:
            Raw field values keyed by target name
        """
        values: Dict[str, str] = {}

        for segment in split_segments(text, separators):
            rules = self.fields_by_tag.get(segment_tag(segment, separators))
            if not rules:
                continue

            for rule in rules:
                if rule.target in values:
                    continue
                if rule.qualifier is not None and get_value(segment, 1, 0, separators) != rule.qualifier:
                    continue
                value = get_value(segment, rule.element, rule.component, separators)
                if value:
                    values[rule.target] = value

        return values

    def extract(self, text: str, separators: Optional[Separators] = None) -> Optional[FlightDetails]:
        """
        Extract flight details from a message.

        Args:
            text: Message text
            separators: Separators of the message (resolved when omitted)

        Returns:
            FlightDetails, or None when no flight information is present
        """
        separators = separators or resolve_separators(text)
        raw = self.scan_segments(text, separators)

        fields: Dict[str, Optional[str]] = {
            "flight_number": raw.get("flight_number"),
            "airline": raw.get("airline"),
            "departure_airport": raw.get("departure_airport"),
            "arrival_airport": raw.get("arrival_airport"),
            "manifest_type": MANIFEST_TYPES.get(raw.get("manifest_type", ""), raw.get("manifest_type")),
        }

        if "departure_stamp" in raw or "arrival_stamp" in raw:
            fields["departure_date"], fields["departure_time"] = _split_stamp(raw.get("departure_stamp"))
            fields["arrival_date"], fields["arrival_time"] = _split_stamp(raw.get("arrival_stamp"))
        else:
            fields["departure_date"] = _format_date(raw.get("departure_date"), "%d%m%y")
            fields["departure_time"] = _format_time(raw.get("departure_time"))
            fields["arrival_date"] = _format_date(raw.get("arrival_date"), "%d%m%y")
            fields["arrival_time"] = _format_time(raw.get("arrival_time"))

        if not fields["flight_number"] and raw.get("flight_suffix"):
            fields["flight_number"] = f"{raw.get('airline', '')}{raw['flight_suffix']}"

        header = parse_unh(text, separators)
        if header is not None and header.identifier:
            token = split_components(header.identifier, separators)[0]
            for name, value in parse_flight_token(token).items():
                if value and not fields.get(name):
                    fields[name] = value

        details = FlightDetails(**fields)
        if details.is_empty:
            logger.debug("No flight information found in message")
            return None

        return details
