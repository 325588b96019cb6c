"""
EDIFACT Segment Splitting

Splits message text into segments, segments into elements and elements into
components, honoring the release character. Segment strings keep their escape
sequences so that they can be re-joined into an identical message; values
picked out of them are unescaped.
"""

import logging
from typing import Iterator, List, Optional

from src.edifact.separators import Separators, DEFAULT_SEPARATORS, UNA_LENGTH

logger = logging.getLogger(__name__)

# Service segments making up the interchange/message envelope
ENVELOPE_TAGS = ("UNA", "UNB", "UNH", "UNT", "UNZ")


def _una_header_length(text: str, start: int, separators: Separators) -> int:
    """Length of the UNA header at `start`, including its terminator."""
    if len(text) > start + UNA_LENGTH - 1 and text[start + UNA_LENGTH - 1] == separators.terminator:
        return UNA_LENGTH
    if len(text) > start + UNA_LENGTH - 2 and text[start + UNA_LENGTH - 2] == separators.terminator:
        return UNA_LENGTH - 1
    return UNA_LENGTH


def iter_segments(text: str, separators: Separators = DEFAULT_SEPARATORS) -> Iterator[str]:
    """
    Yield the segments of a message.

    A leading UNA header is yielded as-is without its terminator, since its
    payload consists of the service characters themselves. Every other
    segment is the trimmed text between two unescaped terminators; a release
    character copies the following character verbatim. Trailing text without
    a terminator is yielded as a final segment.

    Args:
        text: Message text
        separators: Separators of the message

    Yields:
        Segment strings (escape sequences preserved, terminators removed)
    """
    position = len(text) - len(text.lstrip())
    if text.startswith("UNA", position) and len(text) - position >= UNA_LENGTH - 1:
        header_length = _una_header_length(text, position, separators)
        yield text[position:position + header_length - 1]
        position += header_length

    release = separators.release
    terminator = separators.terminator
    buffer: List[str] = []
    length = len(text)

    while position < length:
        char = text[position]
        if char == release and position + 1 < length:
            buffer.append(char)
            buffer.append(text[position + 1])
            position += 2
            continue
        if char == terminator:
            segment = "".join(buffer).strip()
            if segment:
                yield segment
            buffer = []
        else:
            buffer.append(char)
        position += 1

    segment = "".join(buffer).strip()
    if segment:
        yield segment


def split_segments(text: str, separators: Separators = DEFAULT_SEPARATORS) -> List[str]:
    """
    Split message text into a list of segments.

    Args:
        text: Message text
        separators: Separators of the message

    Returns:
        Ordered list of segment strings
    """
    return list(iter_segments(text, separators))


def _split_escaped(value: str, delimiter: str, release: str) -> List[str]:
    parts = []
    buffer: List[str] = []
    index = 0
    while index < len(value):
        char = value[index]
        if char == release and index + 1 < len(value):
            buffer.append(value[index:index + 2])
            index += 2
            continue
        if char == delimiter:
            parts.append("".join(buffer))
            buffer = []
        else:
            buffer.append(char)
        index += 1
    parts.append("".join(buffer))
    return parts


def split_elements(segment: str, separators: Separators = DEFAULT_SEPARATORS) -> List[str]:
    """
    Split a segment into data elements.

    Element 0 is the segment tag.

    Args:
        segment: Segment string
        separators: Separators of the message

    Returns:
        List of raw (still escaped) element strings
    """
    return _split_escaped(segment, separators.element, separators.release)


def split_components(element: str, separators: Separators = DEFAULT_SEPARATORS) -> List[str]:
    """Split a data element into its raw component data elements."""
    return _split_escaped(element, separators.sub_element, separators.release)


def unescape(value: str, separators: Separators = DEFAULT_SEPARATORS) -> str:
    """Drop release characters, keeping the characters they protect."""
    if separators.release not in value:
        return value

    result = []
    index = 0
    while index < len(value):
        char = value[index]
        if char == separators.release and index + 1 < len(value):
            result.append(value[index + 1])
            index += 2
            continue
        result.append(char)
        index += 1
    return "".join(result)


def segment_tag(segment: str, separators: Separators = DEFAULT_SEPARATORS) -> str:
    """Return the segment tag (text before the first element separator)."""
    if segment.startswith("UNA"):
        return "UNA"
    return segment.split(separators.element, 1)[0].strip()


def get_value(
    segment: str,
    element_index: int,
    component_index: int = 0,
    separators: Separators = DEFAULT_SEPARATORS,
    default: Optional[str] = None
) -> Optional[str]:
    """
    Pick one unescaped component value out of a segment.

    Args:
        segment: Segment string
        element_index: Element position (0 is the tag)
        component_index: Component position within the element
        separators: Separators of the message
        default: Value returned when the position is absent or empty

    Returns:
        The stripped component value, or `default`
    """
    elements = split_elements(segment, separators)
    if element_index >= len(elements):
        return default

    components = split_components(elements[element_index], separators)
    if component_index >= len(components):
        return default

    value = unescape(components[component_index], separators).strip()
    return value or default


def is_envelope_segment(segment: str, separators: Separators = DEFAULT_SEPARATORS) -> bool:
    """Check whether a segment belongs to the UNA/UNB/UNH/UNT/UNZ envelope."""
    return segment_tag(segment, separators) in ENVELOPE_TAGS


def join_segments(
    segments: List[str],
    separators: Separators = DEFAULT_SEPARATORS,
    line_breaks: bool = False
) -> str:
    """
    Render segments back into message text.

    Args:
        segments: Segment strings as produced by `split_segments`
        separators: Separators of the message
        line_breaks: Put each segment on its own line

    Returns:
        Message text with every segment terminated
    """
    joiner = "\n" if line_breaks else ""
    return joiner.join(f"{segment}{separators.terminator}" for segment in segments)
