"""
Unit tests for segment splitting.
"""

import pytest

from src.edifact.separators import DEFAULT_SEPARATORS, Separators
from src.edifact.segments import (
    get_value,
    is_envelope_segment,
    join_segments,
    segment_tag,
    split_components,
    split_elements,
    split_segments,
    unescape,
)


class TestSplitSegments:
    """Test splitting message text into segments."""

    def test_split_basic_message(self):
        """Test splitting on the terminator with whitespace trimmed."""
        text = "UNB+IATA:1+EK+GOVT+250829:1435+1'\nUNH+1+PNRGOV'\n  SRC'\n"

        assert split_segments(text) == ["UNB+IATA:1+EK+GOVT+250829:1435+1", "UNH+1+PNRGOV", "SRC"]

    def test_una_header_is_kept_without_terminator(self):
        """Test that the UNA header is one segment."""
        segments = split_segments("UNA:+.? '\nUNB+IATA:1+EK'")

        assert segments == ["UNA:+.? ", "UNB+IATA:1+EK"]

    def test_escaped_terminator_stays_in_segment(self):
        """Test that release+terminator does not end a segment."""
        segments = split_segments("FTX+AAA+++HELLO?'WORLD'UNT+2+1'")

        assert segments == ["FTX+AAA+++HELLO?'WORLD", "UNT+2+1"]
        assert get_value(segments[0], 4) == "HELLO'WORLD"

    def test_trailing_content_is_emitted(self):
        """Test that unterminated trailing text becomes a final segment."""
        assert split_segments("SRC'RCI+EK:ABC123") == ["SRC", "RCI+EK:ABC123"]

    def test_empty_segments_are_skipped(self):
        """Test that consecutive terminators produce no empty segments."""
        assert split_segments("SRC''\n'RCI+EK:X'") == ["SRC", "RCI+EK:X"]

    def test_custom_separators(self):
        """Test splitting with a non-default terminator and release."""
        separators = Separators("*", "|", ",", "!", " ", "~")

        segments = split_segments("TIF|O!~NEIL|JOHN~SRC~", separators)

        assert segments == ["TIF|O!~NEIL|JOHN", "SRC"]

    def test_split_is_restartable(self):
        """Test that repeated calls give the same result."""
        text = "SRC'RCI+EK:ABC123'"

        assert split_segments(text) == split_segments(text)


class TestElementsAndComponents:
    """Test element and component splitting."""

    def test_split_elements(self):
        """Test that element 0 is the tag."""
        assert split_elements("TIF+SMITH+JOHN:A:1") == ["TIF", "SMITH", "JOHN:A:1"]

    def test_split_elements_honours_release(self):
        """Test that an escaped element separator is data."""
        elements = split_elements("TIF+O?+BRIEN+JOHN")

        assert elements == ["TIF", "O?+BRIEN", "JOHN"]
        assert unescape(elements[1]) == "O+BRIEN"

    def test_split_components(self):
        """Test component splitting with an escaped sub-element separator."""
        assert split_components("EK:AB?:C") == ["EK", "AB?:C"]

    def test_empty_elements_are_kept(self):
        """Test that positions are preserved for empty elements."""
        assert split_elements("FTX+AAA+++TEXT") == ["FTX", "AAA", "", "", "TEXT"]


class TestGetValue:
    """Test value lookup."""

    @pytest.fixture
    def segment(self):
        return "DTM+189:2508291435:201"

    def test_get_component(self, segment):
        """Test picking a component out of an element."""
        assert get_value(segment, 1, 1) == "2508291435"

    def test_missing_position_returns_default(self, segment):
        """Test defaults for absent elements and components."""
        assert get_value(segment, 5) is None
        assert get_value(segment, 1, 9, default="X") == "X"

    def test_empty_value_returns_default(self):
        """Test that empty values count as absent."""
        assert get_value("FTX+AAA++", 2, default="EMPTY") == "EMPTY"


class TestSegmentHelpers:
    """Test tag lookup, envelope detection and joining."""

    def test_segment_tag(self):
        """Test tag extraction."""
        assert segment_tag("RCI+EK:ABC123") == "RCI"
        assert segment_tag("SRC") == "SRC"
        assert segment_tag("UNA:+.? ") == "UNA"

    def test_is_envelope_segment(self):
        """Test envelope classification."""
        assert is_envelope_segment("UNB+IATA:1")
        assert is_envelope_segment("UNT+5+1")
        assert not is_envelope_segment("SRC")
        assert not is_envelope_segment("UNKNOWN+1")

    def test_join_then_split_round_trip(self):
        """Test that joined segments split back identically."""
        segments = ["UNA:+.? ", "UNB+IATA:1+EK", "FTX+AAA+++HELLO?'WORLD", "UNZ+1+1"]

        text = join_segments(segments, DEFAULT_SEPARATORS, line_breaks=True)

        assert text.splitlines()[0] == "UNA:+.? '"
        assert split_segments(text) == segments
