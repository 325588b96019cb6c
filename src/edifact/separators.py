"""
EDIFACT Separator Resolution

Resolves the six EDIFACT service characters of a message from its UNA
service string advice, from its UNB interchange header, or falls back to
the UN/EDIFACT defaults. Resolution never fails.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Only the leading lines of a message are inspected for UNA/UNB headers
HEADER_SEARCH_LINES = 8
UNA_LENGTH = 9


@dataclass(frozen=True)
class Separators:
    """The six EDIFACT service characters of one message."""
    sub_element: str = ":"
    element: str = "+"
    decimal: str = "."
    release: str = "?"
    reserved: str = " "
    terminator: str = "'"

    def una_segment(self) -> str:
        """Render a UNA service string advice carrying these separators."""
        return (
            f"UNA{self.sub_element}{self.element}{self.decimal}"
            f"{self.release}{self.reserved}{self.terminator}"
        )

    def is_usable(self) -> bool:
        """
        Check that the structural characters can delimit a message.

        Returns:
            True when sub-element, element and terminator are distinct,
            non-alphanumeric characters
        """
        structural = (self.sub_element, self.element, self.terminator)
        if len(set(structural)) != 3:
            return False
        return all(len(c) == 1 and not c.isalnum() for c in structural)

    @classmethod
    def from_una(cls, line: str) -> Optional["Separators"]:
        """
        Read separators positionally from a line holding a UNA header.

        The header may be preceded by log noise such as "$STX$" or "[".
        A five-character payload directly followed by UNB (reserved
        character dropped by the sender) is accepted with a space as the
        reserved character.

        Args:
            line: Single line of text

        Returns:
            Separators, or None if the line carries no usable UNA header
        """
        line = strip_control_characters(line)
        index = line.find("UNA")
        if index == -1:
            return None

        prefix = line[:index]
        if prefix and not prefix.endswith(("$", "[")):
            return None

        rest = line[index + 3:]
        unb_at = rest.find("UNB")
        if 0 <= unb_at < 6:
            rest = rest[:unb_at]

        payload = rest[:6]
        if len(payload) == 5:
            sub, elem, dec, rel, term = payload
            candidate = cls(sub, elem, dec, rel, " ", term)
        elif len(payload) == 6:
            candidate = cls(*payload)
        else:
            return None

        if not candidate.is_usable():
            logger.debug(f"Ignoring unusable UNA header: {line[index:index + UNA_LENGTH]!r}")
            return None

        return candidate

    @classmethod
    def from_unb(cls, line: str) -> Optional["Separators"]:
        """
        Infer separators from a line holding a UNB header.

        The element separator is the character right after "UNB"; the
        sub-element separator is taken from the first element (syntax
        identifier such as "UNOA:4"); the terminator is the last
        non-whitespace character of the header line.

        Args:
            line: Single line of text

        Returns:
            Separators, or None if the line carries no usable UNB header
        """
        line = strip_control_characters(line)
        index = line.find("UNB")
        if index == -1 or len(line) <= index + 3:
            return None

        prefix = line[:index]
        if prefix and not prefix.endswith(("$", "[")):
            return None

        element = line[index + 3]
        if element.isalnum() or element.isspace():
            return None

        body = line[index + 4:]
        first_element = body.split(element, 1)[0]
        sub_element = ":"
        if ":" not in first_element:
            for char in first_element:
                if not char.isalnum():
                    sub_element = char
                    break

        stripped = line.rstrip()
        terminator = stripped[-1] if stripped else "'"
        if terminator.isalnum() or terminator in (element, sub_element):
            terminator = "'"

        candidate = cls(sub_element=sub_element, element=element, terminator=terminator)
        if not candidate.is_usable():
            return None

        return candidate


DEFAULT_SEPARATORS = Separators()


def strip_control_characters(text: str) -> str:
    """Remove carriage returns, tabs and other control characters."""
    return "".join(c for c in text if c >= " " and c != "\x7f")


def resolve_separators(text: str) -> Separators:
    """
    Resolve the separators of a message from its leading lines.

    Args:
        text: Message text (clean file content or an extracted log block)

    Returns:
        Separators from the UNA header, else inferred from UNB, else defaults
    """
    lines = text.splitlines()[:HEADER_SEARCH_LINES]

    for line in lines:
        if "UNA" in line:
            separators = Separators.from_una(line)
            if separators is not None:
                logger.debug(f"Resolved separators from UNA: {separators.una_segment()!r}")
                return separators

    for line in lines:
        if "UNB" in line:
            separators = Separators.from_unb(line)
            if separators is not None:
                logger.debug(f"Inferred separators from UNB: {separators.una_segment()!r}")
                return separators

    logger.debug("No UNA/UNB header found, using default separators")
    return DEFAULT_SEPARATORS
