"""
Message Boundary Scanner

Locates EDIFACT messages in free-form application logs. A message starts at
a line recognised by one of an ordered list of marker rules (first match
wins) and ends at its UNZ segment, at a blank or unrelated log line, at the
next marker, or at end of input.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from src.edifact.separators import (
    DEFAULT_SEPARATORS,
    UNA_LENGTH,
    Separators,
    resolve_separators,
    strip_control_characters,
)
from src.edifact.segments import split_segments
from src.utils.run_context import CancellationToken

logger = logging.getLogger(__name__)

# Single-line content shorter than this after its UNA header is only a message opener
EMBEDDED_MIN_LENGTH = 10
EMBEDDED_HINTS = ("UNB", "UNH", "TDT")


class MarkerKind(Enum):
    """How a marker rule tests a log line."""
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ALL_OF = "all_of"


@dataclass(frozen=True)
class MarkerRule:
    """
    One recognised way of embedding an EDIFACT message in a log line.

    Attributes:
        name: Rule name, recorded on every message it starts
        kind: Matching mode
        conditions: Substrings tested against the line
        content_after: Token after which the message content begins;
            empty means the whole line is content
        enabled: Disabled rules never match
        idle_only: Rule only applies while no message is open
    """
    name: str
    kind: MarkerKind
    conditions: Tuple[str, ...]
    content_after: str = ""
    enabled: bool = True
    idle_only: bool = False

    def matches(self, line: str) -> bool:
        if not self.enabled or not self.conditions:
            return False

        if self.kind == MarkerKind.CONTAINS:
            return self.conditions[0] in line
        if self.kind == MarkerKind.STARTS_WITH:
            return line.startswith(self.conditions[0])
        return all(condition in line for condition in self.conditions)

    def extract_content(self, line: str) -> str:
        """
        Cut the message content out of a matching line.

        Literal "\\n" sequences become real line breaks, control characters
        are removed and a closing "]" wrapper is dropped.
        """
        content = line
        if self.content_after:
            index = line.find(self.content_after)
            content = line[index + len(self.content_after):] if index != -1 else ""

        content = content.rstrip()
        if content.endswith("]"):
            content = content[:-1]

        lines = content.replace("\\n", "\n").split("\n")
        return "\n".join(strip_control_characters(part) for part in lines).strip("\n")


DEFAULT_MARKER_RULES: Tuple[MarkerRule, ...] = (
    MarkerRule("stx_una", MarkerKind.CONTAINS, ("$STX$UNA",), "$STX$"),
    MarkerRule("stx_unb", MarkerKind.CONTAINS, ("$STX$UNB",), "$STX$"),
    MarkerRule(
        "forwarder_una",
        MarkerKind.ALL_OF,
        ("INFO ", "Forward.BUSINESS_RULES_PROCESSOR", "Message body [UNA"),
        "Message body [",
    ),
    MarkerRule(
        "forwarder_unb",
        MarkerKind.ALL_OF,
        ("INFO ", "Forward.BUSINESS_RULES_PROCESSOR", "Message body [UNB"),
        "Message body [",
    ),
    MarkerRule("warn_una", MarkerKind.ALL_OF, ("Failed to parse API message", "[UNA"), "["),
    MarkerRule("warn_unb", MarkerKind.ALL_OF, ("Failed to parse API message", "[UNB"), "["),
    MarkerRule("warn_multiline", MarkerKind.ALL_OF, ("Failed to parse API message", "["), "["),
    MarkerRule("standalone_una", MarkerKind.STARTS_WITH, ("UNA",), "", idle_only=True),
)


@dataclass(frozen=True)
class RawMessage:
    """
    One EDIFACT message located in a log or file.

    Attributes:
        text: Message body as found (may lack a UNA header)
        una_segment: The message's UNA header, preserved verbatim, if any
        marker: Name of the rule that started the message ("file" for clean files)
        line_number: 1-based line the message started on
        complete: True when the message ended at a UNZ segment
    """
    text: str
    una_segment: Optional[str] = None
    marker: str = "file"
    line_number: int = 1
    complete: bool = True

    @property
    def full_text(self) -> str:
        """Message text re-prefixed with its UNA header when the body lacks it."""
        if self.text.lstrip().startswith("UNA") or not self.una_segment:
            return self.text
        return f"{self.una_segment}\n{self.text}"

    @property
    def separators(self) -> Separators:
        return resolve_separators(self.full_text)


def _una_of(content: str) -> Optional[str]:
    stripped = content.lstrip()
    if stripped.startswith("UNA") and len(stripped) >= UNA_LENGTH:
        return stripped[:UNA_LENGTH]
    return None


def _is_embedded_message(content: str) -> bool:
    """Check whether single-line content holds a whole message."""
    body = content[UNA_LENGTH:] if _una_of(content) else content
    body = body.strip()
    return len(body) > EMBEDDED_MIN_LENGTH and any(hint in body for hint in EMBEDDED_HINTS)


class _OpenMessage:
    """Lines collected for the message currently being scanned."""

    def __init__(self, marker: str, line_number: int, una_segment: Optional[str], separators: Separators):
        self.marker = marker
        self.line_number = line_number
        self.una_segment = una_segment
        self.separators = separators
        self.lines: List[str] = []

    def add(self, content: str) -> None:
        for line in content.split("\n"):
            line = line.strip()
            if not line:
                continue
            if not self.lines and line.startswith(("UNA", "UNB")):
                # Header arriving after an empty opener defines the separators
                self.una_segment = self.una_segment or _una_of(line)
                self.separators = resolve_separators(line)
            self.lines.append(line)

    def ends_with_unz(self) -> bool:
        return any(
            segment.startswith("UNZ" + self.separators.element)
            for segment in split_segments(self.lines[-1], self.separators)
        ) if self.lines else False

    def close(self, complete: bool) -> Optional[RawMessage]:
        if not self.lines:
            return None

        text = "\n".join(self.lines)
        una = self.una_segment or _una_of(text)
        if una is None and self.separators != DEFAULT_SEPARATORS:
            una = self.separators.una_segment()

        return RawMessage(
            text=text,
            una_segment=una,
            marker=self.marker,
            line_number=self.line_number,
            complete=complete,
        )


class MessageBoundaryScanner:
    """
    Scans log text for embedded EDIFACT messages.

    The rule list is fixed at construction; scanning never mutates it.
    """

    def __init__(self, rules: Optional[Sequence[MarkerRule]] = None):
        """
        Initialize the scanner.

        Args:
            rules: Ordered marker rules; defaults to DEFAULT_MARKER_RULES
        """
        self.rules: Tuple[MarkerRule, ...] = tuple(rules) if rules is not None else DEFAULT_MARKER_RULES
        logger.debug(
            f"Initialized MessageBoundaryScanner with "
            f"{sum(1 for rule in self.rules if rule.enabled)} enabled rules"
        )

    def match_rule(self, line: str, message_open: bool) -> Optional[MarkerRule]:
        """
        Find the first enabled rule matching a line.

        Args:
            line: Cleaned log line
            message_open: Whether a message is currently being collected

        Returns:
            Matching rule or None
        """
        for rule in self.rules:
            if rule.idle_only and message_open:
                continue
            if rule.matches(line):
                return rule
        return None

    def scan(
        self,
        text: str,
        cancellation: Optional[CancellationToken] = None
    ) -> Iterator[RawMessage]:
        """
        Yield the messages found in log text.

        Args:
            text: Log content
            cancellation: Optional token checked before each message is yielded

        Yields:
            RawMessage for every located message, including a best-effort
            final message for unterminated trailing content
        """
        current: Optional[_OpenMessage] = None

        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = strip_control_characters(raw_line)
            rule = self.match_rule(line, current is not None)

            if rule is not None:
                if current is not None:
                    yield from self._emit(current, False, cancellation)
                    current = None

                content = rule.extract_content(line)
                una = _una_of(content)
                separators = resolve_separators(content) if una or "UNB" in content else DEFAULT_SEPARATORS
                opened = _OpenMessage(rule.name, line_number, una, separators)
                opened.add(content)

                if not opened.lines:
                    # Opener without content, segments follow on the next lines
                    current = opened
                    continue

                if "\n" in content or _is_embedded_message(content):
                    # Whole message carried by the marker line
                    yield from self._emit(opened, opened.ends_with_unz(), cancellation)
                else:
                    current = opened
                continue

            if current is None:
                continue

            stripped = line.strip()
            if stripped and (stripped.startswith("UN") or current.separators.element in stripped):
                current.add(stripped)
                if current.ends_with_unz():
                    yield from self._emit(current, True, cancellation)
                    current = None
            else:
                # Blank or unrelated line closes the message
                yield from self._emit(current, False, cancellation)
                current = None

        if current is not None:
            logger.warning(
                f"Unterminated message from line {current.line_number} "
                f"emitted as best-effort final message"
            )
            yield from self._emit(current, False, cancellation)

    def _emit(
        self,
        message: _OpenMessage,
        complete: bool,
        cancellation: Optional[CancellationToken]
    ) -> Iterator[RawMessage]:
        if cancellation is not None:
            cancellation.raise_if_cancelled(f"log line {message.line_number}")

        raw = message.close(complete)
        if raw is not None:
            logger.debug(
                f"Found message via {raw.marker} at line {raw.line_number} "
                f"({'complete' if complete else 'incomplete'})"
            )
            yield raw

    def scan_all(self, text: str, cancellation: Optional[CancellationToken] = None) -> List[RawMessage]:
        """Collect every message found in log text."""
        messages = list(self.scan(text, cancellation))
        logger.info(f"Scanned log content: {len(messages)} messages found")
        return messages


def is_clean_message(text: str) -> bool:
    """Check whether content is a bare EDIFACT message rather than a log."""
    stripped = text.lstrip()
    return stripped.startswith("UNA") or stripped.startswith("UNB")


def decode_messages(
    text: str,
    scanner: Optional[MessageBoundaryScanner] = None,
    cancellation: Optional[CancellationToken] = None
) -> List[RawMessage]:
    """
    Decode file content into messages.

    Clean EDIFACT content is a single message occupying the whole content;
    anything else is scanned as a log.

    Args:
        text: File content
        scanner: Scanner used for log content
        cancellation: Optional cancellation token

    Returns:
        Messages found in the content
    """
    text = text.lstrip("\ufeff")
    if is_clean_message(text):
        stripped = text.strip()
        return [RawMessage(text=stripped, una_segment=_una_of(stripped))]

    scanner = scanner or MessageBoundaryScanner()
    return scanner.scan_all(text, cancellation)
