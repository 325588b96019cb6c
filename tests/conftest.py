"""
Pytest configuration and shared fixtures for unit tests.

Provides builders for synthetic PNRGOV interchanges and comparison folders.
"""

import pytest


HEADER_SEGMENTS = [
    "MSG+:22",
    "ORG+EK:DXB",
    "TVL+290825:1435+DXB+LHR+EK+0160",
    "EQN+1",
]

PNRGOV_UNH_TAIL = "PNRGOV:11:1:IA+EK0160/290825/1435"


def pnr_block(rloc, *names, leg="TVL+290825:1435:290825:1855+DXB+LHR+EK+0160"):
    """
    Build the segments of one PNR.

    Args:
        rloc: Record locator placed in RCI (None for a PNR without RCI)
        names: Passenger names as "SURNAME/GIVEN"
        leg: TVL segment given to every passenger

    Returns:
        List of segments starting with SRC
    """
    segments = ["SRC"]
    if rloc is not None:
        segments.append(f"RCI+EK:{rloc}")
    for name in names:
        surname, _, given = name.partition("/")
        segments.append(f"TIF+{surname}+{given}:A:1" if given else f"TIF+{surname}")
        if leg:
            segments.append(leg)
    return segments


def build_interchange(
    body,
    icr="REF001",
    unz_icr=None,
    message_ref="MSG1",
    unh_tail=PNRGOV_UNH_TAIL,
    una=True,
    header=True
):
    """
    Build a complete PNRGOV interchange.

    Args:
        body: Content segments (PNR blocks)
        icr: Interchange control reference in UNB
        unz_icr: Reference in UNZ (same as `icr` when omitted)
        message_ref: UNH/UNT message reference
        unh_tail: UNH elements after the message reference
        una: Prefix a UNA header
        header: Insert the flight header segments before the body

    Returns:
        Message text, one segment per line
    """
    content = (HEADER_SEGMENTS if header else []) + list(body)
    segments = []
    if una:
        segments.append("UNA:+.? ")
    segments.append(f"UNB+IATA:1+EK+GOVT+250829:1435+{icr}")
    segments.append(f"UNH+{message_ref}+{unh_tail}")
    segments.extend(content)
    segments.append(f"UNT+{len(content) + 2}+{message_ref}")
    segments.append(f"UNZ+1+{unz_icr or icr}")
    return "\n".join(f"{segment}'" for segment in segments) + "\n"


@pytest.fixture
def make_folder(tmp_path):
    """
    Factory writing a comparison folder in the input/output layout.

    Usage:
        folder = make_folder({"a.edi": text}, {"out.edi": text})
    """
    def _make(inputs, outputs, name="flight"):
        folder = tmp_path / name
        (folder / "input").mkdir(parents=True)
        (folder / "output").mkdir(parents=True)
        for file_name, text in inputs.items():
            (folder / "input" / file_name).write_text(text, encoding="utf-8")
        for file_name, text in outputs.items():
            (folder / "output" / file_name).write_text(text, encoding="utf-8")
        return str(folder)

    return _make


@pytest.fixture
def simple_message():
    """Interchange with one PNR (ABC123) holding SMITH/JOHN."""
    return build_interchange(pnr_block("ABC123", "SMITH/JOHN"))
