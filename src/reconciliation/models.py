"""
Data Model for PNRGOV Reconciliation

Records produced by decoding one side (input or output) of a comparison and
the immutable aggregate returned by a comparison run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class MatchingStrategy(Enum):
    """Fields composing a passenger comparison key."""
    PNR_NAME = "PNR_NAME"
    NAME_DOC_DOB = "NAME_DOC_DOB"
    CUSTOM = "CUSTOM"

    @classmethod
    def from_name(cls, name: str) -> "MatchingStrategy":
        """
        Look up a strategy by name (case-insensitive).

        Raises:
            ValueError: If the name is unknown
        """
        try:
            return cls[name.strip().upper()]
        except KeyError:
            valid = ", ".join(member.name for member in cls)
            raise ValueError(f"Unknown matching strategy '{name}'. Valid strategies: {valid}") from None


@dataclass(frozen=True)
class PnrBlock:
    """Segments of one PNR, starting at its SRC segment."""
    index: int
    segments: Tuple[str, ...]
    source: str
    start: int

    @property
    def is_pnr(self) -> bool:
        return bool(self.segments) and self.segments[0][:3] == "SRC"


@dataclass
class PassengerRecord:
    """A traveller (TIF) with the legs (TVL) attached to it."""
    block_index: int
    rloc: str
    name: str
    source: str
    legs: List[str] = field(default_factory=list)
    count: int = 1

    @property
    def legs_display(self) -> str:
        return ", ".join(self.legs)


@dataclass
class PnrRecord:
    """One PNR block with its record locator and passengers."""
    index: int
    rloc: str
    source: str
    passengers: List[PassengerRecord] = field(default_factory=list)
    has_rloc: bool = True


@dataclass
class PnrData:
    """Everything decoded from one side of a comparison."""
    file_path: str
    pnr_records: List[PnrRecord] = field(default_factory=list)
    pnr_count: int = 0
    dcs_count: int = 0
    part_count: int = 0
    sources: List[str] = field(default_factory=list)

    @property
    def passengers(self) -> List[PassengerRecord]:
        return [passenger for pnr in self.pnr_records for passenger in pnr.passengers]

    def extend(self, other: "PnrData") -> None:
        """Append another decoded source, renumbering its PNR blocks."""
        offset = len(self.pnr_records)
        for pnr in other.pnr_records:
            pnr.index += offset
            for passenger in pnr.passengers:
                passenger.block_index += offset
            self.pnr_records.append(pnr)
        self.pnr_count += other.pnr_count
        self.dcs_count += other.dcs_count
        self.part_count += other.part_count
        self.sources.extend(other.sources)


@dataclass(frozen=True)
class FlightDetails:
    """Flight identity of a message."""
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    departure_date: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_date: Optional[str] = None
    arrival_time: Optional[str] = None
    manifest_type: Optional[str] = None

    @property
    def route(self) -> Optional[str]:
        if not self.departure_airport and not self.arrival_airport:
            return None
        return f"{self.departure_airport or '?'} → {self.arrival_airport or '?'}"

    @property
    def is_empty(self) -> bool:
        return not any((self.flight_number, self.departure_airport, self.arrival_airport, self.departure_date))

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "flight_number": self.flight_number,
            "departure_airport": self.departure_airport,
            "arrival_airport": self.arrival_airport,
            "departure_date": self.departure_date,
            "departure_time": self.departure_time,
            "arrival_date": self.arrival_date,
            "arrival_time": self.arrival_time,
            "manifest_type": self.manifest_type,
        }


@dataclass(frozen=True)
class FlightComparison:
    """Field-by-field comparison of the input and output flights."""
    input_flight: Optional[FlightDetails]
    output_flight: Optional[FlightDetails]
    is_match: bool
    differences: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": self.input_flight.to_dict() if self.input_flight else None,
            "output": self.output_flight.to_dict() if self.output_flight else None,
            "is_match": self.is_match,
            "differences": list(self.differences),
        }


@dataclass(frozen=True)
class KeyDiff:
    """Set partition of two key sets."""
    processed: FrozenSet[str]
    dropped: FrozenSet[str]
    added: FrozenSet[str]


@dataclass(frozen=True)
class ComparisonResult:
    """
    Immutable outcome of one comparison run.

    Passenger and PNR key sets are computed independently; duplicates hold
    passenger keys seen under more than one input source. `config` holds the
    settings the run used, as `ComparisonConfig.to_dict()`.
    """
    input_data: PnrData
    output_data: PnrData
    flight_comparison: FlightComparison
    passenger_diff: KeyDiff
    pnr_diff: KeyDiff
    duplicate_keys: FrozenSet[str]
    same_file_repeats: Dict[str, Dict[str, int]]
    warnings: Tuple[str, ...]
    elapsed_seconds: float
    strategy: MatchingStrategy
    strict_validation: bool
    input_passenger_keys: Tuple[str, ...] = ()
    output_passenger_keys: Tuple[str, ...] = ()
    run_id: Optional[str] = None
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def processed_passengers(self) -> FrozenSet[str]:
        return self.passenger_diff.processed

    @property
    def dropped_passengers(self) -> FrozenSet[str]:
        return self.passenger_diff.dropped

    @property
    def added_passengers(self) -> FrozenSet[str]:
        return self.passenger_diff.added

    @property
    def processed_pnr_keys(self) -> FrozenSet[str]:
        return self.pnr_diff.processed

    @property
    def dropped_pnr_keys(self) -> FrozenSet[str]:
        return self.pnr_diff.dropped

    @property
    def added_pnr_keys(self) -> FrozenSet[str]:
        return self.pnr_diff.added

    @property
    def processed_count(self) -> int:
        return len(self.passenger_diff.processed)

    @property
    def dropped_count(self) -> int:
        return len(self.passenger_diff.dropped)

    @property
    def added_count(self) -> int:
        return len(self.passenger_diff.added)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicate_keys)

    @property
    def unique_dropped_pnr_count(self) -> int:
        return len(self.pnr_diff.dropped)

    def passenger_rows(self) -> List[Dict[str, Any]]:
        """
        Flatten passengers into report rows.

        Input passengers are PROCESSED, DROPPED or DUPLICATE; output
        passengers absent from the input are ADDED.

        Returns:
            List of rows with no, name, rloc, legs, source, status, count
        """
        rows = []

        def add_row(passenger: PassengerRecord, status: str) -> None:
            rows.append({
                "no": len(rows) + 1,
                "name": passenger.name,
                "rloc": passenger.rloc,
                "legs": passenger.legs_display,
                "source": passenger.source,
                "status": status,
                "count": passenger.count,
            })

        for passenger, key in zip(self.input_data.passengers, self.input_passenger_keys):
            if key in self.duplicate_keys:
                add_row(passenger, "DUPLICATE")
            elif key in self.passenger_diff.processed:
                add_row(passenger, "PROCESSED")
            else:
                add_row(passenger, "DROPPED")

        for passenger, key in zip(self.output_data.passengers, self.output_passenger_keys):
            if key in self.passenger_diff.added:
                add_row(passenger, "ADDED")

        return rows

    def to_dict(self, include_rows: bool = False) -> Dict[str, Any]:
        """
        Summarize the result as JSON-serializable data.

        Args:
            include_rows: Include flattened passenger rows

        Returns:
            Summary dictionary
        """
        summary = {
            "run_id": self.run_id,
            "strategy": self.strategy.value,
            "strict_validation": self.strict_validation,
            "config": dict(self.config),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "input": {
                "file_path": self.input_data.file_path,
                "sources": list(self.input_data.sources),
                "pnr_count": self.input_data.pnr_count,
                "dcs_count": self.input_data.dcs_count,
                "part_count": self.input_data.part_count,
                "passenger_count": len(self.input_data.passengers),
            },
            "output": {
                "file_path": self.output_data.file_path,
                "sources": list(self.output_data.sources),
                "pnr_count": self.output_data.pnr_count,
                "dcs_count": self.output_data.dcs_count,
                "part_count": self.output_data.part_count,
                "passenger_count": len(self.output_data.passengers),
            },
            "passengers": {
                "processed": sorted(self.passenger_diff.processed),
                "dropped": sorted(self.passenger_diff.dropped),
                "added": sorted(self.passenger_diff.added),
                "duplicates": sorted(self.duplicate_keys),
            },
            "pnrs": {
                "processed": sorted(self.pnr_diff.processed),
                "dropped": sorted(self.pnr_diff.dropped),
                "added": sorted(self.pnr_diff.added),
            },
            "same_file_repeats": self.same_file_repeats,
            "flight": self.flight_comparison.to_dict(),
            "warnings": list(self.warnings),
        }

        if include_rows:
            summary["rows"] = self.passenger_rows()

        return summary
