"""
Key Differ for PNRGOV Reconciliation

Set-based diff of the passenger and PNR keys of the input and output sides,
plus duplicate detection across input sources.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple

from src.reconciliation.matching import MatchingKeyGenerator
from src.reconciliation.models import KeyDiff, PassengerRecord, PnrData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationOutcome:
    """Key-level outcome of reconciling two PnrData sides."""
    passenger_diff: KeyDiff
    pnr_diff: KeyDiff
    duplicate_keys: FrozenSet[str]
    same_file_repeats: Dict[str, Dict[str, int]]
    input_passenger_keys: Tuple[str, ...]
    output_passenger_keys: Tuple[str, ...]


class ReconciliationEngine:
    """
    Diffs input and output keys.

    Stateless apart from the key generator; safe to share between threads.
    """

    def __init__(self, key_generator: MatchingKeyGenerator):
        """
        Initialize the engine.

        Args:
            key_generator: Key generator for the selected strategy
        """
        self.key_generator = key_generator
        logger.debug("Initialized ReconciliationEngine")

    @staticmethod
    def diff_keys(input_keys: Iterable[str], output_keys: Iterable[str]) -> KeyDiff:
        """
        Partition two key sets.

        Args:
            input_keys: Keys of the input side
            output_keys: Keys of the output side

        Returns:
            KeyDiff with processed = A ∩ B, dropped = A − B, added = B − A
        """
        source = frozenset(input_keys)
        target = frozenset(output_keys)
        return KeyDiff(
            processed=source & target,
            dropped=source - target,
            added=target - source,
        )

    def passenger_keys(self, passengers: List[PassengerRecord]) -> List[str]:
        return [self.key_generator.passenger_key(passenger) for passenger in passengers]

    def find_cross_file_duplicates(
        self,
        passengers: List[PassengerRecord],
        keys: List[str]
    ) -> FrozenSet[str]:
        """
        Find passenger keys seen under more than one source label.

        Repeats within a single source are not duplicates here.

        Args:
            passengers: Input passengers
            keys: Their keys, aligned with `passengers`

        Returns:
            Duplicate keys
        """
        sources_by_key: Dict[str, Set[str]] = defaultdict(set)

        for passenger, key in zip(passengers, keys):
            sources_by_key[key].add(passenger.source)

        duplicates = frozenset(key for key, sources in sources_by_key.items() if len(sources) > 1)

        if duplicates:
            logger.warning(f"Found {len(duplicates)} passenger keys duplicated across input sources")

        return duplicates

    def find_same_file_repeats(
        self,
        passengers: List[PassengerRecord],
        keys: List[str]
    ) -> Dict[str, Dict[str, int]]:
        """
        Count keys occurring more than once within one source.

        The first record of a repeated key has its `count` raised to the
        number of occurrences.

        Args:
            passengers: Input passengers
            keys: Their keys, aligned with `passengers`

        Returns:
            Mapping source label -> {key: occurrences}
        """
        counts: Dict[Tuple[str, str], int] = defaultdict(int)
        first_seen: Dict[Tuple[str, str], PassengerRecord] = {}

        for passenger, key in zip(passengers, keys):
            index_key = (passenger.source, key)
            counts[index_key] += 1
            first_seen.setdefault(index_key, passenger)

        repeats: Dict[str, Dict[str, int]] = defaultdict(dict)
        for (source, key), count in counts.items():
            if count > 1:
                repeats[source][key] = count
                first_seen[(source, key)].count = count

        if repeats:
            logger.info(f"Same-file repeats found in {len(repeats)} input sources")

        return dict(repeats)

    def reconcile(
        self,
        input_data: PnrData,
        output_data: PnrData,
        report_same_file_repeats: bool = True
    ) -> ReconciliationOutcome:
        """
        Compute passenger and PNR diffs and duplicate keys.

        Args:
            input_data: Input side
            output_data: Output side
            report_same_file_repeats: Also compute the same-source repeat diagnostic

        Returns:
            ReconciliationOutcome
        """
        input_passengers = input_data.passengers
        output_passengers = output_data.passengers
        input_keys = self.passenger_keys(input_passengers)
        output_keys = self.passenger_keys(output_passengers)

        passenger_diff = self.diff_keys(input_keys, output_keys)
        pnr_diff = self.diff_keys(
            (self.key_generator.pnr_key(pnr) for pnr in input_data.pnr_records),
            (self.key_generator.pnr_key(pnr) for pnr in output_data.pnr_records),
        )

        duplicates = self.find_cross_file_duplicates(input_passengers, input_keys)
        repeats = self.find_same_file_repeats(input_passengers, input_keys) if report_same_file_repeats else {}

        logger.info(
            f"Passenger diff: {len(passenger_diff.processed)} processed, "
            f"{len(passenger_diff.dropped)} dropped, {len(passenger_diff.added)} added; "
            f"PNR diff: {len(pnr_diff.processed)} processed, "
            f"{len(pnr_diff.dropped)} dropped, {len(pnr_diff.added)} added"
        )

        return ReconciliationOutcome(
            passenger_diff=passenger_diff,
            pnr_diff=pnr_diff,
            duplicate_keys=duplicates,
            same_file_repeats=repeats,
            input_passenger_keys=tuple(input_keys),
            output_passenger_keys=tuple(output_keys),
        )
