"""
Reconciliation Module for PNRGOV/PAXLST Data

This module compares the passenger data of an input folder with the output
produced by a processing pipeline and reports preserved, dropped, added and
duplicated passengers and PNRs.

Main components:
- pnrgov_comparator: Folder-level comparison entry point
- extractor: PNR block and passenger extraction
- flight: Flight details extraction
- comparer: Flight comparison
- matching: Passenger/PNR matching keys
- differ: Key set diff and duplicate detection

Usage:
    from src.reconciliation import PnrgovComparator, ComparisonConfig, MatchingStrategy

    comparator = PnrgovComparator(ComparisonConfig(matching_strategy=MatchingStrategy.PNR_NAME))
    result = comparator.compare("/data/flights/EK0160")

    print(result.dropped_passengers)
    print(result.flight_comparison.differences)
"""

from src.reconciliation.models import (
    ComparisonResult,
    FlightComparison,
    FlightDetails,
    MatchingStrategy,
    PassengerRecord,
    PnrData,
    PnrRecord,
)
from src.reconciliation.config import ComparisonConfig, load_config
from src.reconciliation.comparer import FlightComparer
from src.reconciliation.differ import ReconciliationEngine
from src.reconciliation.extractor import PnrDataExtractor
from src.reconciliation.flight import FlightDetailsExtractor
from src.reconciliation.matching import MatchingKeyGenerator
from src.reconciliation.pnrgov_comparator import PnrgovComparator

__all__ = [
    "ComparisonResult",
    "FlightComparison",
    "FlightDetails",
    "MatchingStrategy",
    "PassengerRecord",
    "PnrData",
    "PnrRecord",
    "ComparisonConfig",
    "load_config",
    "FlightComparer",
    "ReconciliationEngine",
    "PnrDataExtractor",
    "FlightDetailsExtractor",
    "MatchingKeyGenerator",
    "PnrgovComparator",
]

__version__ = "1.0.0"
