"""
Flight Comparer for PNRGOV Reconciliation

Compares the flight identity of the input and output messages field by
field and reports readable differences.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from src.reconciliation.flight import normalize_flight_number
from src.reconciliation.models import FlightComparison, FlightDetails

logger = logging.getLogger(__name__)

# (label, attribute) pairs compared in this order
COMPARED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("Flight Number", "flight_number"),
    ("Route", "route"),
    ("Departure Date", "departure_date"),
    ("Departure Time", "departure_time"),
)


class FlightComparer:
    """
    Compares FlightDetails of the input and output side.

    Flight numbers are compared after normalization; other fields are
    compared case-insensitively with surrounding whitespace ignored.
    """

    def __init__(self, fields: Tuple[Tuple[str, str], ...] = COMPARED_FIELDS):
        """
        Initialize the flight comparer.

        Args:
            fields: (label, attribute) pairs to compare
        """
        self.fields = fields
        logger.debug("Initialized FlightComparer")

    def normalize_flight(self, details: FlightDetails) -> Dict[str, Any]:
        """
        Normalize the compared fields of a flight.

        Args:
            details: Flight details

        Returns:
            Mapping attribute -> normalized value
        """
        normalized = {}
        for _, attribute in self.fields:
            value = getattr(details, attribute, None)
            if attribute == "flight_number":
                value = normalize_flight_number(value)
            elif isinstance(value, str):
                value = value.strip().upper()
            normalized[attribute] = value or None
        return normalized

    def compare(
        self,
        input_flight: Optional[FlightDetails],
        output_flight: Optional[FlightDetails]
    ) -> FlightComparison:
        """
        Compare two flights.

        Args:
            input_flight: Flight of the input side
            output_flight: Flight of the output side

        Returns:
            FlightComparison; never a match when either side is missing
        """
        if input_flight is None or output_flight is None:
            missing = [
                side for side, details in (("input", input_flight), ("output", output_flight))
                if details is None
            ]
            difference = f"Flight details not found in {' and '.join(missing)}"
            logger.warning(difference)
            return FlightComparison(input_flight, output_flight, False, (difference,))

        differences = self.find_differences(input_flight, output_flight)
        if differences:
            logger.warning(f"Flight mismatch: {'; '.join(differences)}")

        return FlightComparison(input_flight, output_flight, not differences, tuple(differences))

    def find_differences(self, input_flight: FlightDetails, output_flight: FlightDetails) -> List[str]:
        """
        List readable differences between two flights.

        Returns:
            Strings like "Flight Number: Input(EK0160) vs Output(EK161)"
        """
        norm_input = self.normalize_flight(input_flight)
        norm_output = self.normalize_flight(output_flight)

        differences = []
        for label, attribute in self.fields:
            if norm_input[attribute] != norm_output[attribute]:
                differences.append(
                    f"{label}: Input({getattr(input_flight, attribute)}) "
                    f"vs Output({getattr(output_flight, attribute)})"
                )
        return differences
