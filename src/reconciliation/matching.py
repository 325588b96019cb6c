"""
Matching Key Generation

Builds comparison keys for passengers and PNRs. The strategy is chosen at
run time and looked up in a registry, so new strategies plug in without
touching callers.
"""

import re
import logging
from typing import Callable, Dict, Optional

from src.reconciliation.models import MatchingStrategy, PassengerRecord, PnrRecord

logger = logging.getLogger(__name__)

KeyFunction = Callable[[PassengerRecord], str]

NO_DOCUMENT = "NODOC"
NO_BIRTH_DATE = "NODOB"

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")
_PUNCTUATION = re.compile(r"[^\w\s]")


def clean(value: Optional[str]) -> str:
    """Strip whitespace and non-alphanumeric characters, upper-case."""
    if not value:
        return ""
    return _NON_ALPHANUMERIC.sub("", value).upper()


def pnr_name_key(passenger: PassengerRecord) -> str:
    return f"{clean(passenger.rloc)}|{clean(passenger.name)}"


def name_doc_dob_key(passenger: PassengerRecord) -> str:
    """
    Name-only key: punctuation becomes a token break, tokens are sorted.

    PNR data carries neither travel document nor date of birth, so both
    are fixed placeholders.
    """
    tokens = _PUNCTUATION.sub(" ", passenger.name or "").upper().split()
    return f"{' '.join(sorted(tokens))}|{NO_DOCUMENT}|{NO_BIRTH_DATE}"


def custom_key(passenger: PassengerRecord) -> str:
    return f"{pnr_name_key(passenger)}|"


DEFAULT_KEY_FUNCTIONS: Dict[MatchingStrategy, KeyFunction] = {
    MatchingStrategy.PNR_NAME: pnr_name_key,
    MatchingStrategy.NAME_DOC_DOB: name_doc_dob_key,
    MatchingStrategy.CUSTOM: custom_key,
}


class MatchingKeyGenerator:
    """Produces passenger and PNR comparison keys for one strategy."""

    def __init__(
        self,
        strategy: MatchingStrategy = MatchingStrategy.PNR_NAME,
        key_functions: Optional[Dict[MatchingStrategy, KeyFunction]] = None
    ):
        """
        Initialize the key generator.

        Args:
            strategy: Strategy used for passenger keys
            key_functions: Strategy registry; defaults to the built-in strategies

        Raises:
            ValueError: If the strategy has no registered key function
        """
        self.key_functions = dict(DEFAULT_KEY_FUNCTIONS if key_functions is None else key_functions)
        if strategy not in self.key_functions:
            raise ValueError(f"No key function registered for strategy {strategy}")
        self.strategy = strategy
        logger.debug(f"Initialized MatchingKeyGenerator with {strategy.value}")

    def register(self, strategy: MatchingStrategy, function: KeyFunction) -> None:
        """Register or replace the key function of a strategy."""
        self.key_functions[strategy] = function

    def passenger_key(self, passenger: PassengerRecord) -> str:
        return self.key_functions[self.strategy](passenger)

    def pnr_key(self, pnr: PnrRecord) -> str:
        return clean(pnr.rloc)
