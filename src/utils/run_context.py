"""
Run Context Utility for Reconciliation Runs

Tracks the id of the comparison run executing in the current context so that
every log line emitted while comparing a folder can be correlated, and
provides the cancellation token checked between files and messages.
"""

import uuid
import threading
import contextvars
from typing import Optional
import logging

from src.utils.errors import OperationCancelled

logger = logging.getLogger(__name__)

# Context variable for the active run id
_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'run_id',
    default=None
)


def generate_run_id() -> str:
    """
    Generate a new run id using UUID4.

    Returns:
        String representation of a UUID4
    """
    return str(uuid.uuid4())


def get_run_id() -> Optional[str]:
    """
    Get the active run id.

    Returns:
        Current run id or None outside a run
    """
    return _run_id.get()


def set_run_id(run_id: str) -> None:
    """
    Set the run id in the current context.

    Args:
        run_id: Run id to set

    Raises:
        ValueError: If run_id is empty or not a string
    """
    if not run_id or not isinstance(run_id, str):
        raise ValueError("Run id must be a non-empty string")

    _run_id.set(run_id)


def clear_run_id() -> None:
    """Clear the run id from context."""
    _run_id.set(None)


class RunContext:
    """
    Context manager scoping a run id to one comparison.

    The previous run id (if any) is restored on exit, so nested or
    sequential runs in the same thread keep their own ids.
    """

    def __init__(self, run_id: Optional[str] = None):
        """
        Initialize run context.

        Args:
            run_id: Optional run id to use; generated when omitted
        """
        self.run_id = run_id
        self._token = None

    def __enter__(self) -> str:
        if not self.run_id:
            self.run_id = generate_run_id()
        if not isinstance(self.run_id, str):
            raise ValueError("Run id must be a non-empty string")

        self._token = _run_id.set(self.run_id)
        logger.debug(f"Entered run context: {self.run_id}")
        return self.run_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        _run_id.reset(self._token)
        self._token = None
        logger.debug(f"Left run context: {self.run_id}")


def run_id_filter(record):
    """
    Logging filter to add the run id to log records.

    Args:
        record: Log record to augment

    Returns:
        True (always allow record)
    """
    record.run_id = get_run_id() or "N/A"
    return True


def setup_run_logging(logger_instance: logging.Logger) -> None:
    """
    Configure a logger to stamp run ids on its records.

    Args:
        logger_instance: Logger instance to configure
    """
    logger_instance.addFilter(run_id_filter)


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a running
    comparison.

    The comparison calls `raise_if_cancelled()` at every file and message
    boundary; any thread may call `cancel()`.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        """
        Abort the current operation if cancellation was requested.

        Args:
            where: Boundary description included in the error message

        Raises:
            OperationCancelled: If the token has been cancelled
        """
        if self._event.is_set():
            message = "Comparison cancelled"
            if where:
                message = f"{message} at {where}"
            logger.warning(message)
            raise OperationCancelled(message)
