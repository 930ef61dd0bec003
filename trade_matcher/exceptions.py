"""
Trade Matcher Exceptions
========================

Domain-specific exceptions for explicit error handling.

All exceptions inherit from TradeMatcherError for easy catching.
Each exception type represents a specific failure mode that calling
code may want to handle differently.

Unparsable dates and times are NOT exceptions: they degrade to a missing
value on the execution and only narrow the output (no duration).
"""

from typing import Optional


class TradeMatcherError(Exception):
    """Base exception for all trade matcher errors."""
    pass


class ValidationError(TradeMatcherError):
    """Raised when an execution in the batch breaks a business rule.

    The whole batch is rejected; no partial result is returned.

    Examples:
    - Quantity of zero or less
    - Negative price or commission
    - Empty instrument identifier
    - Side other than BUY or SELL

    Attributes:
        execution_id: External identifier of the offending execution, if it has one
        index: Position of the offending execution in the input batch
    """

    def __init__(
        self,
        message: str,
        execution_id: Optional[str] = None,
        index: Optional[int] = None,
    ):
        self.execution_id = execution_id
        self.index = index
        if execution_id:
            where = f"execution {execution_id!r}"
        elif index is not None:
            where = f"execution at index {index}"
        else:
            where = None
        super().__init__(f"{where}: {message}" if where else message)


class ConfigurationError(TradeMatcherError):
    """Raised when configuration is invalid or inconsistent.

    Examples:
    - max_workers < 1
    - Non-integer TRADE_MATCHER_MAX_WORKERS in the environment
    """
    pass


class StorageException(TradeMatcherError):
    """Raised when a JSON lines read or write fails."""
    pass


class PersistenceError(TradeMatcherError):
    """Raised when a database upsert or load fails.

    The transaction has already been rolled back when this is raised.
    """
    pass
