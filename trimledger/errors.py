"""
Error taxonomy for refused mutations.

The engine raises these; the ledgers catch them at their boundary and hand
the caller a ``CommitResult`` instead.
"""
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"


class TradeError(Exception):
    """Base class for domain refusals."""
    kind: ErrorKind = ErrorKind.INVALID_INPUT


class InvalidInput(TradeError):
    """Non-positive price/shares, shares exceeding remaining, missing field."""
    kind = ErrorKind.INVALID_INPUT


class InvalidState(TradeError):
    """Operation not allowed in the trade's current status (e.g. trimming a closed trade)."""
    kind = ErrorKind.INVALID_STATE


class NotFound(TradeError):
    """Operation on an unknown id."""
    kind = ErrorKind.NOT_FOUND
