from enum import Enum
from typing import Optional


class StatementState(Enum):
    """
    Enum representing the execution state of a statement in Databricks SQL.

    Attributes:
        PENDING: Statement is queued but not yet running
        RUNNING: Statement is currently executing
        SUCCEEDED: Statement completed successfully
        FAILED: Statement failed
        CANCELED: Statement was canceled before completion
        CLOSED: Statement completed and its result was released server side
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    CLOSED = "CLOSED"

    @classmethod
    def from_wire(cls, state: Optional[str]) -> Optional["StatementState"]:
        """
        Map a state string from the Statement Execution API to a StatementState.

        Args:
            state: state string as returned by the server, case-insensitive

        Returns:
            The matching StatementState, or None if the string is not a known state
        """

        if not state:
            return None
        normalized = state.strip().upper()
        # the API spells it CANCELED, older payloads used CANCELLED
        if normalized == "CANCELLED":
            normalized = "CANCELED"
        try:
            return cls(normalized)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self not in (StatementState.PENDING, StatementState.RUNNING)


class ResultDisposition(Enum):
    """Enum for result disposition values."""

    INLINE = "INLINE"
    EXTERNAL_LINKS = "EXTERNAL_LINKS"
    HYBRID = "INLINE_OR_EXTERNAL_LINKS"


class ParameterType(Enum):
    """Declared types for named statement parameters."""

    STRING = "STRING"
    INT = "INT"
    BIGINT = "BIGINT"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
