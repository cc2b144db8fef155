"""
Request models for the Statement Execution API.

These models define the structures used in statement requests.
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass

from databricks.statement.types import ParameterType, ResultDisposition

ParametersArg = Union[Mapping[str, Any], Sequence["StatementParameter"], None]


@dataclass(frozen=True)
class StatementParameter:
    """Representation of a named parameter for a SQL statement."""

    name: str
    value: Optional[str] = None
    type: str = ParameterType.STRING.value

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "type": self.type}


def bind_parameters(parameters: ParametersArg) -> Tuple[StatementParameter, ...]:
    """
    Turn caller parameters into statement parameters.

    A mapping binds every entry as a STRING parameter, in insertion order, with
    the value rendered through ``str`` (``None`` stays a SQL NULL). A sequence
    of StatementParameter is taken as-is so callers can declare other types.
    """

    if not parameters:
        return ()

    if isinstance(parameters, Mapping):
        return tuple(
            StatementParameter(
                name=str(name),
                value=None if value is None else str(value),
                type=ParameterType.STRING.value,
            )
            for name, value in parameters.items()
        )

    bound = []
    for param in parameters:
        if not isinstance(param, StatementParameter):
            raise TypeError(
                "Expected StatementParameter, got {}".format(type(param).__name__)
            )
        bound.append(param)
    return tuple(bound)


@dataclass(frozen=True)
class ExecuteStatementRequest:
    """Representation of a request to execute a SQL statement."""

    statement: str
    warehouse_id: str
    parameters: Tuple[StatementParameter, ...] = ()
    timeout_seconds: int = 600
    row_limit: Optional[int] = None
    disposition: Optional[str] = ResultDisposition.INLINE.value

    @classmethod
    def build(
        cls, statement: str, parameters: ParametersArg, config
    ) -> "ExecuteStatementRequest":
        """Build a request for ``statement`` using the client settings in ``config``."""
        return cls(
            statement=statement,
            warehouse_id=config.warehouse_id,
            parameters=bind_parameters(parameters),
            timeout_seconds=config.timeout_seconds,
            row_limit=config.row_limit if config.row_limit > 0 else None,
            disposition=config.disposition.value if config.disposition else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the request to a dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "statement": self.statement,
            "warehouse_id": self.warehouse_id,
            "timeout_seconds": self.timeout_seconds,
        }

        if self.row_limit is not None and self.row_limit > 0:
            result["row_limit"] = self.row_limit

        if self.disposition:
            result["disposition"] = self.disposition

        if self.parameters:
            result["parameters"] = [param.to_dict() for param in self.parameters]

        return result
