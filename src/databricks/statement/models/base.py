"""
Base models for the Statement Execution API.

These models define the common structures used in statement responses.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ServiceError:
    """Error information returned by the Statement Execution API."""

    message: Optional[str] = None
    error_code: Optional[str] = None


@dataclass(frozen=True)
class ResultColumn:
    """Column metadata of a result set."""

    name: str
    type_text: Optional[str] = None
    position: int = 0
    type_name: Optional[str] = None
    type_precision: Optional[int] = None
    type_scale: Optional[int] = None


@dataclass(frozen=True)
class ExternalLink:
    """External link descriptor for result data too large to be returned inline."""

    file_link: Optional[str] = None
    expiration_time: Optional[str] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    chunk_index: Optional[int] = None
    row_count: Optional[int] = None
    http_headers: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class StatementStatistics:
    """Execution statistics reported for a statement."""

    execution_duration_ms: Optional[int] = None
    rows_read: Optional[int] = None
    rows_written: Optional[int] = None
    bytes_read: Optional[int] = None
    bytes_written: Optional[int] = None


@dataclass(frozen=True)
class ResultData:
    """Result payload of a statement execution."""

    columns: List[ResultColumn] = field(default_factory=list)
    data_array: Optional[List[List[Any]]] = None
    row_count: Optional[int] = None
    external_links: Optional[List[ExternalLink]] = None
    statistics: Optional[StatementStatistics] = None
    truncated: bool = False

    @property
    def column_names(self) -> List[str]:
        """Column names in positional order."""
        return [column.name for column in sorted(self.columns, key=lambda c: c.position)]

    @property
    def ordered_columns(self) -> List[ResultColumn]:
        return sorted(self.columns, key=lambda c: c.position)

    @property
    def rows(self) -> List[List[Any]]:
        return self.data_array or []

    @property
    def has_external_links(self) -> bool:
        return bool(self.external_links)
