"""
Response models for the Statement Execution API.

The server answers both ``POST /statements`` and ``GET /statements/{id}`` with
the same shape. Two layouts are accepted: the flat one (``state``,
``error_message``, ``result.result_columns``) and the nested one the public API
documents (``status.state``, ``status.error``, ``manifest.schema.columns``).
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass

from databricks.statement.exc import InvalidServerResponseError
from databricks.statement.types import StatementState
from databricks.statement.models.base import (
    ExternalLink,
    ResultColumn,
    ResultData,
    ServiceError,
    StatementStatistics,
)


def _parse_state(data: Dict[str, Any]) -> StatementState:
    """Parse the statement state from response data."""
    raw_state = data.get("state")
    if raw_state is None:
        raw_state = (data.get("status") or {}).get("state")

    state = StatementState.from_wire(raw_state)
    if state is None:
        raise InvalidServerResponseError(
            "Invalid statement state: {}".format(raw_state),
            {"statement-id": data.get("statement_id")},
        )
    return state


def _parse_error(data: Dict[str, Any]) -> Optional[ServiceError]:
    """Parse error information from response data."""
    message = data.get("error_message")
    code = data.get("error_code")

    status_error = (data.get("status") or {}).get("error")
    if status_error:
        message = message or status_error.get("message")
        code = code or status_error.get("error_code")

    if message is None and code is None:
        return None
    return ServiceError(message=message, error_code=code)


def _parse_columns(data: Dict[str, Any], result_data: Dict[str, Any]) -> List[ResultColumn]:
    columns_data = result_data.get("result_columns")
    if columns_data is None:
        manifest = data.get("manifest") or {}
        columns_data = (manifest.get("schema") or {}).get("columns")

    columns = []
    for index, col_data in enumerate(columns_data or []):
        position = col_data.get("position")
        columns.append(
            ResultColumn(
                name=col_data.get("name") or "",
                type_text=col_data.get("type_text"),
                position=index if position is None else position,
                type_name=col_data.get("type_name"),
                type_precision=col_data.get("type_precision"),
                type_scale=col_data.get("type_scale"),
            )
        )
    return columns


def _parse_external_links(result_data: Dict[str, Any]) -> Optional[List[ExternalLink]]:
    if "external_links" not in result_data:
        return None

    links = []
    for link_data in result_data["external_links"] or []:
        links.append(
            ExternalLink(
                file_link=link_data.get("fileLink", link_data.get("external_link")),
                expiration_time=link_data.get(
                    "expirationTime", link_data.get("expiration")
                ),
                file_path=link_data.get("filePath"),
                file_size=link_data.get("fileSize", link_data.get("byte_count")),
                chunk_index=link_data.get("chunk_index"),
                row_count=link_data.get("row_count"),
                http_headers=link_data.get("http_headers"),
            )
        )
    return links


def _parse_statistics(result_data: Dict[str, Any]) -> Optional[StatementStatistics]:
    stats_data = result_data.get("statementStats")
    if not stats_data:
        return None

    return StatementStatistics(
        execution_duration_ms=stats_data.get("executionDurationMs"),
        rows_read=stats_data.get("rowsRead"),
        rows_written=stats_data.get("rowsWritten"),
        bytes_read=stats_data.get("bytesRead"),
        bytes_written=stats_data.get("bytesWritten"),
    )


def _parse_result(data: Dict[str, Any]) -> Optional[ResultData]:
    """Parse result data from response data."""
    result_data = data.get("result")
    manifest = data.get("manifest") or {}
    if result_data is None and not manifest:
        return None
    result_data = result_data or {}

    row_count = result_data.get("row_count")
    if row_count is None:
        row_count = manifest.get("total_row_count")

    return ResultData(
        columns=_parse_columns(data, result_data),
        data_array=result_data.get("data_array"),
        row_count=row_count,
        external_links=_parse_external_links(result_data),
        statistics=_parse_statistics(result_data),
        truncated=bool(manifest.get("truncated", False)),
    )


@dataclass(frozen=True)
class StatementResponse:
    """
    Immutable snapshot of a statement, as returned by a submit or a poll.

    Every poll produces a new instance; snapshots are never updated in place.
    """

    statement_id: str
    state: StatementState
    result: Optional[ResultData] = None
    error: Optional[ServiceError] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatementResponse":
        """Create a StatementResponse from a dictionary."""
        if not isinstance(data, dict):
            raise InvalidServerResponseError(
                "Expected a JSON object, got {}".format(type(data).__name__)
            )
        return cls(
            statement_id=data.get("statement_id") or "",
            state=_parse_state(data),
            result=_parse_result(data),
            error=_parse_error(data),
        )

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error else None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def succeeded(self) -> bool:
        return self.state == StatementState.SUCCEEDED

    @property
    def rows(self) -> List[List[Any]]:
        return self.result.rows if self.result else []
