"""
Models for the Statement Execution API.

This package contains data models for statement requests and responses.
"""

from databricks.statement.models.base import (
    ServiceError,
    ResultColumn,
    ExternalLink,
    StatementStatistics,
    ResultData,
)

from databricks.statement.models.requests import (
    StatementParameter,
    ExecuteStatementRequest,
    bind_parameters,
)

from databricks.statement.models.responses import StatementResponse

__all__ = [
    # Base models
    "ServiceError",
    "ResultColumn",
    "ExternalLink",
    "StatementStatistics",
    "ResultData",
    # Request models
    "StatementParameter",
    "ExecuteStatementRequest",
    "bind_parameters",
    # Response models
    "StatementResponse",
]
