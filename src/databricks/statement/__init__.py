__version__ = "1.0.0"

from databricks.statement.exc import (
    Error,
    ConfigError,
    InvalidArgumentError,
    NoAuthAvailableError,
    RequestError,
    TransportError,
    InvalidServerResponseError,
    ExecutionFailedError,
    DecodeError,
)
from databricks.statement.types import ParameterType, ResultDisposition, StatementState
from databricks.statement.config import StatementClientConfig
from databricks.statement.models import StatementParameter, StatementResponse
from databricks.statement.decoder import ResultDecoder, column
from databricks.statement.retry import RetryPolicy
from databricks.statement.transport import HttpTransport, HttpxTransport
from databricks.statement.auth import TokenResolver
from databricks.statement.cache import CacheStatistics, ResultCache, make_cache_key
from databricks.statement.client import StatementExecutionClient

__all__ = [
    "__version__",
    "Error",
    "ConfigError",
    "InvalidArgumentError",
    "NoAuthAvailableError",
    "RequestError",
    "TransportError",
    "InvalidServerResponseError",
    "ExecutionFailedError",
    "DecodeError",
    "ParameterType",
    "ResultDisposition",
    "StatementState",
    "StatementClientConfig",
    "StatementParameter",
    "StatementResponse",
    "ResultDecoder",
    "column",
    "RetryPolicy",
    "HttpTransport",
    "HttpxTransport",
    "TokenResolver",
    "CacheStatistics",
    "ResultCache",
    "make_cache_key",
    "StatementExecutionClient",
]
