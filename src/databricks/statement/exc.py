import json
import logging

logger = logging.getLogger(__name__)


class Error(Exception):
    """Base class for all errors raised by the statement client.
    `message`: An optional user-friendly error message. It should be short, actionable and stable
    `context`: Optional extra context about the error. MUST be JSON serializable
    """

    def __init__(self, message=None, context=None, *args, **kwargs):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.context = context or {}

    def __str__(self):
        return self.message

    def message_with_context(self):
        return self.message + ": " + json.dumps(self.context, default=str)


class ConfigError(Error):
    """Thrown at construction time if a required setting is missing or malformed"""

    pass


class InvalidArgumentError(Error, ValueError):
    """Thrown if caller input is malformed, e.g. an empty query or a non-positive TTL"""

    pass


class NoAuthAvailableError(Error):
    """Thrown if every configured credential source failed to produce a token"""

    pass


class RequestError(Error):
    """Thrown if the server answered a request with a non-success HTTP status.
    Its context will have the following keys:
    "method": The HTTP method of the request
    "url": The request URL
    "http-code": HTTP response code (if available)
    "body": The (truncated) response body (if available)
    """

    pass


class TransportError(RequestError):
    """Thrown if a request could not be delivered at the network level.
    The retry policy retries this error; once the budget is exhausted the last
    occurrence is raised with "attempt" and "original-exception" in its context.
    """

    pass


class InvalidServerResponseError(Error):
    """Thrown if the server response cannot be parsed, or reports an unknown statement state"""

    pass


class ExecutionFailedError(Error):
    """Thrown if a statement reached a terminal state other than SUCCEEDED.
    Its context will have the following keys:
    "statement-id": The id assigned by the server
    "state": The terminal state name
    "error-code": The server error code (if available)
    """

    def __init__(self, state, message=None, code=None, statement_id=None):
        self.state = state
        self.error_message = message
        self.code = code
        self.statement_id = statement_id
        state_name = getattr(state, "value", state)
        super().__init__(
            "Query execution failed with state '{}'. Error: {}".format(
                state_name, message
            ),
            {
                "statement-id": statement_id,
                "state": state_name,
                "error-code": code,
            },
        )


class DecodeError(Error):
    """Thrown if a result row cannot be converted into the requested record type.
    The statement client catches this and skips the row.
    """

    pass
