from __future__ import annotations

import asyncio
import json
import logging
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

from databricks.statement import __version__
from databricks.statement.auth.resolver import TokenResolver
from databricks.statement.config import StatementClientConfig
from databricks.statement.decoder import ResultDecoder
from databricks.statement.exc import (
    DecodeError,
    ExecutionFailedError,
    InvalidArgumentError,
    InvalidServerResponseError,
    RequestError,
)
from databricks.statement.models import (
    ExecuteStatementRequest,
    StatementResponse,
)
from databricks.statement.models.requests import ParametersArg
from databricks.statement.retry import RetryPolicy, SleepFunc
from databricks.statement.transport import HttpTransport, HttpxTransport
from databricks.statement.types import StatementState
from databricks.statement.utils import maybe_await, run_cancellable

logger = logging.getLogger(__name__)

T = TypeVar("T")

RowCallback = Callable[[Any], Union[None, Awaitable[None]]]

_MAX_ERROR_BODY_CHARS = 2000


def _check_query(query: str) -> None:
    if not isinstance(query, str) or not query.strip():
        raise InvalidArgumentError("Query cannot be empty")


class StatementExecutionClient:
    """
    Executes SQL statements through the Statement Execution API.

    A statement is submitted once and then polled until it reaches a terminal
    state. Results are exposed three ways: the raw terminal response
    (``execute_raw``), a list of decoded records (``execute_typed``) and one
    callback per decoded record (``execute_stream`` / ``iter_rows``).

    Every operation accepts an optional ``cancel`` event. Setting it, or
    cancelling the calling task, abandons the in-flight request or poll sleep
    and raises asyncio.CancelledError.
    """

    STATEMENT_PATH = "/api/2.0/sql/statements"
    STATEMENT_PATH_WITH_ID = STATEMENT_PATH + "/{}"
    CANCEL_STATEMENT_PATH_WITH_ID = STATEMENT_PATH + "/{}/cancel"

    def __init__(
        self,
        config: StatementClientConfig,
        token_resolver: TokenResolver,
        transport: Optional[HttpTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        decoder: Optional[ResultDecoder] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the statement client.

        Args:
            config: Client settings; validated and normalized here
            token_resolver: Supplies the Authorization header of every request
            transport: HTTP transport, an HttpxTransport is created if omitted
            retry_policy: Retry policy for network failures, 3 retries by default
            decoder: Row decoder used by execute_typed / execute_stream
            sleep: Coroutine function used between polls
        """

        self.config = config.validated()
        self._auth = token_resolver

        self._owns_transport = transport is None
        self._transport = transport or HttpxTransport(
            timeout=self.config.effective_http_timeout
        )
        self._retry_policy = retry_policy or RetryPolicy(sleep=sleep)
        self._decoder = decoder or ResultDecoder()
        self._sleep = sleep
        self._owns_resolver = False

        user_agent = f"databricks-statement-client/{__version__}"
        if self.config.user_agent:
            user_agent = f"{user_agent} ({self.config.user_agent})"
        self._headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent,
        }

    @classmethod
    def from_config(cls, config: StatementClientConfig, **kwargs) -> "StatementExecutionClient":
        """Build a client with a TokenResolver wired to the Azure credential sources."""
        client = cls(config, TokenResolver.from_config(config), **kwargs)
        client._owns_resolver = True
        return client

    async def __aenter__(self) -> "StatementExecutionClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_transport:
            await self._transport.aclose()
        if self._owns_resolver:
            await self._auth.aclose()

    def _url(self, path: str) -> str:
        return f"{self.config.workspace_url}{path}"

    async def _make_request(
        self, method: str, path: str, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Send one HTTP request and parse its JSON body.

        Raises:
            TransportError: the request could not be delivered
            RequestError: the server answered with a non-2xx status
            InvalidServerResponseError: the body is not valid JSON
        """

        headers = dict(self._headers)
        await self._auth.add_headers(headers)
        body = json.dumps(data).encode("utf-8") if data is not None else None
        url = self._url(path)

        logger.debug("Making %s request to %s", method, path)
        status, content = await self._transport.send(method, url, headers, body)

        if not 200 <= status < 300:
            text = content.decode("utf-8", errors="replace")[:_MAX_ERROR_BODY_CHARS]
            if status == 401:
                # a revoked or rotated token must not stay cached
                self._auth.invalidate()
            logger.error(
                "%s %s failed with status %s: %s", method, path, status, text
            )
            raise RequestError(
                "Databricks API returned {}: {}".format(status, text),
                {"method": method, "url": url, "http-code": status, "body": text},
            )

        if not content:
            return {}
        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise InvalidServerResponseError(
                "Failed to parse Databricks response: {}".format(e),
                {"method": method, "url": url},
            ) from e

    async def _submit(self, request: ExecuteStatementRequest) -> StatementResponse:
        data = await self._retry_policy.run(
            "Execute query",
            lambda: self._make_request("POST", self.STATEMENT_PATH, request.to_dict()),
        )
        return StatementResponse.from_dict(data)

    async def _poll(self, statement_id: str) -> StatementResponse:
        data = await self._retry_policy.run(
            "Poll statement result",
            lambda: self._make_request(
                "GET", self.STATEMENT_PATH_WITH_ID.format(statement_id)
            ),
        )
        return StatementResponse.from_dict(data)

    async def execute_raw(
        self,
        query: str,
        parameters: ParametersArg = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> StatementResponse:
        """
        Execute ``query`` and return its terminal response.

        A FAILED or CANCELED statement is returned, not raised, so callers can
        inspect the error detail.

        Args:
            query: SQL text
            parameters: Mapping bound as STRING named parameters, or a sequence
                of StatementParameter
            cancel: Optional event that aborts the call when set

        Returns:
            StatementResponse: the first response observed in a terminal state

        Raises:
            InvalidArgumentError: if ``query`` is empty, before any request is sent
            TransportError: if a request keeps failing after all retries
        """

        _check_query(query)

        logger.info("Executing query: %s", query)
        request = ExecuteStatementRequest.build(query, parameters, self.config)
        response = await run_cancellable(self._submit(request), cancel)

        while not response.is_terminal:
            if not response.statement_id:
                raise InvalidServerResponseError(
                    "Statement is {} but the server returned no statement id".format(
                        response.state.value
                    )
                )
            logger.debug(
                "Statement %s is in state %s, polling for result...",
                response.statement_id,
                response.state.value,
            )
            await run_cancellable(
                self._sleep(self.config.poll_interval_seconds), cancel
            )
            response = await run_cancellable(self._poll(response.statement_id), cancel)

        if response.succeeded:
            logger.info(
                "Query executed successfully. Returned %s rows",
                response.result.row_count if response.result else 0,
            )
        else:
            logger.error(
                "Query failed with state %s. Error: %s",
                response.state.value,
                response.error_message,
            )
        return response

    def _raise_if_failed(self, response: StatementResponse) -> None:
        if response.state != StatementState.SUCCEEDED:
            raise ExecutionFailedError(
                response.state,
                response.error_message,
                response.error_code,
                response.statement_id,
            )

    def _decode_rows(self, response: StatementResponse, record_type: Type[T]) -> Iterator[T]:
        """
        Decode the rows of a successful response in order.

        Rows that fail to decode are logged and skipped rather than failing the
        whole query, as are rows the record type turns into None.
        """

        result = response.result
        if result is None or not result.rows:
            if result is not None and result.has_external_links:
                logger.warning(
                    "Statement %s returned its rows as external links, which are not fetched",
                    response.statement_id,
                )
            return

        columns = result.ordered_columns
        for index, row in enumerate(result.rows):
            try:
                record = self._decoder.decode_row(row, columns, record_type)
            except DecodeError as e:
                logger.warning(
                    "Skipping row %s of statement %s: %s",
                    index,
                    response.statement_id,
                    e,
                )
                continue
            if record is None:
                continue
            yield record

    async def iter_rows(
        self,
        query: str,
        record_type: Type[T] = dict,  # type: ignore[assignment]
        parameters: ParametersArg = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[T]:
        """
        Execute ``query`` and yield its decoded rows one at a time, in row order.

        Raises:
            ExecutionFailedError: if the statement did not succeed
        """

        response = await self.execute_raw(query, parameters, cancel)
        self._raise_if_failed(response)

        for record in self._decode_rows(response, record_type):
            if cancel is not None and cancel.is_set():
                raise asyncio.CancelledError("Operation canceled")
            yield record

    async def execute_typed(
        self,
        query: str,
        record_type: Type[T] = dict,  # type: ignore[assignment]
        parameters: ParametersArg = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[T]:
        """
        Execute ``query`` and decode every row into ``record_type``.

        Returns:
            List of records in the original row order, empty when the statement
            returned no rows

        Raises:
            InvalidArgumentError: if ``query`` is empty
            ExecutionFailedError: if the statement did not succeed
        """

        _check_query(query)
        return [
            record
            async for record in self.iter_rows(query, record_type, parameters, cancel)
        ]

    async def execute_stream(
        self,
        query: str,
        on_row: RowCallback,
        record_type: Type[T] = dict,  # type: ignore[assignment]
        parameters: ParametersArg = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Execute ``query`` and hand every decoded row to ``on_row``.

        ``on_row`` may be a plain function or a coroutine function. Calls are
        sequential: each one, including its awaited effect, completes before the
        next row is processed.

        Returns:
            Number of rows passed to ``on_row``

        Raises:
            InvalidArgumentError: if ``query`` is empty or ``on_row`` is not callable
            ExecutionFailedError: if the statement did not succeed
        """

        _check_query(query)
        if not callable(on_row):
            raise InvalidArgumentError("on_row must be callable")

        processed = 0
        async for record in self.iter_rows(query, record_type, parameters, cancel):
            await maybe_await(on_row(record))
            processed += 1

        if processed:
            logger.info("Completed processing %s rows", processed)
        else:
            logger.info("Query returned no rows")
        return processed

    async def get_statement(
        self, statement_id: str, cancel: Optional[asyncio.Event] = None
    ) -> StatementResponse:
        """Fetch the current snapshot of a statement."""
        if not statement_id or not statement_id.strip():
            raise InvalidArgumentError("Statement id cannot be empty")
        return await run_cancellable(self._poll(statement_id), cancel)

    async def cancel_statement(self, statement_id: str) -> None:
        """
        Ask the server to cancel a running statement.

        Cancellation is asynchronous server side: the statement moves to
        CANCELED at some later point, which ``get_statement`` will report.
        """

        if not statement_id or not statement_id.strip():
            raise InvalidArgumentError("Statement id cannot be empty")

        logger.info("Canceling statement %s", statement_id)
        await self._retry_policy.run(
            "Cancel statement",
            lambda: self._make_request(
                "POST", self.CANCEL_STATEMENT_PATH_WITH_ID.format(statement_id)
            ),
        )
