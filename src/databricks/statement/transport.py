import abc
import logging
from typing import Dict, Optional, Tuple

import httpx

from databricks.statement.exc import TransportError

logger = logging.getLogger(__name__)


class HttpTransport(abc.ABC):
    """
    Minimal asynchronous HTTP interface the statement client talks to.

    Implementations raise TransportError when a request could not be delivered
    at the network level. HTTP error statuses are returned, not raised.
    """

    @abc.abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[bytes] = None,
    ) -> Tuple[int, bytes]:
        ...

    async def aclose(self) -> None:
        pass


class HttpxTransport(HttpTransport):
    """
    HttpTransport over a pooled httpx.AsyncClient.

    The client is safe for concurrent use, so one transport is shared by all
    statements of a StatementExecutionClient.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 1200.0,
        max_connections: int = 10,
    ):
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                limits=httpx.Limits(max_connections=max_connections),
            )
        self._client = client

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[bytes] = None,
    ) -> Tuple[int, bytes]:
        logger.debug("Sending %s request to %s", method, url)
        try:
            response = await self._client.request(
                method=method.upper(), url=url, headers=headers, content=body
            )
        except httpx.TransportError as e:
            raise TransportError(
                "Error during request to server: {}".format(e),
                {
                    "method": method.upper(),
                    "url": url,
                    "original-exception": repr(e),
                },
            ) from e

        return response.status_code, response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
