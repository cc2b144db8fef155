import abc
import logging
import time
from typing import Callable, Optional

from databricks.statement.auth.token import AccessToken, ResolvedCredential

logger = logging.getLogger(__name__)


class PlatformTokenSource(abc.ABC):
    """Protocol for a managed/platform identity endpoint that issues access tokens."""

    @abc.abstractmethod
    async def get_token(self) -> AccessToken:
        ...


class SecretStoreClient(abc.ABC):
    """Protocol for a secret store that holds a personal access token."""

    @abc.abstractmethod
    async def get_secret(self, name: str) -> str:
        ...


class CredentialSource(abc.ABC):
    """
    One step of the credential fallback chain.

    ``try_resolve`` returns None when the source cannot produce a credential;
    expected failures are logged here and never raised to the resolver.
    """

    name: str = "credential-source"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    @abc.abstractmethod
    async def try_resolve(self) -> Optional[ResolvedCredential]:
        ...


class ManagedIdentitySource(CredentialSource):
    name = "managed-identity"

    def __init__(self, token_source: PlatformTokenSource, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._token_source = token_source

    async def try_resolve(self) -> Optional[ResolvedCredential]:
        logger.info("Attempting to acquire token using Managed Identity")
        try:
            access_token = await self._token_source.get_token()
        except Exception as e:
            logger.warning(
                "Managed Identity authentication failed: %s. Trying alternative methods...",
                e,
            )
            return None

        if not access_token or not access_token.token:
            logger.warning("Managed Identity returned an empty token. Trying alternative methods...")
            return None

        now = self._clock()
        ttl_hint = None
        if access_token.expires_on is not None:
            ttl_hint = max(access_token.expires_on - now, 0.0)

        logger.info("Successfully acquired token using Managed Identity")
        return ResolvedCredential(
            token=access_token.token, acquired_at=now, ttl_hint=ttl_hint, source=self.name
        )


class SecretStoreSource(CredentialSource):
    name = "secret-store"

    def __init__(
        self,
        secret_client: SecretStoreClient,
        secret_name: str,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(clock)
        self._secret_client = secret_client
        self._secret_name = secret_name

    async def try_resolve(self) -> Optional[ResolvedCredential]:
        logger.info("Attempting to retrieve token from secret store")
        try:
            secret = await self._secret_client.get_secret(self._secret_name)
        except Exception as e:
            logger.warning(
                "Secret store token retrieval failed: %s. Trying alternative methods...",
                e,
            )
            return None

        if not secret:
            logger.warning(
                "Secret '%s' is empty. Trying alternative methods...", self._secret_name
            )
            return None

        logger.info("Successfully retrieved token from secret store")
        return ResolvedCredential(token=secret, acquired_at=self._clock(), source=self.name)


class StaticTokenSource(CredentialSource):
    name = "static-token"

    def __init__(self, token: Optional[str], clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._token = token

    async def try_resolve(self) -> Optional[ResolvedCredential]:
        if not self._token:
            return None
        logger.info("Using configured Personal Access Token")
        return ResolvedCredential(token=self._token, acquired_at=self._clock(), source=self.name)
