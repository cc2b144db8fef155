import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from databricks.statement.auth.azure import (
    AzureKeyVaultSecretClient,
    AzureManagedIdentityTokenSource,
    get_effective_azure_login_app_id,
)
from databricks.statement.auth.sources import (
    CredentialSource,
    ManagedIdentitySource,
    PlatformTokenSource,
    SecretStoreClient,
    SecretStoreSource,
    StaticTokenSource,
)
from databricks.statement.auth.token import ResolvedCredential, jwt_ttl_hint
from databricks.statement.config import StatementClientConfig
from databricks.statement.exc import NoAuthAvailableError

logger = logging.getLogger(__name__)


class TokenResolver:
    """
    Produces the bearer credential for every request.

    Sources are tried in order: managed identity (if enabled), secret store (if
    a store URL and secret name are configured), then the static token. The
    first credential is cached for CACHE_DURATION_SECONDS, or less when the
    credential is known to expire sooner.

    A resolver serialises resolution with an asyncio.Lock and is meant to be
    used from a single event loop.
    """

    # platform tokens live about an hour, refresh well before that
    CACHE_DURATION_SECONDS = 50 * 60
    EXPIRY_BUFFER_SECONDS = 60

    def __init__(
        self,
        config: StatementClientConfig,
        managed_identity: Optional[PlatformTokenSource] = None,
        secret_client: Optional[SecretStoreClient] = None,
        sources: Optional[Sequence[CredentialSource]] = None,
        clock: Callable[[], float] = time.time,
        cache_duration: float = CACHE_DURATION_SECONDS,
    ):
        self.config = config.validated()
        self._clock = clock
        self._cache_duration = cache_duration
        self._owned_http_client: Optional[httpx.AsyncClient] = None

        if sources is None:
            sources = self._build_sources(managed_identity, secret_client)
        self._sources: List[CredentialSource] = list(sources)

        self._cached: Optional[ResolvedCredential] = None
        self._expires_at = 0.0
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_config(
        cls,
        config: StatementClientConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        managed_identity_client_id: Optional[str] = None,
    ) -> "TokenResolver":
        """
        Build a resolver wired to the Azure managed identity endpoint and Key Vault.
        """

        config = config.validated()
        owned = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient()

        managed_identity = None
        if config.use_managed_identity:
            managed_identity = AzureManagedIdentityTokenSource(
                resource=get_effective_azure_login_app_id(config.workspace_url),
                http_client=http_client,
                client_id=managed_identity_client_id,
            )

        secret_client = None
        if config.key_vault_url and config.token_secret_name:
            secret_client = AzureKeyVaultSecretClient(
                vault_url=config.key_vault_url,
                http_client=http_client,
            )

        resolver = cls(config, managed_identity=managed_identity, secret_client=secret_client)
        if owned:
            resolver._owned_http_client = http_client
        return resolver

    def _build_sources(
        self,
        managed_identity: Optional[PlatformTokenSource],
        secret_client: Optional[SecretStoreClient],
    ) -> List[CredentialSource]:
        config = self.config
        sources: List[CredentialSource] = []

        if config.use_managed_identity:
            if managed_identity is not None:
                sources.append(ManagedIdentitySource(managed_identity, clock=self._clock))
            else:
                logger.debug("Managed identity enabled but no platform token source given")

        if config.key_vault_url and config.token_secret_name:
            if secret_client is not None:
                sources.append(
                    SecretStoreSource(secret_client, config.token_secret_name, clock=self._clock)
                )
            else:
                logger.debug("Secret store configured but no secret store client given")

        if config.access_token:
            sources.append(StaticTokenSource(config.access_token, clock=self._clock))

        return sources

    @property
    def workspace_url(self) -> str:
        return self.config.workspace_url

    @property
    def source_names(self) -> List[str]:
        return [source.name for source in self._sources]

    def _cache_duration_for(self, credential: ResolvedCredential) -> float:
        ttl_hint = credential.ttl_hint
        if ttl_hint is None:
            ttl_hint = jwt_ttl_hint(credential.token, now=credential.acquired_at)
        if ttl_hint is None:
            return self._cache_duration
        return max(min(self._cache_duration, ttl_hint - self.EXPIRY_BUFFER_SECONDS), 0.0)

    def _is_cache_valid(self) -> bool:
        now = self._clock()
        return (
            self._cached is not None
            and now < self._expires_at
            and self._cached.is_valid(now)
        )

    async def _resolve(self) -> ResolvedCredential:
        for source in self._sources:
            credential = await source.try_resolve()
            if credential is not None:
                return credential

        raise NoAuthAvailableError(
            "No valid authentication method available. Configure either: "
            "1) Managed Identity (use_managed_identity=True), "
            "2) Key Vault (key_vault_url + token_secret_name), or "
            "3) Personal Access Token (access_token)",
            {"attempted-sources": self.source_names},
        )

    async def get_credential(self) -> ResolvedCredential:
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if self._is_cache_valid():
                return self._cached  # type: ignore[return-value]

            credential = await self._resolve()
            self._cached = credential
            self._expires_at = self._clock() + self._cache_duration_for(credential)
            logger.debug(
                "Cached credential from %s until %s", credential.source, self._expires_at
            )
            return credential

    async def get_token(self) -> str:
        """Return a bearer token, resolving it when the cached one has expired."""
        credential = await self.get_credential()
        return credential.token

    async def get_authorization_header(self) -> str:
        return f"Bearer {await self.get_token()}"

    async def add_headers(self, request_headers: Dict[str, str]):
        request_headers["Authorization"] = await self.get_authorization_header()

    def invalidate(self) -> None:
        """Drop the cached credential so the next call resolves a fresh one."""
        self._cached = None
        self._expires_at = 0.0

    async def aclose(self) -> None:
        if self._owned_http_client is not None:
            await self._owned_http_client.aclose()
            self._owned_http_client = None
