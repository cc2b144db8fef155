"""
Azure implementations of the platform identity and secret store interfaces.

Both talk plain REST over httpx: the managed identity endpoint (IMDS, or the
App Service identity endpoint when IDENTITY_ENDPOINT is set) and the Key Vault
secrets API.
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from databricks.statement.auth.sources import PlatformTokenSource, SecretStoreClient
from databricks.statement.auth.token import AccessToken

logger = logging.getLogger(__name__)


class AzureAppId(Enum):
    DEV = (".dev.azuredatabricks.net", "62a912ac-b58e-4c1d-89ea-b2dbfc7358fc")
    STAGING = (".staging.azuredatabricks.net", "4a67d088-db5c-48f1-9ff2-0aace800ae68")
    PROD = (".azuredatabricks.net", "2ff814a6-3304-4ab8-85cb-cd0e6f879c1d")


def get_effective_azure_login_app_id(hostname: str) -> str:
    """
    Get the Azure login app ID (the token resource) for a workspace hostname.
    Hosts outside the known domains get the production Databricks resource ID.
    """
    for azure_app_id in AzureAppId:
        domain, app_id = azure_app_id.value
        if domain in hostname:
            return app_id

    return AzureAppId.PROD.value[1]


def _parse_expires_on(payload: Dict[str, Any]) -> Optional[float]:
    expires_on = payload.get("expires_on")
    if expires_on is not None:
        try:
            return float(expires_on)
        except (TypeError, ValueError):
            logger.debug("Unparsable expires_on in identity response: %r", expires_on)
    return None


class AzureManagedIdentityTokenSource(PlatformTokenSource):
    """
    Fetches tokens for ``resource`` from the Azure managed identity endpoint.

    :param resource: Resource (audience) of the token, e.g. the Databricks app id
    :param client_id: Client id of a user-assigned identity, if any
    :param http_client: Shared httpx.AsyncClient
    :param environ: Environment used to detect the App Service identity endpoint
    """

    IMDS_ENDPOINT = "http://169.254.169.254/metadata/identity/oauth2/token"
    IMDS_API_VERSION = "2018-02-01"
    APP_SERVICE_API_VERSION = "2019-08-01"

    def __init__(
        self,
        resource: str,
        http_client: httpx.AsyncClient,
        client_id: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        timeout: float = 10.0,
    ):
        self.resource = resource
        self.client_id = client_id
        self._http_client = http_client
        self._environ = os.environ if environ is None else environ
        self._timeout = timeout

    def _request_args(self):
        params = {"resource": self.resource}
        if self.client_id:
            params["client_id"] = self.client_id

        identity_endpoint = self._environ.get("IDENTITY_ENDPOINT")
        identity_header = self._environ.get("IDENTITY_HEADER")
        if identity_endpoint and identity_header:
            params["api-version"] = self.APP_SERVICE_API_VERSION
            return identity_endpoint, params, {"X-IDENTITY-HEADER": identity_header}

        params["api-version"] = self.IMDS_API_VERSION
        return self.IMDS_ENDPOINT, params, {"Metadata": "true"}

    async def get_token(self) -> AccessToken:
        url, params, headers = self._request_args()
        logger.debug("Requesting managed identity token from %s", url)
        response = await self._http_client.get(
            url, params=params, headers=headers, timeout=self._timeout
        )
        response.raise_for_status()
        payload = response.json()

        access_token = payload.get("access_token")
        if not access_token:
            raise ValueError("Managed identity response did not contain an access_token")
        return AccessToken(token=access_token, expires_on=_parse_expires_on(payload))


class AzureKeyVaultSecretClient(SecretStoreClient):
    """
    Reads secrets from Azure Key Vault through its REST API.

    :param vault_url: e.g. https://my-vault.vault.azure.net
    :param token_source: Issues tokens for the Key Vault resource
    :param http_client: Shared httpx.AsyncClient
    """

    KEY_VAULT_RESOURCE = "https://vault.azure.net"
    API_VERSION = "7.4"

    def __init__(
        self,
        vault_url: str,
        http_client: httpx.AsyncClient,
        token_source: Optional[PlatformTokenSource] = None,
        timeout: float = 10.0,
    ):
        self.vault_url = vault_url.rstrip("/")
        self._http_client = http_client
        self._token_source = token_source or AzureManagedIdentityTokenSource(
            resource=self.KEY_VAULT_RESOURCE, http_client=http_client
        )
        self._timeout = timeout

    async def get_secret(self, name: str) -> str:
        vault_token = await self._token_source.get_token()
        url = "{}/secrets/{}".format(self.vault_url, quote(name, safe=""))
        logger.debug("Reading secret '%s' from %s", name, self.vault_url)
        response = await self._http_client.get(
            url,
            params={"api-version": self.API_VERSION},
            headers={"Authorization": f"Bearer {vault_token.token}"},
            timeout=self._timeout,
        )
        response.raise_for_status()
        value = response.json().get("value")
        if value is None:
            raise ValueError(f"Secret '{name}' has no value")
        return value
