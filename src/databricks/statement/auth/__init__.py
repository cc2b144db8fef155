from databricks.statement.auth.resolver import TokenResolver
from databricks.statement.auth.sources import (
    CredentialSource,
    ManagedIdentitySource,
    PlatformTokenSource,
    SecretStoreClient,
    SecretStoreSource,
    StaticTokenSource,
)
from databricks.statement.auth.token import AccessToken, ResolvedCredential
from databricks.statement.auth.azure import (
    AzureKeyVaultSecretClient,
    AzureManagedIdentityTokenSource,
)

__all__ = [
    "TokenResolver",
    "CredentialSource",
    "ManagedIdentitySource",
    "PlatformTokenSource",
    "SecretStoreClient",
    "SecretStoreSource",
    "StaticTokenSource",
    "AccessToken",
    "ResolvedCredential",
    "AzureKeyVaultSecretClient",
    "AzureManagedIdentityTokenSource",
]
