import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from databricks.statement.exc import ConfigError
from databricks.statement.types import ResultDisposition

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10
DEFAULT_TIMEOUT_SECONDS = 600
DEFAULT_TOKEN_SECRET_NAME = "databricks-pat"


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "y", "on"):
        return True
    if value in ("false", "0", "no", "n", "off"):
        return False
    logger.warning("Ignoring unparsable boolean %s=%r, using %s", name, raw, default)
    return default


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring unparsable integer %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class StatementClientConfig:
    """
    Settings consumed by the statement client and the token resolver.

    :param workspace_url: Base URL of the workspace, e.g. https://adb-123.azuredatabricks.net
    :param warehouse_id: SQL warehouse that executes the statements
    :param poll_interval_seconds: Seconds to wait between two status polls
    :param timeout_seconds: Server-side statement timeout sent with every request
    :param row_limit: Maximum number of rows to return, 0 means unlimited
    :param use_managed_identity: Try the platform managed identity first
    :param key_vault_url: Secret store holding a personal access token
    :param token_secret_name: Name of the secret holding the token
    :param access_token: Static personal access token, used as last resort
    :param disposition: Whether results come back inline or as external links
    :param http_timeout_seconds: Per-request HTTP timeout, defaults to twice timeout_seconds
    :param user_agent: Optional user agent suffix
    """

    workspace_url: str
    warehouse_id: str
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    row_limit: int = 0
    use_managed_identity: bool = True
    key_vault_url: Optional[str] = None
    token_secret_name: Optional[str] = DEFAULT_TOKEN_SECRET_NAME
    access_token: Optional[str] = None
    disposition: ResultDisposition = ResultDisposition.INLINE
    http_timeout_seconds: Optional[float] = None
    user_agent: Optional[str] = None

    def __repr__(self):
        # keep the token out of logs and tracebacks
        masked = "***" if self.access_token else None
        return (
            "StatementClientConfig(workspace_url={!r}, warehouse_id={!r}, "
            "poll_interval_seconds={!r}, timeout_seconds={!r}, row_limit={!r}, "
            "use_managed_identity={!r}, key_vault_url={!r}, token_secret_name={!r}, "
            "access_token={!r}, disposition={})".format(
                self.workspace_url,
                self.warehouse_id,
                self.poll_interval_seconds,
                self.timeout_seconds,
                self.row_limit,
                self.use_managed_identity,
                self.key_vault_url,
                self.token_secret_name,
                masked,
                self.disposition.value,
            )
        )

    @property
    def effective_http_timeout(self) -> float:
        if self.http_timeout_seconds is not None:
            return self.http_timeout_seconds
        return float(self.timeout_seconds * 2)

    def validated(self) -> "StatementClientConfig":
        """
        Check the settings and return a normalized copy.

        Raises:
            ConfigError: if the workspace URL or warehouse id is empty, the URL is
                not https, or a numeric setting is out of range
        """

        workspace_url = (self.workspace_url or "").strip()
        if not workspace_url:
            raise ConfigError("StatementClientConfig.workspace_url is required")
        if not (self.warehouse_id or "").strip():
            raise ConfigError("StatementClientConfig.warehouse_id is required")
        if not workspace_url.lower().startswith("https://"):
            raise ConfigError(
                "workspace_url must start with https://",
                {"workspace-url": workspace_url},
            )
        if self.poll_interval_seconds < 0:
            raise ConfigError("poll_interval_seconds must not be negative")
        if self.timeout_seconds < 0:
            raise ConfigError("timeout_seconds must not be negative")
        if self.row_limit < 0:
            raise ConfigError("row_limit must not be negative")

        return dataclasses.replace(self, workspace_url=workspace_url.rstrip("/"))

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "StatementClientConfig":
        """
        Build a config from DATABRICKS_* environment variables.

        Raises:
            ConfigError: if DATABRICKS_WORKSPACE_URL or DATABRICKS_WAREHOUSE_ID is missing
        """

        env = os.environ if environ is None else environ

        workspace_url = env.get("DATABRICKS_WORKSPACE_URL", "")
        warehouse_id = env.get("DATABRICKS_WAREHOUSE_ID", "")
        if not workspace_url.strip():
            raise ConfigError("DATABRICKS_WORKSPACE_URL environment variable is required")
        if not warehouse_id.strip():
            raise ConfigError("DATABRICKS_WAREHOUSE_ID environment variable is required")

        return cls(
            workspace_url=workspace_url,
            warehouse_id=warehouse_id,
            poll_interval_seconds=_env_int(
                env, "DATABRICKS_WAIT_TIMEOUT_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            timeout_seconds=_env_int(
                env, "DATABRICKS_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS
            ),
            row_limit=_env_int(env, "DATABRICKS_ROW_LIMIT", 0),
            use_managed_identity=_env_bool(env, "DATABRICKS_USE_MANAGED_IDENTITY", True),
            key_vault_url=env.get("DATABRICKS_KEYVAULT_URL") or None,
            token_secret_name=env.get("DATABRICKS_TOKEN_SECRET_NAME")
            or DEFAULT_TOKEN_SECRET_NAME,
            access_token=env.get("DATABRICKS_PERSONAL_ACCESS_TOKEN")
            or env.get("DATABRICKS_TOKEN")
            or None,
        )
