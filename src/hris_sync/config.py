"""
Settings for a sync pass.

Settings are read from the JSON document the surrounding application
maintains (``hrisDbConfig``, ``activeDirectorySettings`` and an optional
``sync`` block), then overridden from the environment, then optionally
completed with credentials from Vault. A SettingsProvider re-reads the
document at the start of every pass; nothing is cached between passes.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

from sync_utils.vault_client import VaultClient

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PRINCIPAL_NAME = "principal-name"
DISTINGUISHED_NAME = "distinguished-name"

_AUTH_FORMAT_ALIASES = {
    "principal-name": PRINCIPAL_NAME,
    "upn": PRINCIPAL_NAME,
    "userprincipalname": PRINCIPAL_NAME,
    "distinguished-name": DISTINGUISHED_NAME,
    "dn": DISTINGUISHED_NAME,
}

SCORERS = ("sequence", "token-sort")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class HrisDatabaseSettings:
    """Connection settings for the HR SQL Server database."""

    enabled: bool = False
    server: str = ""
    port: int = 1433
    database: str = ""
    username: str = ""
    password: str = ""
    schema: str = "dbo"
    table: str = "it_mti_employee_database_tbl"
    driver: str = "ODBC Driver 18 for SQL Server"
    encrypt: bool = False
    trust_server_certificate: bool = True
    login_timeout: int = 10
    query_timeout: int = 60

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HrisDatabaseSettings":
        return cls(
            enabled=_as_bool(data.get("enabled", False)),
            server=data.get("server", ""),
            port=int(data.get("port") or 1433),
            database=data.get("database", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            schema=data.get("schema") or "dbo",
            table=data.get("table") or "it_mti_employee_database_tbl",
            driver=data.get("driver") or "ODBC Driver 18 for SQL Server",
            encrypt=_as_bool(data.get("encrypt", False)),
            trust_server_certificate=_as_bool(data.get("trustServerCertificate", True)),
            login_timeout=int(data.get("loginTimeout", 10)),
            query_timeout=int(data.get("queryTimeout", 60)),
        )


@dataclass(frozen=True)
class DirectorySettings:
    """Connection settings for the directory service."""

    server: str = ""
    base_path: str = ""
    username: str = ""
    password: str = ""
    domain: str = ""
    protocol: str = "ldap"
    port: int | None = None
    auth_format: str = PRINCIPAL_NAME
    verify_tls: bool = False
    connect_timeout: int = 10
    receive_timeout: int = 30
    page_size: int = 200
    bind_retries: int = 2

    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return 636 if self.use_tls else 389

    @property
    def use_tls(self) -> bool:
        return self.protocol == "ldaps"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DirectorySettings":
        return cls(
            server=data.get("server", ""),
            base_path=data.get("baseDN", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            domain=data.get("domain", ""),
            protocol=(data.get("protocol") or "ldap").lower(),
            port=int(data["port"]) if data.get("port") else None,
            auth_format=normalize_auth_format(data.get("authFormat")),
            verify_tls=_as_bool(data.get("verifyTls", False)),
            connect_timeout=int(data.get("connectTimeout", 10)),
            receive_timeout=int(data.get("receiveTimeout", 30)),
            page_size=int(data.get("pageSize", 200)),
            bind_retries=int(data.get("bindRetries", 2)),
        )


@dataclass(frozen=True)
class MatchingSettings:
    fuzzy_enabled: bool = True
    fuzzy_threshold: float = 0.1
    scorer: str = "sequence"


@dataclass(frozen=True)
class SyncSettings:
    """Everything one pass needs."""

    hris: HrisDatabaseSettings = field(default_factory=HrisDatabaseSettings)
    directory: DirectorySettings = field(default_factory=DirectorySettings)
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    case_sensitive_compare: bool = True
    max_workers: int = 4
    extraction_timeout: float = 300.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncSettings":
        sync = data.get("sync", {})
        matching = MatchingSettings(
            fuzzy_enabled=_as_bool(sync.get("fuzzyEnabled", True)),
            fuzzy_threshold=float(sync.get("fuzzyThreshold", 0.1)),
            scorer=sync.get("fuzzyScorer", "sequence"),
        )
        return cls(
            hris=HrisDatabaseSettings.from_dict(data.get("hrisDbConfig", {})),
            directory=DirectorySettings.from_dict(data.get("activeDirectorySettings", {})),
            matching=matching,
            case_sensitive_compare=_as_bool(sync.get("caseSensitiveCompare", True)),
            max_workers=int(sync.get("maxWorkers", 4)),
            extraction_timeout=float(sync.get("extractionTimeout", 300)),
        )

    def validate(self) -> None:
        """
        Check the settings a pass cannot run without.

        Raises:
            ConfigurationError: listing every problem found
        """
        problems = []
        if not self.directory.server:
            problems.append("activeDirectorySettings.server is required")
        if not self.directory.base_path:
            problems.append("activeDirectorySettings.baseDN is required")
        if self.directory.protocol not in ("ldap", "ldaps"):
            problems.append(f"unsupported directory protocol {self.directory.protocol!r}")
        if self.hris.enabled and not (self.hris.server and self.hris.database):
            problems.append("hrisDbConfig.server and hrisDbConfig.database are required")
        if not 0.0 <= self.matching.fuzzy_threshold <= 1.0:
            problems.append("sync.fuzzyThreshold must be between 0 and 1")
        if self.matching.scorer not in SCORERS:
            problems.append(f"sync.fuzzyScorer must be one of {SCORERS}")
        if self.max_workers < 1:
            problems.append("sync.maxWorkers must be at least 1")
        if problems:
            raise ConfigurationError("Invalid settings: " + "; ".join(problems))


def normalize_auth_format(value: str | None) -> str:
    if not value:
        return PRINCIPAL_NAME
    try:
        return _AUTH_FORMAT_ALIASES[value.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown directory authFormat: {value!r}") from None


def apply_env_overrides(settings: SyncSettings) -> SyncSettings:
    """
    Override settings from environment variables

    Environment variables:
        HRIS_DB_SERVER, HRIS_DB_PORT, HRIS_DB_NAME, HRIS_DB_USER, HRIS_DB_PASSWORD
        AD_SERVER, AD_BASE_DN, AD_USERNAME, AD_PASSWORD, AD_DOMAIN, AD_PROTOCOL
        SYNC_MAX_WORKERS, SYNC_FUZZY_THRESHOLD
    """
    hris_env = {
        "server": os.getenv("HRIS_DB_SERVER"),
        "port": int(os.environ["HRIS_DB_PORT"]) if os.getenv("HRIS_DB_PORT") else None,
        "database": os.getenv("HRIS_DB_NAME"),
        "username": os.getenv("HRIS_DB_USER"),
        "password": os.getenv("HRIS_DB_PASSWORD"),
    }
    directory_env = {
        "server": os.getenv("AD_SERVER"),
        "base_path": os.getenv("AD_BASE_DN"),
        "username": os.getenv("AD_USERNAME"),
        "password": os.getenv("AD_PASSWORD"),
        "domain": os.getenv("AD_DOMAIN"),
        "protocol": os.getenv("AD_PROTOCOL", "").lower() or None,
    }

    hris = replace(settings.hris, **{k: v for k, v in hris_env.items() if v is not None})
    directory = replace(
        settings.directory, **{k: v for k, v in directory_env.items() if v is not None}
    )
    matching = settings.matching
    if os.getenv("SYNC_FUZZY_THRESHOLD"):
        matching = replace(matching, fuzzy_threshold=float(os.environ["SYNC_FUZZY_THRESHOLD"]))

    max_workers = settings.max_workers
    if os.getenv("SYNC_MAX_WORKERS"):
        max_workers = int(os.environ["SYNC_MAX_WORKERS"])

    return replace(
        settings, hris=hris, directory=directory, matching=matching, max_workers=max_workers
    )


def apply_vault_credentials(settings: SyncSettings, vault_client: VaultClient) -> SyncSettings:
    """Replace both credential sets with the ones stored in Vault."""
    hris_creds = vault_client.get_credentials("hris")
    directory_creds = vault_client.get_credentials("directory")

    hris = replace(
        settings.hris,
        server=hris_creds["server"],
        database=hris_creds["database"],
        username=hris_creds["username"],
        password=hris_creds["password"],
        port=int(hris_creds.get("port", settings.hris.port)),
    )
    directory = replace(
        settings.directory,
        username=directory_creds["username"],
        password=directory_creds["password"],
    )
    logger.info("Loaded HRIS and directory credentials from Vault")
    return replace(settings, hris=hris, directory=directory)


def load_settings(
    path: str | Path,
    use_vault: bool = False,
    vault_client: VaultClient | None = None,
) -> SyncSettings:
    """
    Load, override and validate settings.

    Args:
        path: JSON settings document
        use_vault: Fetch credentials from Vault after reading the file
        vault_client: Client to use instead of one built from VAULT_* env vars

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    settings_path = Path(path)
    if not settings_path.exists():
        raise ConfigurationError(f"Settings file not found at {settings_path}")

    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Settings file {settings_path} is not valid JSON: {e}") from e

    try:
        settings = apply_env_overrides(SyncSettings.from_dict(data))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in {settings_path}: {e}") from e

    if use_vault:
        try:
            settings = apply_vault_credentials(settings, vault_client or VaultClient())
        except Exception as e:
            raise ConfigurationError(f"Failed to fetch credentials from Vault: {e}") from e

    settings.validate()
    return settings


SettingsProvider = Callable[[], SyncSettings]


class FileSettingsProvider:
    """Re-reads the settings file every time it is called."""

    def __init__(self, path: str | Path, use_vault: bool = False):
        self.path = Path(path)
        self.use_vault = use_vault

    def __call__(self) -> SyncSettings:
        return load_settings(self.path, use_vault=self.use_vault)


class StaticSettingsProvider:
    """Returns the same settings object on every call."""

    def __init__(self, settings: SyncSettings):
        settings.validate()
        self.settings = settings

    def __call__(self) -> SyncSettings:
        return self.settings
