"""
Configuration module for the GeoLite lookup API
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigError


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def env_int(key: str, default: int) -> int:
    """Get integer value from environment variable, failing loudly on garbage"""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None


def _read_version_from_repo(default: str = "dev") -> str:
    try:
        # repo root: geolite_api/..
        version_file = Path(__file__).resolve().parents[1] / "VERSION"
        v = version_file.read_text(encoding="utf-8").strip()
        if v:
            return v
    except OSError:
        pass
    return os.getenv("APP_VERSION", default)


API_VERSION = _read_version_from_repo()

DEFAULT_DB_PATH = "./data/GeoLite2-City.mmdb"
DEFAULT_EDITION_ID = "GeoLite2-City"
DEFAULT_DOWNLOAD_URL = "https://download.maxmind.com/geoip/databases/{edition}/download?suffix=tar.gz"

_DAYS_OF_WEEK = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_LOG_FORMATS = ("text", "json")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    """Process configuration, validated once at startup"""

    host: str = "0.0.0.0"
    port: int = 1208

    # Distributor credentials
    account_id: str = ""
    license_key: str = ""

    # Database location and source
    db_path: str = DEFAULT_DB_PATH
    edition_id: str = DEFAULT_EDITION_ID
    download_url: str = DEFAULT_DOWNLOAD_URL
    expected_type: str = "City"
    fetch_timeout_sec: float = 60.0
    staging_dir: Optional[str] = None

    # Refresh schedule
    refresh_enabled: bool = True
    refresh_day_of_week: str = "sun"
    refresh_hour: int = 0
    refresh_minute: int = 0
    manual_refresh_enabled: bool = True
    initial_refresh_attempts: int = 3
    initial_refresh_retry_sec: float = 5.0

    shutdown_timeout_sec: float = 120.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def has_credentials(self) -> bool:
        return bool(self.account_id and self.license_key)

    @property
    def resolved_download_url(self) -> str:
        return self.download_url.format(edition=self.edition_id)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables; raises ConfigError on invalid values"""
        settings = cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=env_int("PORT", 1208),
            account_id=os.getenv("ACCOUNT_ID", "").strip(),
            license_key=os.getenv("LICENSE_KEY", "").strip(),
            db_path=os.getenv("GEOIP_DB_PATH", DEFAULT_DB_PATH),
            edition_id=os.getenv("GEOIP_EDITION_ID", DEFAULT_EDITION_ID),
            download_url=os.getenv("GEOIP_DOWNLOAD_URL", DEFAULT_DOWNLOAD_URL),
            expected_type=os.getenv("GEOIP_EXPECTED_TYPE", "City"),
            fetch_timeout_sec=env_float("FETCH_TIMEOUT_SEC", 60.0),
            staging_dir=os.getenv("STAGING_DIR") or None,
            refresh_enabled=env_bool("REFRESH_ENABLED", True),
            refresh_day_of_week=os.getenv("REFRESH_DAY_OF_WEEK", "sun").lower(),
            refresh_hour=env_int("REFRESH_HOUR", 0),
            refresh_minute=env_int("REFRESH_MINUTE", 0),
            manual_refresh_enabled=env_bool("MANUAL_REFRESH_ENABLED", True),
            initial_refresh_attempts=env_int("INITIAL_REFRESH_ATTEMPTS", 3),
            initial_refresh_retry_sec=env_float("INITIAL_REFRESH_RETRY_SEC", 5.0),
            shutdown_timeout_sec=env_float("SHUTDOWN_TIMEOUT_SEC", 120.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigError(f"PORT out of range: {self.port}")
        if self.refresh_day_of_week not in _DAYS_OF_WEEK:
            raise ConfigError(f"REFRESH_DAY_OF_WEEK must be one of {', '.join(_DAYS_OF_WEEK)}")
        if not 0 <= self.refresh_hour <= 23:
            raise ConfigError(f"REFRESH_HOUR out of range: {self.refresh_hour}")
        if not 0 <= self.refresh_minute <= 59:
            raise ConfigError(f"REFRESH_MINUTE out of range: {self.refresh_minute}")
        if self.initial_refresh_attempts < 1:
            raise ConfigError("INITIAL_REFRESH_ATTEMPTS must be at least 1")
        if self.fetch_timeout_sec <= 0:
            raise ConfigError("FETCH_TIMEOUT_SEC must be positive")
        if self.log_level not in _LOG_LEVELS:
            raise ConfigError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        if self.log_format not in _LOG_FORMATS:
            raise ConfigError(f"LOG_FORMAT must be one of {', '.join(_LOG_FORMATS)}")
        try:
            self.resolved_download_url
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"GEOIP_DOWNLOAD_URL is not a valid template: {e}") from None
