"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Settings are built explicitly with ``load_settings()`` and handed to
``create_scanner_client()`` and the synchronizer; nothing is read from
the environment at import time.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings

from idscan.collector.client import RetryConfig, ScanConfigurationError, SupabaseScanClient
from idscan.sync.synchronizer import SyncConfig


MIN_KEY_LENGTH = 50


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Scanner Supabase project (Required)
    SCANNER_SUPABASE_URL: str = ""
    SCANNER_SUPABASE_KEY: str = ""

    # Project hosting the scan-domain edge function (defaults to the scanner URL)
    SCANNER_FUNCTIONS_URL: Optional[str] = None

    # Synchronization
    POLL_INTERVAL_SECONDS: float = 2.5
    POLL_TIMEOUT_SECONDS: float = 10.0

    # Timeouts
    API_TIMEOUT: int = 30

    # Scoring
    ADS_PER_PAGE: int = 4

    # Limits
    MAX_DOMAINS: int = 20
    MAX_TRACKED_SCANS: int = 100  # API registry; finished scans beyond this are evicted

    # Application Settings
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def functions_url(self) -> str:
        return self.SCANNER_FUNCTIONS_URL or self.SCANNER_SUPABASE_URL

    def sync_config(self) -> SyncConfig:
        return SyncConfig(
            poll_interval=self.POLL_INTERVAL_SECONDS,
            poll_timeout=self.POLL_TIMEOUT_SECONDS,
        )


def load_settings(**overrides) -> Settings:
    """Build a fresh settings instance; keyword overrides win over the environment."""
    return Settings(**overrides)


def _url_problems(name: str, url: str) -> List[str]:
    if not url:
        return [f"{name} is not set. Expected format: https://[project-id].supabase.co"]
    if not url.startswith("https://"):
        return [f"{name} must be a valid HTTPS URL. Got: {url}"]
    if ".supabase.co" not in url:
        return [f"{name} appears invalid. Expected format: https://[project-id].supabase.co"]
    return []


def validate_scanner_settings(settings: Settings) -> Settings:
    """
    Check scanner connection settings.

    Returns:
        The same settings when valid

    Raises:
        ScanConfigurationError: Listing every problem found
    """
    problems = _url_problems("SCANNER_SUPABASE_URL", settings.SCANNER_SUPABASE_URL)
    if settings.SCANNER_FUNCTIONS_URL:
        problems += _url_problems("SCANNER_FUNCTIONS_URL", settings.SCANNER_FUNCTIONS_URL)

    if not settings.SCANNER_SUPABASE_KEY:
        problems.append("SCANNER_SUPABASE_KEY is not set.")
    elif len(settings.SCANNER_SUPABASE_KEY) < MIN_KEY_LENGTH:
        problems.append("SCANNER_SUPABASE_KEY appears invalid (too short).")

    if settings.POLL_INTERVAL_SECONDS <= 0:
        problems.append("POLL_INTERVAL_SECONDS must be positive.")
    if settings.POLL_TIMEOUT_SECONDS <= 0:
        problems.append("POLL_TIMEOUT_SECONDS must be positive.")

    if problems:
        raise ScanConfigurationError("Scanner configuration invalid: " + "; ".join(problems))
    return settings


def create_scanner_client(
    settings: Settings,
    retry_config: Optional[RetryConfig] = None,
) -> SupabaseScanClient:
    """
    Validate settings and build the scanner backend client.

    Raises:
        ScanConfigurationError: If the settings are unusable
    """
    validate_scanner_settings(settings)
    return SupabaseScanClient(
        supabase_url=settings.SCANNER_SUPABASE_URL,
        supabase_key=settings.SCANNER_SUPABASE_KEY,
        functions_url=settings.functions_url,
        retry_config=retry_config,
        timeout=float(settings.API_TIMEOUT),
    )
