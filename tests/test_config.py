"""
Test Suite for Configuration

Tests settings loading, validation and client construction.
"""

import pytest

from idscan.collector import ScanConfigurationError, SupabaseScanClient
from idscan.utils import (
    create_scanner_client,
    load_settings,
    parse_domain_file,
    parse_domains,
    validate_scanner_settings,
)
from idscan.utils.domains import normalize_domain

VALID = {
    "_env_file": None,
    "SCANNER_SUPABASE_URL": "https://abcdefg.supabase.co",
    "SCANNER_SUPABASE_KEY": "k" * 64,
}


def settings(**overrides):
    return load_settings(**{**VALID, **overrides})


class TestSettings:
    """Test settings loading."""

    def test_overrides_and_defaults(self):
        loaded = settings(POLL_INTERVAL_SECONDS=1.0)

        assert loaded.POLL_INTERVAL_SECONDS == 1.0
        assert loaded.POLL_TIMEOUT_SECONDS == 10.0
        assert loaded.MAX_DOMAINS == 20

    def test_environment_is_read(self, monkeypatch):
        monkeypatch.setenv("SCANNER_SUPABASE_URL", "https://fromenv.supabase.co")
        loaded = load_settings(_env_file=None)

        assert loaded.SCANNER_SUPABASE_URL == "https://fromenv.supabase.co"

    def test_functions_url_defaults_to_scanner(self):
        assert settings().functions_url == "https://abcdefg.supabase.co"
        other = settings(SCANNER_FUNCTIONS_URL="https://other.supabase.co")
        assert other.functions_url == "https://other.supabase.co"

    def test_sync_config(self):
        config = settings(POLL_INTERVAL_SECONDS=5, POLL_TIMEOUT_SECONDS=3).sync_config()

        assert config.poll_interval == 5
        assert config.poll_timeout == 3


class TestValidation:
    """Test scanner settings validation."""

    def test_valid_settings_pass(self):
        loaded = settings()
        assert validate_scanner_settings(loaded) is loaded

    def test_all_problems_are_listed(self):
        loaded = settings(
            SCANNER_SUPABASE_URL="http://abcdefg.supabase.co",
            SCANNER_SUPABASE_KEY="short",
            POLL_INTERVAL_SECONDS=0,
        )
        with pytest.raises(ScanConfigurationError) as exc_info:
            validate_scanner_settings(loaded)

        message = exc_info.value.message
        assert message.startswith("Scanner configuration invalid: ")
        assert "must be a valid HTTPS URL" in message
        assert "too short" in message
        assert "POLL_INTERVAL_SECONDS" in message

    def test_missing_values(self):
        with pytest.raises(ScanConfigurationError, match="SCANNER_SUPABASE_KEY is not set"):
            validate_scanner_settings(settings(SCANNER_SUPABASE_KEY=""))

    def test_non_supabase_host(self):
        with pytest.raises(ScanConfigurationError, match="appears invalid"):
            validate_scanner_settings(settings(SCANNER_SUPABASE_URL="https://example.com"))

    @pytest.mark.asyncio
    async def test_create_scanner_client(self):
        client = create_scanner_client(settings(SCANNER_FUNCTIONS_URL="https://fn.supabase.co"))

        assert isinstance(client, SupabaseScanClient)
        assert client.functions_url == "https://fn.supabase.co"
        await client.close()

    def test_create_scanner_client_rejects_invalid(self):
        with pytest.raises(ScanConfigurationError):
            create_scanner_client(settings(SCANNER_SUPABASE_URL=""))


class TestDomainParsing:
    """Test domain list normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("example.com", "example.com"),
        ("https://www.Example.com/news/today", "example.com"),
        ("  http://sub.example.org  ", "sub.example.org"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_domain(raw) == expected

    def test_separators_blanks_and_duplicates(self):
        text = "a.com, https://www.b.com/\n\n,a.com\nC.com"
        assert parse_domains(text) == ["a.com", "b.com", "c.com"]

    def test_limit(self):
        text = ",".join(f"site{i}.com" for i in range(30))
        assert len(parse_domains(text)) == 20
        assert parse_domains(text, limit=2) == ["site0.com", "site1.com"]

    def test_file_with_bom(self, tmp_path):
        path = tmp_path / "domains.csv"
        path.write_text("\ufeffa.com\nb.com\n", encoding="utf-8")

        assert parse_domain_file(path) == ["a.com", "b.com"]
