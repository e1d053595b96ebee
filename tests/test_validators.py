"""
Tests for credential validation, configuration, token storage and logging setup
"""

import logging
import os
import stat

import pytest

from storefront.auth import SESSION_TOKEN_KEY, FileTokenStorage, MemoryTokenStorage, create_token_storage
from storefront.config import Settings, check_supabase_config, require_supabase_config
from storefront.errors import ConfigurationError, ValidationError
from storefront.logging import PACKAGE_LOGGER, configure_logging, sanitize_id_for_logging, sanitize_string_for_logging
from storefront.utils.validation import require_credentials, validate_email, validate_password

VALID_KEY = "eyJ" + "x" * 150


class TestCredentials:
    """Tests for email/password validation."""

    @pytest.mark.parametrize("email", ["ann@example.com", "a.b+c@shop.co.uk"])
    def test_valid_emails(self, email):
        assert validate_email(email)

    @pytest.mark.parametrize("email", ["", "ann", "ann@", "ann@example", "a n@example.com"])
    def test_invalid_emails(self, email):
        assert not validate_email(email)

    def test_strong_password(self):
        assert validate_password("Secret1!") == []

    def test_weak_password_lists_every_problem(self):
        problems = validate_password("abc")

        assert len(problems) == 4
        assert any("at least 6" in p for p in problems)

    def test_require_credentials_strips_email(self):
        assert require_credentials("  ann@example.com ", "pw") == "ann@example.com"

    @pytest.mark.parametrize(
        "email,password,field",
        [
            ("", "pw", "email"),
            ("nope", "pw", "email"),
            ("ann@example.com", "", "password"),
        ],
    )
    def test_require_credentials_rejects(self, email, password, field):
        with pytest.raises(ValidationError) as exc_info:
            require_credentials(email, password)

        assert exc_info.value.field == field


class TestSettings:
    """Tests for Settings and Supabase config checks."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_MODE", "Development")
        monkeypatch.setenv("STOREFRONT_API_URL", "https://api.shop.test")
        monkeypatch.setenv("STOREFRONT_REQUEST_TIMEOUT", "3.5")
        monkeypatch.delenv("STOREFRONT_DEV_PROXY_URL", raising=False)

        settings = Settings.from_env()

        assert settings.is_development
        assert settings.api_url == "https://api.shop.test"
        assert settings.request_timeout == 3.5
        assert settings.dev_proxy_url == "http://localhost:4000"

    def test_bad_timeout(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_REQUEST_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError):
            Settings.from_env()

    def test_anon_key_not_in_repr(self):
        assert VALID_KEY not in repr(Settings(supabase_anon_key=VALID_KEY))

    def test_valid_supabase_config(self):
        settings = Settings(supabase_url="https://abc.supabase.co", supabase_anon_key=VALID_KEY)

        check = check_supabase_config(settings)

        assert check.is_configured
        assert require_supabase_config(settings) == ("https://abc.supabase.co", VALID_KEY)

    def test_missing_supabase_config(self):
        check = check_supabase_config(Settings())

        assert not check.url_present
        assert not check.key_present
        assert len(check.errors) == 2
        with pytest.raises(ConfigurationError) as exc_info:
            require_supabase_config(Settings())
        assert exc_info.value.code == "SUPABASE_NOT_CONFIGURED"

    def test_malformed_supabase_config(self):
        check = check_supabase_config(Settings(supabase_url="abc.supabase.co", supabase_anon_key="short"))

        assert not check.url_valid
        assert not check.key_valid
        assert len(check.errors) == 2


class TestTokenStorage:
    def test_memory_storage(self):
        storage = MemoryTokenStorage()
        storage.set(SESSION_TOKEN_KEY, "tok")

        assert storage.get(SESSION_TOKEN_KEY) == "tok"
        storage.remove(SESSION_TOKEN_KEY)
        storage.remove(SESSION_TOKEN_KEY)
        assert storage.get(SESSION_TOKEN_KEY) is None

    def test_file_storage_persists_across_instances(self, tmp_path):
        path = tmp_path / "auth" / "session.json"
        FileTokenStorage(path).set(SESSION_TOKEN_KEY, "tok")

        assert FileTokenStorage(path).get(SESSION_TOKEN_KEY) == "tok"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

        FileTokenStorage(path).remove(SESSION_TOKEN_KEY)
        assert FileTokenStorage(path).get(SESSION_TOKEN_KEY) is None

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")

        assert FileTokenStorage(path).get(SESSION_TOKEN_KEY) is None

    def test_factory(self, tmp_path):
        assert isinstance(create_token_storage(None), MemoryTokenStorage)
        assert isinstance(create_token_storage(str(tmp_path / "t.json")), FileTokenStorage)


class TestLogSanitizing:
    def test_id_truncated(self):
        assert sanitize_id_for_logging("abcdefghijkl") == "abcdefgh"
        assert sanitize_id_for_logging(None) == "N/A"

    def test_newlines_escaped(self):
        assert sanitize_string_for_logging("a\nfake entry") == "a\\nfake entry"
        assert sanitize_string_for_logging("x" * 60, max_length=10) == "x" * 10 + "..."


class TestLoggingSetup:
    @pytest.fixture
    def package_logger(self):
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        handlers, level = list(package_logger.handlers), package_logger.level
        yield package_logger
        package_logger.handlers[:] = handlers
        package_logger.setLevel(level)

    def test_import_leaves_root_logger_alone(self, package_logger):
        assert any(isinstance(h, logging.NullHandler) for h in package_logger.handlers)
        assert not any(getattr(h, "_storefront_stdout", False) for h in logging.getLogger().handlers)

    def test_configure_attaches_one_handler(self, package_logger, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        configure_logging()
        configure_logging(logging.WARNING)

        stdout_handlers = [h for h in package_logger.handlers if getattr(h, "_storefront_stdout", False)]
        assert len(stdout_handlers) == 1
        assert stdout_handlers[0].level == logging.WARNING
        assert package_logger.level == logging.WARNING
