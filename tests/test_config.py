"""
Tests for configuration dataclasses and environment overrides
"""

import logging
import random
from unittest.mock import patch

import pytest

from objmutex.core.config import BackoffConfig, LogConfig, MutexConfig, RetryConfig, bootstrap_dotenv
from objmutex.core.exceptions import ConfigurationError


class TestBackoffConfig:
    """Test the backoff delay computation"""

    def test_exponential_delays_without_jitter(self):
        """Delays double from the base delay"""
        backoff = BackoffConfig(base_delay=0.1, max_delay=10, exponential_base=2, jitter=False)

        delays = [backoff.compute_delay(attempt) for attempt in range(4)]

        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8])

    def test_delay_capped_at_max(self):
        backoff = BackoffConfig(base_delay=1, max_delay=3, jitter=False)

        assert backoff.compute_delay(10) == 3

    def test_jitter_never_exceeds_max_delay(self):
        """Jitter can stretch a delay but the cap still holds"""
        backoff = BackoffConfig(base_delay=1, max_delay=2, jitter=True)
        rng = random.Random(1234)

        delays = [backoff.compute_delay(attempt, rng=rng) for attempt in range(50)]

        assert all(0 <= d <= 2 for d in delays)

    def test_jitter_adds_randomization(self):
        backoff = BackoffConfig(base_delay=1, max_delay=100, jitter=True)
        rng = random.Random(42)

        delays = {round(backoff.compute_delay(0, rng=rng), 4) for _ in range(10)}

        assert len(delays) > 1
        assert all(0.5 <= d <= 1.5 for d in delays)

    def test_jitter_at_cap_only_shortens_delay(self):
        """Contenders stuck at the cap must not all wake at max_delay"""
        backoff = BackoffConfig(base_delay=1, max_delay=2, jitter=True)
        rng = random.Random(7)

        delays = [backoff.compute_delay(10, rng=rng) for _ in range(200)]

        assert all(1.0 <= d <= 2 for d in delays)
        assert sum(d == 2 for d in delays) < 5
        assert len({round(d, 6) for d in delays}) > 100

    def test_jitter_below_cap_keeps_full_range(self):
        backoff = BackoffConfig(base_delay=1, max_delay=100, jitter=True)
        rng = random.Random(3)

        delays = [backoff.compute_delay(0, rng=rng) for _ in range(200)]

        assert min(delays) < 0.75
        assert max(delays) > 1.25

    def test_huge_attempt_count_does_not_overflow(self):
        backoff = BackoffConfig(base_delay=0.25, max_delay=5, jitter=False)

        assert backoff.compute_delay(10_000) == 5

    def test_negative_attempt_treated_as_first(self):
        backoff = BackoffConfig(base_delay=0.25, max_delay=5, jitter=False)

        assert backoff.compute_delay(-3) == 0.25

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"base_delay": -1}, "base_delay"),
            ({"max_delay": -0.5}, "max_delay"),
            ({"base_delay": 0}, "base_delay"),
            ({"base_delay": 0, "max_delay": 0}, "base_delay"),
            ({"base_delay": 1.0, "max_delay": 0.5}, "max_delay"),
            ({"exponential_base": 0}, "exponential_base"),
        ],
    )
    def test_validate_rejects_invalid_values(self, kwargs, field):
        with pytest.raises(ConfigurationError) as exc_info:
            BackoffConfig(**kwargs).validate()
        assert exc_info.value.field == field

    def test_to_dict(self):
        assert BackoffConfig().to_dict() == {
            "base_delay": 0.25,
            "max_delay": 5.0,
            "exponential_base": 2,
            "jitter": True,
        }


class TestMutexConfigFromEnv:
    """Test environment overrides"""

    def test_defaults_without_environment(self):
        config = MutexConfig.from_env({})

        assert config == MutexConfig()
        assert config.log == LogConfig()
        assert config.retry is None

    def test_overrides_applied(self):
        env = {
            "OBJMUTEX_BACKOFF_BASE_DELAY": "0.5",
            "OBJMUTEX_BACKOFF_MAX_DELAY": "8",
            "OBJMUTEX_BACKOFF_JITTER": "off",
            "OBJMUTEX_MAX_RETRIES": "6",
            "OBJMUTEX_LOG_LEVEL": "debug",
            "OBJMUTEX_LOG_FORMAT": "JSON",
        }

        config = MutexConfig.from_env(env)

        assert config.backoff.base_delay == 0.5
        assert config.backoff.max_delay == 8.0
        assert config.backoff.jitter is False
        assert config.retry.max_retries == 6
        assert config.log.level == "DEBUG"
        assert config.log.format == "json"

    @pytest.mark.parametrize(
        "name, value",
        [
            ("OBJMUTEX_BACKOFF_BASE_DELAY", "fast"),
            ("OBJMUTEX_BACKOFF_BASE_DELAY", "-1"),
            ("OBJMUTEX_BACKOFF_BASE_DELAY", "0"),
            ("OBJMUTEX_BACKOFF_MAX_DELAY", "0"),
            ("OBJMUTEX_BACKOFF_MAX_DELAY", "nan"),
            ("OBJMUTEX_BACKOFF_JITTER", "maybe"),
            ("OBJMUTEX_MAX_RETRIES", "2.5"),
            ("OBJMUTEX_MAX_RETRIES", "-1"),
            ("OBJMUTEX_LOG_LEVEL", "LOUD"),
            ("OBJMUTEX_LOG_FORMAT", "xml"),
        ],
    )
    def test_invalid_values_ignored_with_warning(self, name, value, caplog):
        with caplog.at_level(logging.WARNING):
            config = MutexConfig.from_env({name: value})

        assert config == MutexConfig()
        assert name in caplog.text

    def test_max_retries_enables_retry_policy(self):
        config = MutexConfig.from_env({"OBJMUTEX_MAX_RETRIES": "0"})

        assert config.retry == RetryConfig(max_retries=0)

    def test_log_file_from_environment(self):
        config = MutexConfig.from_env({"OBJMUTEX_LOG_FILE": " /var/log/objmutex.log "})

        assert config.log.file == "/var/log/objmutex.log"

    def test_blank_log_file_is_ignored(self):
        assert MutexConfig.from_env({"OBJMUTEX_LOG_FILE": "  "}).log.file is None

    def test_max_delay_below_base_delay_is_raised(self, caplog):
        env = {"OBJMUTEX_BACKOFF_BASE_DELAY": "3", "OBJMUTEX_BACKOFF_MAX_DELAY": "1"}

        with caplog.at_level(logging.WARNING):
            config = MutexConfig.from_env(env)

        assert config.backoff.base_delay == 3.0
        assert config.backoff.max_delay == 3.0
        assert "invalid backoff window" in caplog.text

    def test_reads_process_environment_by_default(self, monkeypatch):
        monkeypatch.setenv("OBJMUTEX_MAX_RETRIES", "9")

        assert MutexConfig.from_env().retry.max_retries == 9

    def test_loads_env_file_when_requested(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        # setenv first so monkeypatch restores the variable's absence afterwards
        monkeypatch.setenv("OBJMUTEX_BACKOFF_MAX_DELAY", "placeholder")
        monkeypatch.delenv("OBJMUTEX_BACKOFF_MAX_DELAY")
        (tmp_path / ".env").write_text("OBJMUTEX_BACKOFF_MAX_DELAY=12\n", encoding="utf-8")

        config = MutexConfig.from_env(load_env_file=True)

        assert config.backoff.max_delay == 12.0

    def test_env_file_does_not_override_process_environment(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("OBJMUTEX_MAX_RETRIES", "4")
        (tmp_path / ".env").write_text("OBJMUTEX_MAX_RETRIES=11\n", encoding="utf-8")

        config = MutexConfig.from_env(load_env_file=True)

        assert config.retry.max_retries == 4

    def test_env_file_not_loaded_by_default(self):
        with patch("objmutex.core.config.load_dotenv") as mock_load:
            MutexConfig.from_env({})

        mock_load.assert_not_called()


class TestBootstrapDotenv:
    """Test .env loading through python-dotenv"""

    def test_returns_false_without_env_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with patch("objmutex.core.config.find_dotenv", return_value=""):
            assert bootstrap_dotenv(logging.getLogger("test")) is False

    def test_io_errors_are_logged_not_raised(self, tmp_path, monkeypatch, caplog):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("A=1\n", encoding="utf-8")

        with patch("objmutex.core.config.load_dotenv", side_effect=PermissionError("denied")):
            with caplog.at_level(logging.DEBUG):
                assert bootstrap_dotenv(logging.getLogger("test")) is False

        assert "denied" in caplog.text


def test_mutex_config_validate_covers_retry_policy():
    config = MutexConfig(retry=RetryConfig(max_retries=-2))

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate()
    assert exc_info.value.field == "max_retries"


def test_mutex_config_without_retry_policy_validates():
    MutexConfig(retry=None).validate()
