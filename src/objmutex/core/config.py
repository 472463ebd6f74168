"""Configuration dataclasses for objmutex.

These dataclasses centralize the tunable behavior of the mutex and its
providers. They can be built directly in code or from environment
variables (optionally seeded from a ``.env`` file).
"""

from __future__ import annotations

import logging
import math
import os
import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from dotenv import find_dotenv, load_dotenv

from objmutex.core.constants import (
    DEFAULT_ADAPTER_BASE_DELAY,
    DEFAULT_ADAPTER_MAX_DELAY,
    DEFAULT_ADAPTER_MAX_RETRIES,
    DEFAULT_BACKOFF_BASE_DELAY,
    DEFAULT_BACKOFF_EXPONENTIAL_BASE,
    DEFAULT_BACKOFF_MAX_DELAY,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    ENV_BACKOFF_BASE_DELAY,
    ENV_BACKOFF_JITTER,
    ENV_BACKOFF_MAX_DELAY,
    ENV_LOG_FILE,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_MAX_RETRIES,
    FALSY_VALUES,
    JITTER_RANGE,
    MAX_BACKOFF_EXPONENT,
    TRUTHY_VALUES,
    VALID_LOG_FORMATS,
    VALID_LOG_LEVELS,
)
from objmutex.core.exceptions import ConfigurationError


@dataclass
class BackoffConfig:
    """Configuration for exponential backoff with jitter.

    Attributes:
        base_delay: Delay before the first retry in seconds (default: 0.25)
        max_delay: Upper bound for any single delay in seconds (default: 5.0)
        exponential_base: Multiplier applied per attempt (default: 2)
        jitter: Randomize delays to avoid a thundering herd (default: True)

    Backoff Formula:
        delay = min(base_delay * (exponential_base ** attempt), max_delay)
        if jitter: delay *= random.uniform(0.5, min(1.5, max_delay / delay))

    Near the cap the jitter factor only shrinks the delay, so contenders
    that have all reached ``max_delay`` still spread out.
    """

    base_delay: float = DEFAULT_BACKOFF_BASE_DELAY
    max_delay: float = DEFAULT_BACKOFF_MAX_DELAY
    exponential_base: int = DEFAULT_BACKOFF_EXPONENTIAL_BASE
    jitter: bool = True

    def compute_delay(self, attempt: int, rng: random.Random | None = None) -> float:
        """Return the delay in seconds to wait after the given zero-based attempt."""
        exponent = min(max(0, attempt), MAX_BACKOFF_EXPONENT)
        delay = min(self.base_delay * (self.exponential_base**exponent), self.max_delay)
        if self.jitter and delay > 0:
            uniform = rng.uniform if rng is not None else random.uniform
            low, high = JITTER_RANGE
            delay *= uniform(low, min(high, self.max_delay / delay))
        return max(0.0, delay)

    def validate(self) -> None:
        if not self.base_delay > 0:
            raise ConfigurationError("Backoff base delay must be positive", field="base_delay")
        if not self.max_delay >= self.base_delay:
            raise ConfigurationError(
                "Backoff max delay must not be below the base delay",
                field="max_delay",
                details=f"max_delay={self.max_delay}, base_delay={self.base_delay}",
            )
        if self.exponential_base < 1:
            raise ConfigurationError("Backoff exponential base must be at least 1", field="exponential_base")

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_delay": self.base_delay,
            "max_delay": self.max_delay,
            "exponential_base": self.exponential_base,
            "jitter": self.jitter,
        }


@dataclass
class RetryConfig:
    """Configuration for provider-level retries of transient adapter errors.

    Attributes:
        max_retries: Retry attempts after the initial call (default: 3)
        backoff: Delay policy between attempts (default: 0.1s doubling to 2s)
    """

    max_retries: int = DEFAULT_ADAPTER_MAX_RETRIES
    backoff: BackoffConfig = field(
        default_factory=lambda: BackoffConfig(
            base_delay=DEFAULT_ADAPTER_BASE_DELAY,
            max_delay=DEFAULT_ADAPTER_MAX_DELAY,
        )
    )

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("Max retries must not be negative", field="max_retries")
        self.backoff.validate()


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        format: "text" or "json" (default: "text")
        file: Optional log file path; console only when unset
    """

    level: str = DEFAULT_LOG_LEVEL
    format: str = DEFAULT_LOG_FORMAT
    file: str | None = None


@dataclass
class MutexConfig:
    """Master configuration for mutex and provider behavior.

    Attributes:
        backoff: Delay policy between contended acquisition attempts
        retry: Retry policy for transient provider errors. When set, a
            ``Mutex`` wraps its provider in a ``RetryingProvider``; when
            None (default), provider errors reach the caller unretried.
        log: Logging configuration consumed by ``setup_logging``
    """

    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    retry: RetryConfig | None = None
    log: LogConfig = field(default_factory=LogConfig)

    def validate(self) -> None:
        self.backoff.validate()
        if self.retry is not None:
            self.retry.validate()

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        load_env_file: bool = False,
        logger: logging.Logger | None = None,
    ) -> MutexConfig:
        """Create configuration with environment overrides applied.

        Invalid values are ignored with a warning and the default is kept.
        When ``load_env_file`` is set, a ``.env`` file is loaded into the
        process environment first.
        """
        log = logger or logging.getLogger(__name__)
        if load_env_file:
            bootstrap_dotenv(log)
        env = os.environ if environ is None else environ

        config = cls()
        backoff = config.backoff

        base_delay = _env_value(env, ENV_BACKOFF_BASE_DELAY, float, log, backoff.base_delay, positive=True)
        max_delay = _env_value(env, ENV_BACKOFF_MAX_DELAY, float, log, backoff.max_delay, positive=True)
        if max_delay < base_delay:
            log.warning(
                f"Ignoring invalid backoff window (max_delay={max_delay} < base_delay={base_delay}); "
                f"using max_delay={base_delay}"
            )
            max_delay = base_delay
        backoff.base_delay = base_delay
        backoff.max_delay = max_delay
        backoff.jitter = _env_value(env, ENV_BACKOFF_JITTER, _parse_bool, log, backoff.jitter)

        max_retries = _env_value(env, ENV_MAX_RETRIES, int, log, None, minimum=0)
        if max_retries is not None:
            config.retry = RetryConfig(max_retries=max_retries)

        level = env.get(ENV_LOG_LEVEL)
        if level is not None:
            if level.strip().upper() in VALID_LOG_LEVELS:
                config.log.level = level.strip().upper()
            else:
                log.warning(f"Ignoring invalid {ENV_LOG_LEVEL}={level!r}; using default {config.log.level}")

        log_format = env.get(ENV_LOG_FORMAT)
        if log_format is not None:
            if log_format.strip().lower() in VALID_LOG_FORMATS:
                config.log.format = log_format.strip().lower()
            else:
                log.warning(f"Ignoring invalid {ENV_LOG_FORMAT}={log_format!r}; using default {config.log.format}")

        log_file = env.get(ENV_LOG_FILE, "").strip()
        if log_file:
            config.log.file = log_file

        return config


def bootstrap_dotenv(logger: logging.Logger) -> bool:
    """Load variables from a ``.env`` file in the working directory, if present.

    Variables already set in the environment are not overridden.
    """
    dotenv_path = find_dotenv(usecwd=True)
    if not dotenv_path:
        logger.debug(".env file not found")
        return False
    try:
        loaded = load_dotenv(dotenv_path)
    except OSError as e:
        logger.debug(f"Failed to load .env via python-dotenv: {e}")
        return False
    if loaded:
        logger.debug(f"Loaded environment overrides from {dotenv_path}")
    return loaded


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUTHY_VALUES:
        return True
    if normalized in FALSY_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_env_value(value: str | None, cast: Callable[[str], Any]) -> Any | None:
    """Parse an environment value, returning None when invalid."""
    if value is None:
        return None
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return None
    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


def _env_value(
    env: Mapping[str, str],
    name: str,
    cast: Callable[[str], Any],
    logger: logging.Logger,
    default: Any,
    *,
    minimum: float | None = None,
    positive: bool = False,
) -> Any:
    raw = env.get(name)
    if raw is None:
        return default
    parsed = _parse_env_value(raw, cast)
    if parsed is None or (minimum is not None and parsed < minimum) or (positive and parsed <= 0):
        fallback = f"; using default {default}" if default is not None else ""
        logger.warning(f"Ignoring invalid {name}={raw!r}{fallback}")
        return default
    return parsed
