# config.py

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TABLE_RETRY_SECONDS = 5
DEFAULT_POLL_INTERVAL_SECONDS = 5
DEFAULT_LOG_LEVEL = "INFO"


class ConfigurationError(Exception):
    pass


class MissingConfigurationError(ConfigurationError):
    def __init__(self, name: str):
        super().__init__(f"You must configure the '{name}' environment variable!")
        self.name = name


@dataclass(frozen=True)
class SweeperConfig:
    endpoint_url: str
    region: str
    table_name: str
    ttl_attribute: str
    table_retry_seconds: float = DEFAULT_TABLE_RETRY_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = (env.get(name) or "").strip()
    return value or None


def _required(env: Mapping[str, str], name: str, *fallbacks: str) -> str:
    for key in (name,) + fallbacks:
        value = _get(env, key)
        if value:
            return value
    raise MissingConfigurationError(name)


def _seconds(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"'{name}' must be a number of seconds, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"'{name}' must not be negative, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> SweeperConfig:
    """Reads the sweeper settings from the environment.

    Blank variables are treated as unset. Raises MissingConfigurationError
    naming the first required variable that is absent.
    """
    env = os.environ if env is None else env
    log_level = (_get(env, "LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"'LOG_LEVEL' is not a logging level, got {log_level!r}")
    config = SweeperConfig(
        endpoint_url=_required(env, "AWS_ENDPOINT"),
        region=_required(env, "AWS_REGION", "AWS_DEFAULT_REGION"),
        table_name=_required(env, "TABLE_NAME"),
        ttl_attribute=_required(env, "TTL_ATTRIBUTE"),
        table_retry_seconds=_seconds(env, "TABLE_RETRY_SECONDS", DEFAULT_TABLE_RETRY_SECONDS),
        poll_interval_seconds=_seconds(env, "POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS),
        log_level=log_level,
    )
    logger.debug("Loaded config: table=%s ttl_attribute=%s endpoint=%s",
                 config.table_name, config.ttl_attribute, config.endpoint_url)
    return config
