"""Startup-time logging of the effective configuration."""

from pydantic import SecretStr

from pickersync.common.config import CommonSettings, settings
from pickersync.common.logging import logger


def effective_config(fields: list[str], source: CommonSettings | None = None) -> dict:
    """Resolved values of `fields` as the process sees them, secrets masked."""

    source = source or settings
    values = source.model_dump(include=set(fields))
    return {name: str(value) if isinstance(value, SecretStr) else value for name, value in values.items()}


def log_startup_config(fields: list[str], source: CommonSettings | None = None) -> None:
    logger.info("startup_config=%s", effective_config(fields, source))
