"""Configuration management for snapshot migrations."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, cast

ContextRemoval = Literal["preserve", "remove"]
CONTEXT_REMOVAL_POLICIES: tuple[str, ...] = ("preserve", "remove")
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class MigrationPolicy:
    """Choices the generator makes where the old and new definitions disagree.

    context_removal:
    - preserve: keep persisted context fields the new definition no longer declares
    - remove: emit a ``remove`` operation for each such field
    """

    context_removal: ContextRemoval = "preserve"


@dataclass
class MigrationConfig:
    """Migration generation settings."""

    context_removal: ContextRemoval = "preserve"


@dataclass
class LoggingConfig:
    """Logging settings for the command-line tool."""

    log_level: str = "INFO"


@dataclass
class Config:
    """Complete application configuration."""

    migration: MigrationConfig = field(default_factory=MigrationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def policy(self) -> MigrationPolicy:
        """Policy handed to the migration generator."""
        return MigrationPolicy(context_removal=self.migration.context_removal)


def _resolve_log_level(configured: str) -> str:
    # LOG_LEVEL environment variable overrides the config file
    log_level = os.environ.get("LOG_LEVEL", configured).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {log_level}. Must be one of: {', '.join(LOG_LEVELS)}")
    return log_level


def default_config() -> Config:
    """Configuration used when no file is given."""

    return Config(logging=LoggingConfig(log_level=_resolve_log_level("INFO")))


def load_config(config_path: str | Path = "statechart-migrate.toml") -> Config:
    """Load configuration from TOML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed configuration object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If a value is invalid
    """
    import tomllib

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, "rb") as f:
        data = tomllib.load(f)

    migration_data = data.get("migration", {})
    context_removal = migration_data.get("context_removal", "preserve")
    if context_removal not in CONTEXT_REMOVAL_POLICIES:
        raise ValueError(
            f"Invalid [migration].context_removal: {context_removal}. "
            f"Must be one of: {', '.join(CONTEXT_REMOVAL_POLICIES)}"
        )

    logging_data = data.get("logging", {})
    log_level = _resolve_log_level(str(logging_data.get("log_level", "INFO")))

    return Config(
        migration=MigrationConfig(context_removal=cast(ContextRemoval, context_removal)),
        logging=LoggingConfig(log_level=log_level),
    )
