"""Ingest service configuration from environment variables and YAML."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.errors.exceptions import ConfigurationError

# Default config path: config.yaml in src/ directory
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

# Fixed per-invocation overhead assumed by worker scaling (seconds)
WORKER_OVERHEAD_SECONDS = 4


@dataclass
class IngestConfig:
    """Backup result ingest configuration.

    Load from environment using IngestConfig.from_env(), or from the
    ``ingest:`` section of a YAML file using load_config().
    All timing values in seconds.
    """

    # Worker scaling
    max_workers: int = 5
    max_worker_time_seconds: float = 60

    # Coordinator loop
    poll_interval_seconds: float = 30

    # Messages a single worker drains per invocation
    worker_batch_size: int = 10

    # Kafka queue adapter
    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_topic: str = "backup.results.received"
    kafka_consumer_group: str = "backup-ingest-worker"
    kafka_security_protocol: str = "PLAINTEXT"

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be at least 1, got {self.max_workers}"
            )
        if self.max_worker_time_seconds <= WORKER_OVERHEAD_SECONDS:
            raise ConfigurationError(
                "max_worker_time_seconds must be greater than "
                f"{WORKER_OVERHEAD_SECONDS}, got {self.max_worker_time_seconds}"
            )
        if self.poll_interval_seconds < 0:
            raise ConfigurationError(
                f"poll_interval_seconds cannot be negative, got {self.poll_interval_seconds}"
            )
        if self.worker_batch_size < 1:
            raise ConfigurationError(
                f"worker_batch_size must be at least 1, got {self.worker_batch_size}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestConfig":
        """Build configuration from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        config = cls(**{k: v for k, v in data.items() if k in known})
        config.validate()
        return config

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Load configuration from environment variables.

        Optional environment variables (with defaults):
            INGEST_WORKER_MAX: 5
            INGEST_WORKER_MAX_TIME: 60 (seconds)
            INGEST_POLL_INTERVAL_SECONDS: 30
            INGEST_WORKER_BATCH_SIZE: 10
            KAFKA_BOOTSTRAP_SERVERS: localhost:9092
            KAFKA_INGEST_TOPIC: backup.results.received
            KAFKA_CONSUMER_GROUP: backup-ingest-worker
            KAFKA_SECURITY_PROTOCOL: PLAINTEXT

        Raises:
            ConfigurationError: If a value cannot be parsed or is out of range
        """
        return cls.from_dict(_read_env_overrides())


def _read_env_overrides() -> Dict[str, Any]:
    env_map = {
        "INGEST_WORKER_MAX": ("max_workers", int),
        "INGEST_WORKER_MAX_TIME": ("max_worker_time_seconds", float),
        "INGEST_POLL_INTERVAL_SECONDS": ("poll_interval_seconds", float),
        "INGEST_WORKER_BATCH_SIZE": ("worker_batch_size", int),
        "KAFKA_BOOTSTRAP_SERVERS": ("kafka_bootstrap_servers", str),
        "KAFKA_INGEST_TOPIC": ("kafka_topic", str),
        "KAFKA_CONSUMER_GROUP": ("kafka_consumer_group", str),
        "KAFKA_SECURITY_PROTOCOL": ("kafka_security_protocol", str),
    }

    overrides: Dict[str, Any] = {}
    for env_name, (field_name, cast) in env_map.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            overrides[field_name] = cast(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid value for {env_name}: {raw!r}", cause=e
            ) from e
    return overrides


def load_config(config_path: Optional[Path] = None) -> IngestConfig:
    """Load configuration from YAML with environment variable overrides.

    Reads the ``ingest:`` section of the YAML file. Environment variables
    take precedence over file values. A missing file falls back to
    environment variables and defaults.

    Args:
        config_path: Path to YAML file (default: src/config.yaml)

    Returns:
        Validated IngestConfig

    Raises:
        ConfigurationError: If the file is malformed or values are invalid
    """
    path = config_path or DEFAULT_CONFIG_PATH

    file_values: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {path}", cause=e) from e

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Expected a mapping at top level of {path}")

        section = raw.get("ingest", {})
        if not isinstance(section, dict):
            raise ConfigurationError(f"'ingest' section of {path} must be a mapping")
        file_values.update(section)
    elif config_path is not None:
        raise ConfigurationError(f"Config file not found: {path}")

    file_values.update(_read_env_overrides())
    try:
        return IngestConfig.from_dict(file_values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration in {path}", cause=e) from e
