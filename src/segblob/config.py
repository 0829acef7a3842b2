"""Configuration loading for segblob stores."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


DEFAULT_DATA_DIR = Path.home() / ".segblob"


class StoreConfig(BaseModel):
    """Blob store configuration."""
    database_path: Path = Field(default=DEFAULT_DATA_DIR / "segblob.db")
    collection: str = "blobs"

    # Segment size in bytes; 0 or negative selects DEFAULT_CHUNK_SIZE
    chunk_size: int = 0

    # Segments buffered between a read's worker and its consumer
    read_buffer_segments: int = Field(default=1, ge=1)

    ensure_index_on_open: bool = True

    # Logging configuration, applied by open_store when apply_logging is set
    apply_logging: bool = False
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    structured_logging: bool = True  # JSON format vs human-readable
    log_file: str | None = None  # Optional file path for logs


def load_config(config_path: Path | None = None) -> StoreConfig:
    """Load store configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to ~/.segblob/config.yaml

    Returns:
        StoreConfig instance
    """
    if config_path is None:
        config_path = DEFAULT_DATA_DIR / "config.yaml"

    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return StoreConfig(**data)

    return StoreConfig()


def ensure_directories(config: StoreConfig) -> None:
    """Ensure the database directory exists."""
    config.database_path.parent.mkdir(parents=True, exist_ok=True)
