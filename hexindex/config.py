"""
Configuration management for hexindex.

Provides default configuration, loading from <home>/config.toml, and the
immutable IndexerConfig consumed by the chunking pipeline.
"""

import copy
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "HEXINDEX_HOME"

DEFAULT_EXTENSIONS = [
    "rs", "ts", "tsx", "js", "jsx", "py", "go", "java", "c", "cpp", "h", "hpp",
    "cs", "rb", "php", "swift", "kt", "scala", "sql", "sh", "bash", "zsh",
    "yaml", "yml", "json", "toml", "xml", "html", "css", "scss", "md",
]

DEFAULT_IGNORE_DIRS = [
    "node_modules", ".git", "target", "dist", "build", "__pycache__",
    ".venv", "venv", ".idea", ".vscode", "vendor",
]

DEFAULT_CONFIG = {
    "indexer": {
        "max_chunk_lines": 50,
        "min_chunk_lines": 5,
        "overlap_lines": 10,
        "extensions": DEFAULT_EXTENSIONS,
        "ignore_dirs": DEFAULT_IGNORE_DIRS,
        "max_file_size": 1048576,  # 1MB
    },
    "embeddings": {
        "model": "all-MiniLM-L6-v2",
        "dimension": 384,
        "batch_size": 32,
        "device": None,
        "cache_dir": None,
    },
    "store": {
        "path": None,  # defaults to <home>/index.lance
        "max_filter_ids": 256,
    },
    "search": {
        "default_limit": 10,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "json": False,
    },
}


class IndexerConfig(BaseModel):
    """
    Chunking and traversal settings, read-only once loaded.

    overlap_lines must stay below max_chunk_lines so the sliding window
    always moves forward, and min_chunk_lines may not exceed max_chunk_lines.
    """
    model_config = ConfigDict(frozen=True)

    max_chunk_lines: int = Field(default=50, ge=1)
    min_chunk_lines: int = Field(default=5, ge=0)
    overlap_lines: int = Field(default=10, ge=0)
    extensions: tuple[str, ...] = Field(default=tuple(DEFAULT_EXTENSIONS))
    ignore_dirs: tuple[str, ...] = Field(default=tuple(DEFAULT_IGNORE_DIRS))
    max_file_size: int = Field(default=1048576, ge=1)

    @model_validator(mode="after")
    def _check_window_sizes(self) -> "IndexerConfig":
        if self.overlap_lines >= self.max_chunk_lines:
            raise ValueError(
                f"overlap_lines ({self.overlap_lines}) must be smaller than "
                f"max_chunk_lines ({self.max_chunk_lines})"
            )
        if self.min_chunk_lines > self.max_chunk_lines:
            raise ValueError(
                f"min_chunk_lines ({self.min_chunk_lines}) must not exceed "
                f"max_chunk_lines ({self.max_chunk_lines})"
            )
        return self

    def allows_extension(self, extension: str) -> bool:
        """Check an extension (without the dot) against the allow-list; empty allows all."""
        if not self.extensions:
            return True
        return extension.lower() in {ext.lower().lstrip(".") for ext in self.extensions}


def default_home() -> Path:
    """Resolve the hexindex home directory ($HEXINDEX_HOME or ~/.hexindex)."""
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".hexindex"


class Config:
    """
    Configuration manager for hexindex.

    Loads configuration from <home>/config.toml if it exists,
    otherwise uses defaults.
    """

    def __init__(self, home: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            home: hexindex home directory (defaults to $HEXINDEX_HOME or ~/.hexindex)
        """
        self.home = Path(home) if home else default_home()
        self.config_path = self.home / "config.toml"
        self._config = self._load_config()

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file or use defaults."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    user_config = tomllib.load(f)
                logger.info(f"Loaded config from {self.config_path}")
                return self._merge_configs(DEFAULT_CONFIG, user_config)
            except (OSError, tomllib.TOMLDecodeError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.warning("Using default configuration")
                return copy.deepcopy(DEFAULT_CONFIG)
        else:
            logger.debug("No config file found, using defaults")
            return copy.deepcopy(DEFAULT_CONFIG)

    def _merge_configs(self, default: dict, user: dict) -> dict:
        """
        Recursively merge user config with defaults.

        User values take precedence, but missing keys use defaults.
        """
        merged = copy.deepcopy(default)
        for key, value in user.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a configuration value by nested keys.

        Examples:
            config.get("indexer", "max_chunk_lines")
            config.get("embeddings", "model")

        Args:
            *keys: Nested keys to traverse
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return default if value is None else value

    def set(self, *keys: str, value: Any) -> None:
        """
        Set a configuration value by nested keys.

        Args:
            *keys: Nested keys to traverse
            value: Value to set
        """
        if not keys:
            return

        current = self._config
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    @property
    def indexer_config(self) -> IndexerConfig:
        """
        Build the immutable chunking configuration.

        Raises:
            pydantic.ValidationError: If the values break an invariant
                (e.g. overlap_lines >= max_chunk_lines)
        """
        section = self.indexer
        return IndexerConfig(
            max_chunk_lines=section.get("max_chunk_lines", 50),
            min_chunk_lines=section.get("min_chunk_lines", 5),
            overlap_lines=section.get("overlap_lines", 10),
            extensions=tuple(section.get("extensions", DEFAULT_EXTENSIONS)),
            ignore_dirs=tuple(section.get("ignore_dirs", DEFAULT_IGNORE_DIRS)),
            max_file_size=section.get("max_file_size", 1048576),
        )

    @property
    def db_path(self) -> Path:
        """Location of the LanceDB directory."""
        configured = self.get("store", "path")
        return Path(configured).expanduser() if configured else self.home / "index.lance"

    @property
    def model_cache_dir(self) -> Path:
        """Where the embedding model is cached between runs."""
        configured = self.get("embeddings", "cache_dir")
        return Path(configured).expanduser() if configured else self.home / "models"

    @property
    def indexer(self) -> dict[str, Any]:
        """Get indexer configuration."""
        return self._config.get("indexer", {})

    @property
    def embeddings(self) -> dict[str, Any]:
        """Get embeddings configuration."""
        return self._config.get("embeddings", {})

    @property
    def store(self) -> dict[str, Any]:
        """Get store configuration."""
        return self._config.get("store", {})

    @property
    def search(self) -> dict[str, Any]:
        """Get search configuration."""
        return self._config.get("search", {})

    def __repr__(self) -> str:
        """String representation."""
        return f"Config(home={self.home})"
