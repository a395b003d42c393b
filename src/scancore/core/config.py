"""
Configuration module for scancore.

Supports loading from YAML/JSON files with environment variable overrides.
Default values are loaded from defaults.yaml for maintainability.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from scancore.core.models import ScanScope

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section, {})
    return section_defaults.get(key, fallback)


@dataclass
class ScanConfig:
    """Configuration for scan sessions."""

    flush_interval_ms: int = field(
        default_factory=lambda: _get_default("scan", "flush_interval_ms", 500)
    )
    elapsed_tick_seconds: float = field(
        default_factory=lambda: _get_default("scan", "elapsed_tick_seconds", 1.0)
    )
    default_time_range: str = field(
        default_factory=lambda: _get_default("scan", "default_time_range", "1w")
    )


@dataclass
class ViewConfig:
    """Configuration for the result view."""

    page_size: int = field(default_factory=lambda: _get_default("view", "page_size", 100))
    sort_field: str = field(
        default_factory=lambda: _get_default("view", "sort_field", "modified_at")
    )
    sort_order: str = field(default_factory=lambda: _get_default("view", "sort_order", "desc"))


@dataclass
class IndexConfig:
    """Configuration for indexed-file cache refreshes."""

    list_page_size: int = field(
        default_factory=lambda: _get_default("index", "list_page_size", 500)
    )


@dataclass
class BackendConfig:
    """Configuration for the index backend HTTP API."""

    base_url: str = field(
        default_factory=lambda: _get_default("backend", "base_url", "http://127.0.0.1:8890")
    )
    api_key: str = field(default_factory=lambda: _get_default("backend", "api_key", ""))
    timeout: float = field(default_factory=lambda: _get_default("backend", "timeout", 30.0))
    request_source: str = field(
        default_factory=lambda: _get_default("backend", "request_source", "local_ui")
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "INFO"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )


@dataclass
class ScanCoreConfig:
    """Main configuration class for scancore."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    scope: ScanScope = field(
        default_factory=lambda: ScanScope.from_dict(_load_defaults().get("scope") or {})
    )

    @classmethod
    def from_file(cls, path: Path | str) -> "ScanCoreConfig":
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: Path to the configuration file (.yaml, .yml, or .json)

        Returns:
            ScanCoreConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "ScanCoreConfig":
        """Create ScanCoreConfig from a dictionary."""
        config = cls()

        if "scan" in data:
            config.scan = ScanConfig(**data["scan"])
        if "view" in data:
            config.view = ViewConfig(**data["view"])
        if "index" in data:
            config.index = IndexConfig(**data["index"])
        if "backend" in data:
            config.backend = BackendConfig(**data["backend"])
        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])
        if "scope" in data:
            config.scope = ScanScope.from_dict(data["scope"] or {})

        return config

    def apply_env_overrides(self) -> "ScanCoreConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: SCANCORE_<SECTION>_<KEY>
        Examples:
            - SCANCORE_BACKEND_BASE_URL
            - SCANCORE_BACKEND_API_KEY
            - SCANCORE_VIEW_PAGE_SIZE
            - SCANCORE_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            # Scan config
            "SCANCORE_SCAN_FLUSH_INTERVAL_MS": ("scan", "flush_interval_ms", int),
            "SCANCORE_SCAN_ELAPSED_TICK_SECONDS": ("scan", "elapsed_tick_seconds", float),
            "SCANCORE_SCAN_DEFAULT_TIME_RANGE": ("scan", "default_time_range", str),
            # View config
            "SCANCORE_VIEW_PAGE_SIZE": ("view", "page_size", int),
            "SCANCORE_VIEW_SORT_FIELD": ("view", "sort_field", str),
            "SCANCORE_VIEW_SORT_ORDER": ("view", "sort_order", str),
            # Index config
            "SCANCORE_INDEX_LIST_PAGE_SIZE": ("index", "list_page_size", int),
            # Backend config
            "SCANCORE_BACKEND_BASE_URL": ("backend", "base_url", str),
            "SCANCORE_BACKEND_API_KEY": ("backend", "api_key", str),
            "SCANCORE_BACKEND_TIMEOUT": ("backend", "timeout", float),
            "SCANCORE_BACKEND_REQUEST_SOURCE": ("backend", "request_source", str),
            # Logging config
            "SCANCORE_LOGGING_LEVEL": ("logging", "level", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))

        exclusions = os.environ.get("SCANCORE_SCOPE_USE_RECOMMENDED_EXCLUSIONS")
        if exclusions is not None:
            self.scope.use_recommended_exclusions = _parse_bool(exclusions)

        return self

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        data = asdict(self)
        data["scope"] = self.scope.to_dict()
        return data

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: Path | str) -> None:
        """
        Save configuration to a file.

        Args:
            path: Path to save the configuration (.yaml, .yml, or .json)

        Raises:
            ValueError: If the file format is unsupported
        """
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            content = self.to_yaml()
        elif path.suffix == ".json":
            content = self.to_json()
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _parse_bool(value: str) -> bool:
    """Parse a string to boolean."""
    return value.lower() in ("true", "1", "yes", "on")


def load_config(
    config_path: Optional[Path | str] = None, apply_env: bool = True
) -> ScanCoreConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        ScanCoreConfig instance
    """
    if config_path:
        config = ScanCoreConfig.from_file(config_path)
    else:
        config = ScanCoreConfig()

    if apply_env:
        config.apply_env_overrides()

    return config


def configure_logging(config: LoggingConfig) -> None:
    """Apply the configured level and format to the root logger."""
    level = getattr(logging, config.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.format, force=True)
