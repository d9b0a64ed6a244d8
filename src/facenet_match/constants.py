"""Centralized constants and configuration loader.

Values are loaded from config/config.yaml when available, otherwise the
defaults below are used.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Path to the default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "config.yaml"

# FaceNet model contract
EMBEDDING_DIM = 512
MATCH_THRESHOLD = 0.7
MODEL_FILENAME = "facenet_512.tflite"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. Uses default if None.

    Returns:
        Configuration dictionary.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    try:
        if path.exists():
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")

    return {}


def _get_nested(config: Dict, *keys: str, default: Any = None) -> Any:
    """Get nested config value with default fallback."""
    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
        else:
            return default
        if value is None:
            return default
    return value


# ============================================================
# FaceNet Model Constants
# ============================================================

@dataclass
class FaceNetConfig:
    """FaceNet embedding and matching constants."""
    # Path to the TFLite model; None searches default locations
    model_path: Optional[str] = None
    # Interpreter threads
    num_threads: int = 1
    # Length of the model output vector
    embedding_dim: int = EMBEDDING_DIM
    # Cosine similarity threshold on a [-1, 1] scale
    match_threshold: float = MATCH_THRESHOLD
    # Crops whose clamped side is not larger than this are rejected
    min_face_size: int = 20

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FaceNetConfig":
        """Create from config dictionary."""
        fn = _get_nested(config, "facenet") or {}

        return cls(
            model_path=fn.get("model_path"),
            num_threads=int(fn.get("num_threads", 1)),
            embedding_dim=int(fn.get("embedding_dim", EMBEDDING_DIM)),
            match_threshold=float(fn.get("match_threshold", MATCH_THRESHOLD)),
            min_face_size=int(fn.get("min_face_size", 20)),
        )


# ============================================================
# Pipeline Constants
# ============================================================

@dataclass
class PipelineSettings:
    """Worker queue constants."""
    # Frames waiting for the worker before new ones are dropped
    queue_size: int = 10
    # Seconds the worker waits on an empty queue before re-checking stop
    poll_interval: float = 0.05

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelineSettings":
        """Create from config dictionary."""
        pl = _get_nested(config, "pipeline") or {}
        return cls(
            queue_size=int(pl.get("queue_size", 10)),
            poll_interval=float(pl.get("poll_interval", 0.05)),
        )


# ============================================================
# Reporting Constants
# ============================================================

@dataclass
class ReportingConfig:
    """Match result upload constants."""
    url: Optional[str] = None
    timeout: float = 5.0
    multipart: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ReportingConfig":
        """Create from config dictionary."""
        rp = _get_nested(config, "reporting") or {}
        return cls(
            url=rp.get("url"),
            timeout=float(rp.get("timeout", 5.0)),
            multipart=bool(rp.get("multipart", False)),
        )


# ============================================================
# Logging Constants
# ============================================================

@dataclass
class LoggingConfig:
    """Logging setup constants."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "LoggingConfig":
        """Create from config dictionary."""
        lg = _get_nested(config, "logging") or {}
        return cls(
            level=str(lg.get("level", "INFO")),
            format=lg.get("format", cls.format),
        )


# ============================================================
# Global Config Instance (lazy loaded)
# ============================================================

class Config:
    """Global configuration singleton."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load()
        return cls._instance

    def _load(self, config_path: Optional[Path] = None) -> None:
        """Load configuration from file."""
        self._config = load_config(config_path)
        self._facenet: Optional[FaceNetConfig] = None
        self._pipeline: Optional[PipelineSettings] = None
        self._reporting: Optional[ReportingConfig] = None
        self._logging: Optional[LoggingConfig] = None

    def reload(self, config_path: Optional[Path] = None) -> None:
        """Reload configuration from file."""
        self._load(config_path)

    @property
    def facenet(self) -> FaceNetConfig:
        """Get FaceNet config."""
        if self._facenet is None:
            self._facenet = FaceNetConfig.from_config(self._config)
        return self._facenet

    @property
    def pipeline(self) -> PipelineSettings:
        """Get pipeline config."""
        if self._pipeline is None:
            self._pipeline = PipelineSettings.from_config(self._config)
        return self._pipeline

    @property
    def reporting(self) -> ReportingConfig:
        """Get reporting config."""
        if self._reporting is None:
            self._reporting = ReportingConfig.from_config(self._config)
        return self._reporting

    @property
    def logging(self) -> LoggingConfig:
        """Get logging config."""
        if self._logging is None:
            self._logging = LoggingConfig.from_config(self._config)
        return self._logging

    def get(self, *keys: str, default: Any = None) -> Any:
        """Get a config value by key path."""
        return _get_nested(self._config, *keys, default=default)


def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()


# Convenience accessors
def get_facenet_config() -> FaceNetConfig:
    """Get FaceNet configuration."""
    return get_config().facenet


def get_pipeline_settings() -> PipelineSettings:
    """Get pipeline configuration."""
    return get_config().pipeline


def get_reporting_config() -> ReportingConfig:
    """Get reporting configuration."""
    return get_config().reporting


def get_logging_config() -> LoggingConfig:
    """Get logging configuration."""
    return get_config().logging
