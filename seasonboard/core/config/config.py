"""
Static configuration for seasonboard.

Purpose
-------
Provide centralized configuration loaded from environment variables (with
.env support) with sensible defaults, type validation and bounds checking.
Values are read once at startup; the Redis, blob storage and PUBG API
settings require a restart to change.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide typed access to all configuration values
- Validate critical settings on startup
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Cache TTL policy (fixed in the cache store, not configurable)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Class-level attributes, no instantiation
- `Config.load()` runs on import; `Config.validate()` is called by the
  application bootstrap
- Metrics track which values came from environment vs defaults

Environment Variables
---------------------
Required in production:
- PUBG_API_KEY: API key for the PUBG developer API

Optional (with defaults):
- ENVIRONMENT: Environment type (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- REDIS_URL: Standalone Redis URL (default: redis://localhost:6379/0)
- REDIS_CLUSTER_NODES: Comma separated host:port list; enables cluster mode
- REDIS_PASSWORD: Redis password
- BACKUP_ROOT: Directory holding backup containers (default: ./data/backups)
- BACKUP_BUCKET: Container for leaderboard backups (default: pubg-leaderboard)

See individual attributes for complete list.
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()


# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not configured yet at this point
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """Tracks which values came from the environment and any parse errors."""

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the leaderboard cache service.

    Usage
    -----
    >>> Config.validate()
    >>> nodes = Config.REDIS_CLUSTER_NODES
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    _metrics: Optional[_ConfigLoadMetrics] = None
    _validated: bool = False

    # =========================================================================
    # Environment
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None

    PROJECT_ROOT = Path(__file__).resolve().parents[3]

    # =========================================================================
    # Redis
    # =========================================================================

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CLUSTER_NODES: List[str] = []
    REDIS_PASSWORD: Optional[str] = None
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_TX_MAX_ATTEMPTS: int = 5

    # =========================================================================
    # PUBG API
    # =========================================================================

    PUBG_API_KEY: str = ""
    PUBG_API_BASE_URL: str = "https://api.pubg.com"
    PUBG_PLATFORM: str = "steam"
    PUBG_SHARD: str = "pc-na"
    PUBG_GAME_MODE: str = "squad-fpp"
    PUBG_HTTP_TIMEOUT: int = 10

    # =========================================================================
    # Backups
    # =========================================================================

    BACKUP_ROOT: Path = PROJECT_ROOT / "data" / "backups"
    BACKUP_BUCKET: str = "pubg-leaderboard"

    # =========================================================================
    # HTTP
    # =========================================================================

    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080
    REQUEST_TIMEOUT_SECONDS: int = 30

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls) -> None:
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Out-of-range and unparsable values fall back to `default` and are
        recorded as validation errors.

        Example
        -------
        >>> Config._safe_int("REDIS_MAX_CONNECTIONS", 50, min_val=1, max_val=500)
        50
        """
        cls._init_metrics()
        assert cls._metrics is not None

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()
        assert cls._metrics is not None

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            value = True
        elif normalized in {"false", "no", "0", "off"}:
            value = False
        else:
            error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        cls._init_metrics()
        assert cls._metrics is not None

        value = os.getenv(key, default)
        cls._metrics.record_env_load(key, key in os.environ, default)
        return value

    @classmethod
    def _safe_list(cls, key: str) -> List[str]:
        """Parse a comma separated list, dropping empty items."""
        raw_value = cls._safe_str(key, "")
        return [item.strip() for item in raw_value.split(",") if item.strip()]

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """Load all configuration from environment variables."""
        cls._init_metrics()

        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = bool(cls._safe_bool("DEBUG", False))
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)

        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_CLUSTER_NODES = cls._safe_list("REDIS_CLUSTER_NODES")
        cls.REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int("REDIS_SOCKET_TIMEOUT", 5, min_val=1, max_val=60)
        cls.REDIS_MAX_CONNECTIONS = cls._safe_int(
            "REDIS_MAX_CONNECTIONS", 50, min_val=1, max_val=500
        )
        cls.REDIS_TX_MAX_ATTEMPTS = cls._safe_int(
            "REDIS_TX_MAX_ATTEMPTS", 5, min_val=1, max_val=50
        )

        cls.PUBG_API_KEY = cls._safe_str("PUBG_API_KEY", "")
        cls.PUBG_API_BASE_URL = cls._safe_str("PUBG_API_BASE_URL", "https://api.pubg.com")
        cls.PUBG_PLATFORM = cls._safe_str("PUBG_PLATFORM", "steam")
        cls.PUBG_SHARD = cls._safe_str("PUBG_SHARD", "pc-na")
        cls.PUBG_GAME_MODE = cls._safe_str("PUBG_GAME_MODE", "squad-fpp")
        cls.PUBG_HTTP_TIMEOUT = cls._safe_int("PUBG_HTTP_TIMEOUT", 10, min_val=1, max_val=120)

        cls.BACKUP_ROOT = Path(
            cls._safe_str("BACKUP_ROOT", str(cls.PROJECT_ROOT / "data" / "backups"))
        )
        cls.BACKUP_BUCKET = cls._safe_str("BACKUP_BUCKET", "pubg-leaderboard")

        cls.HTTP_HOST = cls._safe_str("HTTP_HOST", "0.0.0.0")
        cls.HTTP_PORT = cls._safe_int("HTTP_PORT", 8080, min_val=1, max_val=65535)
        cls.REQUEST_TIMEOUT_SECONDS = cls._safe_int(
            "REQUEST_TIMEOUT_SECONDS", 30, min_val=1, max_val=600
        )

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ValueError:
            If required values are missing or invalid in production.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        for node in cls.REDIS_CLUSTER_NODES:
            host, sep, port = node.rpartition(":")
            if not sep or not host or not port.isdigit():
                raise ValueError(f"REDIS_CLUSTER_NODES entry '{node}' is not host:port")

        if cls.is_production():
            if not cls.PUBG_API_KEY:
                raise ValueError("PUBG_API_KEY environment variable is required")
            if cls.DEBUG:
                logger.warning("DEBUG mode enabled in production!")
            if not cls.REDIS_PASSWORD:
                logger.warning("Production Redis configured without a password")

        cls._validated = True

        if cls._metrics:
            logger.info(f"Configuration loaded: {cls._metrics.get_summary()}")
            if cls._metrics.validation_errors:
                logger.warning(f"Configuration warnings: {cls._metrics.validation_errors}")

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return Environment.from_string(cls.ENVIRONMENT) is Environment.PRODUCTION

    @classmethod
    def is_development(cls) -> bool:
        return Environment.from_string(cls.ENVIRONMENT) is Environment.DEVELOPMENT

    @classmethod
    def is_cluster(cls) -> bool:
        """True when Redis Cluster node addresses are configured."""
        return bool(cls.REDIS_CLUSTER_NODES)

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["pubg_api_key_set"]
        True
        """
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "redis_mode": "cluster" if cls.is_cluster() else "standalone",
            "redis_cluster_nodes": len(cls.REDIS_CLUSTER_NODES),
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "redis_password_set": bool(cls.REDIS_PASSWORD),
            "pubg_api_key_set": bool(cls.PUBG_API_KEY),
            "pubg_shard": cls.PUBG_SHARD,
            "pubg_game_mode": cls.PUBG_GAME_MODE,
            "backup_bucket": cls.BACKUP_BUCKET,
        }


Config.load()
