"""
Centralized configuration management with validation and type conversion.

All tunables (endpoints, API keys, cache budget, per-domain TTLs, timeouts)
are read from environment variables once, converted to the right type and
validated here. Everything else asks ``get_config()``.
"""

import os
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv


class Environment(Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class TimeoutConfig:
    """Timeout configuration for different operations (seconds)."""
    overpass: float = 30.0
    nominatim: float = 10.0
    image: float = 8.0
    geolocation: float = 5.0
    proxy: float = 15.0
    api: float = 30.0

    def get(self, operation: str) -> float:
        """Get timeout for a specific operation.

        Args:
            operation: Operation name

        Returns:
            Timeout value in seconds
        """
        return getattr(self, operation, self.api)


@dataclass
class RedisConfig:
    """Redis configuration."""
    url: str
    key_prefix: str = "nearby:"
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


@dataclass
class CacheConfig:
    """Resilient cache configuration."""
    backend: str = "memory"
    budget_bytes: int = 2 * 1024 * 1024
    item_ceiling_bytes: int = 2 * 1024 * 1024
    compress_threshold: int = 20
    ttl_places: int = 3600  # 1 hour
    ttl_place_detail: int = 86400  # 24 hours
    ttl_airports: int = 86400  # 24 hours
    ttl_flights: int = 3600  # 1 hour
    ttl_user_location: int = 3600  # 1 hour


@dataclass
class ProviderConfig:
    """Provider endpoints and credentials."""
    overpass_urls: List[str] = field(default_factory=lambda: [
        "https://overpass-api.de/api/interpreter",
        "https://overpass.kumi.systems/api/interpreter",
    ])
    overpass_query_timeout: int = 25
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    ip_api_url: str = "http://ip-api.com/json"
    user_agent: str = "NearbyExplorer/1.0"
    unsplash_key: Optional[str] = None
    pixabay_key: Optional[str] = None
    pexels_key: Optional[str] = None
    image_allowed_hosts: List[str] = field(default_factory=lambda: [
        "staticmap.openstreetmap.de",
        "upload.wikimedia.org",
        "commons.wikimedia.org",
        "images.unsplash.com",
        "cdn.pixabay.com",
        "images.pexels.com",
        "cf.bstatic.com",
        "media-cdn.tripadvisor.com",
        "exp.cdn-hotels.com",
        "photos.hotelbeds.com",
    ])
    proxy_path: str = "/api/image-proxy"
    flight_seed: Optional[int] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Centralized configuration with validation and type conversion."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.environment = self._get_environment()
        self.debug = self._get_bool("DEBUG", False)

        self.redis_url: str = self._get_optional("REDIS_URL") or "redis://localhost:6379"

        self.timeout_config = TimeoutConfig(
            overpass=self._get_float("TIMEOUT_OVERPASS", 30.0),
            nominatim=self._get_float("TIMEOUT_NOMINATIM", 10.0),
            image=self._get_float("IMAGE_PROVIDER_TIMEOUT", 8.0),
            geolocation=self._get_float("TIMEOUT_GEOLOCATION", 5.0),
            proxy=self._get_float("TIMEOUT_PROXY", 15.0),
            api=self._get_float("TIMEOUT_API", 30.0),
        )

        self.redis_config = RedisConfig(
            url=self.redis_url,
            key_prefix=self._get_str("REDIS_KEY_PREFIX", "nearby:"),
            socket_timeout=self._get_float("REDIS_SOCKET_TIMEOUT", 5.0),
            socket_connect_timeout=self._get_float("REDIS_SOCKET_CONNECT_TIMEOUT", 5.0),
        )

        self.cache_config = CacheConfig(
            backend=self._get_str("CACHE_BACKEND", "memory").lower(),
            budget_bytes=self._get_int("CACHE_BUDGET_BYTES", 2 * 1024 * 1024),
            item_ceiling_bytes=self._get_int("CACHE_ITEM_CEILING_BYTES", 2 * 1024 * 1024),
            compress_threshold=self._get_int("CACHE_COMPRESS_THRESHOLD", 20),
            ttl_places=self._get_int("CACHE_TTL_PLACES", 3600),
            ttl_place_detail=self._get_int("CACHE_TTL_PLACE_DETAIL", 86400),
            ttl_airports=self._get_int("CACHE_TTL_AIRPORTS", 86400),
            ttl_flights=self._get_int("CACHE_TTL_FLIGHTS", 3600),
            ttl_user_location=self._get_int("CACHE_TTL_USER_LOCATION", 3600),
        )

        defaults = ProviderConfig()
        seed = self._get_optional("FLIGHT_SEED")
        self.provider_config = ProviderConfig(
            overpass_urls=self._get_list("OVERPASS_URLS", defaults.overpass_urls),
            overpass_query_timeout=self._get_int("OVERPASS_QUERY_TIMEOUT", 25),
            nominatim_url=self._get_str("NOMINATIM_URL", defaults.nominatim_url),
            ip_api_url=self._get_str("IP_API_URL", defaults.ip_api_url),
            user_agent=self._get_str("OSM_USER_AGENT", defaults.user_agent),
            unsplash_key=self._get_optional("UNSPLASH_KEY"),
            pixabay_key=self._get_optional("PIXABAY_KEY"),
            pexels_key=self._get_optional("PEXELS_KEY"),
            image_allowed_hosts=self._get_list("IMAGE_ALLOWED_HOSTS", defaults.image_allowed_hosts),
            proxy_path=self._get_str("IMAGE_PROXY_PATH", defaults.proxy_path),
            flight_seed=int(seed) if seed else None,
        )

        self.logging_config = LoggingConfig(
            level=self._get_str("LOG_LEVEL", "INFO"),
            format=self._get_str("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=self._get_optional("LOG_FILE"),
            max_bytes=self._get_int("LOG_MAX_BYTES", 10485760),
            backup_count=self._get_int("LOG_BACKUP_COUNT", 5),
        )

        self._validate()

    def _get_environment(self) -> Environment:
        env_str = self._get_str("ENVIRONMENT", "development").lower()
        try:
            return Environment(env_str)
        except ValueError:
            raise ValueError(f"Invalid environment: {env_str}")

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return os.getenv(key, default) or default

    def _get_str(self, key: str, default: str) -> str:
        return os.getenv(key) or default

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable with default.

        Raises:
            ValueError: If value cannot be converted to int
        """
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {key}: {value}")

    def _get_float(self, key: str, default: float) -> float:
        """Get float environment variable with default.

        Raises:
            ValueError: If value cannot be converted to float
        """
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid float for {key}: {value}")

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ('1', 'true', 'yes', 'on')

    def _get_list(self, key: str, default: list) -> list:
        value = os.getenv(key)
        if value is None or not value.strip():
            return list(default)
        return [item.strip() for item in value.split(',') if item.strip()]

    def _validate(self):
        """Validate configuration values."""
        for attr_name in ['overpass', 'nominatim', 'image', 'geolocation', 'proxy', 'api']:
            timeout = getattr(self.timeout_config, attr_name)
            if timeout <= 0:
                raise ValueError(f"Invalid timeout for {attr_name}: {timeout}")

        cache = self.cache_config
        if cache.backend not in ("memory", "redis"):
            raise ValueError(f"Invalid cache backend: {cache.backend}")
        if cache.budget_bytes <= 0 or cache.item_ceiling_bytes <= 0:
            raise ValueError("Cache budget and item ceiling must be positive")
        if cache.compress_threshold < 1:
            raise ValueError(f"Invalid compress threshold: {cache.compress_threshold}")

        if self.redis_url and not self.redis_url.startswith(('redis://', 'rediss://')):
            raise ValueError(f"Invalid Redis URL: {self.redis_url}")

        if not self.provider_config.overpass_urls:
            raise ValueError("At least one Overpass endpoint is required")

        # Optional API key warnings (don't crash)
        logger = logging.getLogger(__name__)
        if not self.provider_config.unsplash_key:
            logger.debug("UNSPLASH_KEY not set - Unsplash image search disabled")
        if not self.provider_config.pixabay_key:
            logger.debug("PIXABAY_KEY not set - Pixabay image search disabled")
        if not self.provider_config.pexels_key:
            logger.debug("PEXELS_KEY not set - Pexels image search disabled")

    def get_timeout(self, operation: str) -> float:
        return self.timeout_config.get(operation)

    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for debugging (no secrets)."""
        return {
            'environment': self.environment.value,
            'debug': self.debug,
            'cache_backend': self.cache_config.backend,
            'cache_budget_bytes': self.cache_config.budget_bytes,
            'overpass_urls': list(self.provider_config.overpass_urls),
            'timeout_config': {
                'overpass': self.timeout_config.overpass,
                'nominatim': self.timeout_config.nominatim,
                'image': self.timeout_config.image,
                'geolocation': self.timeout_config.geolocation,
            },
            'cache_ttls': {
                'places': self.cache_config.ttl_places,
                'place_detail': self.cache_config.ttl_place_detail,
                'airports': self.cache_config.ttl_airports,
                'flights': self.cache_config.ttl_flights,
                'user_location': self.cache_config.ttl_user_location,
            },
        }


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the process configuration instance, loading ``.env`` on first use."""
    global _config
    if _config is None:
        load_dotenv()
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next ``get_config()`` re-reads the environment."""
    global _config
    _config = None


_queue_listener = None


def setup_logging():
    """Set up logging based on configuration.

    Handlers sit behind a QueueHandler so that emitting a record from a
    request path only enqueues it; formatting and I/O happen on the
    listener thread.
    """
    import atexit
    import queue
    from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler

    global _queue_listener
    config = get_config()
    log_config = config.logging_config

    formatter = logging.Formatter(log_config.format)
    handlers: List[logging.Handler] = []

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_config.file:
        file_handler = RotatingFileHandler(
            log_config.file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if _queue_listener is not None:
        _queue_listener.stop()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(-1)
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(QueueHandler(log_queue))
    root.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))

    _queue_listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()
    atexit.register(_queue_listener.stop)

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    if config.is_development():
        root.setLevel(logging.DEBUG)
    elif config.is_production():
        root.setLevel(logging.INFO)
