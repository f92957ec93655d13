#!/usr/bin/env python3
"""
NetStats Configuration & Logging Module
=======================================
Centralized configuration, structured logging, and the error taxonomy shared
by the diagnostics store and its HTTP routes.

Version: reads from version.json (module v1.0)
"""

import os
import sys
import json
import logging
import uuid
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager
import threading

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_PORT = 3000
DEFAULT_MAX_BODY_MB = 10            # Diagnostics payloads are small JSON documents
MAX_SAFE_BODY_MB = 100
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5

DEFAULT_MAX_BODY_BYTES = DEFAULT_MAX_BODY_MB * 1024 * 1024
MAX_SAFE_BODY_BYTES = MAX_SAFE_BODY_MB * 1024 * 1024

# =============================================================================
# VERSION - Read from version.json (Single Source of Truth)
# =============================================================================
def _load_version():
    """Load version from version.json file."""
    version_file = Path(__file__).parent / 'version.json'
    if version_file.exists():
        try:
            with open(version_file, 'r', encoding='utf-8') as f:
                return json.load(f).get('version', '1.0.0')
        except (OSError, ValueError):
            pass
    return '1.0.0'

__version__ = _load_version()
VERSION = __version__
APP_NAME = "NetStats"


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() == 'true'


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Application configuration with secure defaults."""

    # Server settings
    host: str = "127.0.0.1"  # Localhost only by default
    port: int = DEFAULT_PORT
    debug: bool = False

    # Request limits
    max_content_length: int = DEFAULT_MAX_BODY_BYTES

    # Paths
    profiles_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'profiles')
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'logs')

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True

    def __post_init__(self):
        self.profiles_dir = Path(self.profiles_dir)
        self.log_dir = Path(self.log_dir)

        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        # Force debug=False in production environment
        if os.environ.get('NETSTATS_ENV', 'development').lower() == 'production':
            self.debug = False
            self.log_level = "WARNING"

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load configuration from environment variables."""
        base_dir = Path(__file__).parent
        port = os.environ.get('PORT') or os.environ.get('NETSTATS_PORT') or str(DEFAULT_PORT)
        return cls(
            host=os.environ.get('NETSTATS_HOST', '127.0.0.1'),
            port=int(port),
            debug=_env_flag('NETSTATS_DEBUG'),
            max_content_length=int(os.environ.get('NETSTATS_MAX_BODY', str(DEFAULT_MAX_BODY_BYTES))),
            profiles_dir=Path(os.environ.get('NETSTATS_PROFILES_DIR', str(base_dir / 'profiles'))),
            log_dir=Path(os.environ.get('NETSTATS_LOG_DIR', str(base_dir / 'logs'))),
            log_level=os.environ.get('NETSTATS_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('NETSTATS_LOG_FORMAT', 'json'),
            log_to_file=_env_flag('NETSTATS_LOG_TO_FILE'),
            log_to_console=_env_flag('NETSTATS_LOG_TO_CONSOLE', 'true'),
        )

    def validate(self) -> tuple:
        """Validate configuration and return (is_valid, errors)."""
        errors = []

        if self.debug and os.environ.get('NETSTATS_ENV') == 'production':
            errors.append("Debug mode cannot be enabled in production")

        if not 0 < self.port < 65536:
            errors.append(f"Port out of range: {self.port}")

        if self.max_content_length <= 0:
            errors.append("Max content length must be positive")
        elif self.max_content_length > MAX_SAFE_BODY_BYTES:
            errors.append(f"Max content length exceeds safe limit ({MAX_SAFE_BODY_MB}MB)")

        if self.log_format not in ('json', 'text'):
            errors.append(f"Invalid log_format: {self.log_format}. Must be 'json' or 'text'")

        if not hasattr(logging, self.log_level.upper()):
            errors.append(f"Invalid log_level: {self.log_level}")

        return (len(errors) == 0, errors)


# Global config instance
_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig):
    """Install an explicit configuration (used by the app factory)."""
    global _config
    _config = config


def reset_config():
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured JSON logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[AppConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        # Rotating file handler keeps the log directory bounded
        if self.config.log_to_file:
            from logging.handlers import RotatingFileHandler
            log_file = self.config.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or str(uuid.uuid4())[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _build_log_record(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Build a structured log record."""
        return {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level,
            'logger': self.name,
            'correlation_id': self.get_correlation_id(),
            'message': message,
            **kwargs
        }

    def _render(self, level: str, message: str, **kwargs) -> str:
        if self.config.log_format == 'json':
            return json.dumps(self._build_log_record(level, message, **kwargs), default=str)
        if kwargs:
            fields = ' '.join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} [{fields}]"
        return message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._render('DEBUG', message, **kwargs))

    def info(self, message: str, **kwargs):
        self.logger.info(self._render('INFO', message, **kwargs))

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._render('WARNING', message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self.logger.error(self._render('ERROR', message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    def critical(self, message: str, **kwargs):
        self.logger.critical(self._render('CRITICAL', message, **kwargs))

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), **context)
            raise
        duration_ms = (time.time() - start_time) * 1000
        self.debug(f"{operation} completed", operation=operation, status='completed',
                   duration_ms=round(duration_ms, 2), **context)


class JsonFormatter(logging.Formatter):
    """JSON log formatter.

    Messages produced by StructuredLogger are already JSON documents and pass
    through unchanged; records from other loggers (werkzeug, flask) are wrapped.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if message.startswith('{') and not record.exc_info:
            return message

        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': message,
        }

        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


_loggers: Dict[str, StructuredLogger] = {}
_loggers_lock = threading.Lock()


def get_logger(name: str) -> StructuredLogger:
    """Get the structured logger for a name, creating it on first use."""
    with _loggers_lock:
        if name not in _loggers:
            _loggers[name] = StructuredLogger(name, get_config())
        return _loggers[name]


def configure_loggers(config: Optional[AppConfig] = None):
    """Rebuild every logger created so far against a (new) configuration."""
    config = config or get_config()
    with _loggers_lock:
        for structured_logger in _loggers.values():
            structured_logger.config = config
            structured_logger._setup_logger()


# =============================================================================
# ERROR HANDLING
# =============================================================================

class NetStatsError(Exception):
    """Base exception for NetStats."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 status_code: int = 500, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response dict."""
        return {'error': self.message}


class ValidationError(NetStatsError):
    """Submitted payload has the wrong shape."""
    def __init__(self, message: str = "Invalid diagnostics data", **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400, details=kwargs)


class FormatError(NetStatsError):
    """Reference ID does not match the expected format."""
    def __init__(self, message: str = "Invalid reference ID format", reference_id: Optional[str] = None):
        super().__init__(message, code="FORMAT_ERROR", status_code=400,
                         details={'reference_id': reference_id})


class NotFoundError(NetStatsError):
    """Well-formed reference ID with no stored record."""
    def __init__(self, message: str = "Diagnostics not found", reference_id: Optional[str] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404,
                         details={'reference_id': reference_id})


class StorageError(NetStatsError):
    """The backing store could not complete a read or write."""
    def __init__(self, message: str = "Storage operation failed", code: str = "STORAGE_ERROR", **kwargs):
        super().__init__(message, code=code, status_code=500, details=kwargs)


class ExhaustedRetriesError(StorageError):
    """No unused reference ID was found within the attempt ceiling."""
    def __init__(self, attempts: int):
        super().__init__("Failed to generate unique reference ID",
                         code="EXHAUSTED_RETRIES", attempts=attempts)
        self.attempts = attempts
