"""
Logging utilities for TrueNamePath

Provides centralized logging configuration plus audit and performance
loggers for OAuth events.
"""

import os
import time
import logging
import logging.config
from typing import Optional, Dict, Any
import yaml
import structlog
from pathlib import Path

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'detailed': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'json': {
            'format': '{"timestamp": "%(asctime)s", "logger": "%(name)s", "level": "%(levelname)s", "module": "%(module)s", "function": "%(funcName)s", "line": %(lineno)d, "message": "%(message)s"}',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'default',
            'stream': 'ext://sys.stdout'
        }
    },
    'loggers': {
        'root': {
            'level': 'INFO',
            'handlers': ['console'],
            'propagate': False
        },
        'truenamepath': {
            'level': 'INFO',
            'handlers': ['console'],
            'propagate': False
        }
    }
}


def _load_config_file(config_path: str) -> Optional[Dict[str, Any]]:
    """Load a YAML logging configuration, None when unreadable"""
    try:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"Failed to load logging config from {config_path}: {e}")
        return None


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None
) -> None:
    """
    Setup logging configuration

    Args:
        config_path: Path to a YAML logging configuration file
        log_level: Override log level
        log_format: Override log format ('default', 'detailed', 'json')
    """
    config = None

    if config_path and os.path.exists(config_path):
        config = _load_config_file(config_path)

    # Try to load from shared configs
    if not config:
        shared_config_path = Path(__file__).parent.parent / "configs" / "logging.yml"
        if shared_config_path.exists():
            config = _load_config_file(str(shared_config_path))

    if not config:
        config = {
            key: (value.copy() if isinstance(value, dict) else value)
            for key, value in DEFAULT_LOGGING_CONFIG.items()
        }

    # Apply environment-specific overrides
    environment = os.getenv('ENVIRONMENT', 'development')
    if environment in config:
        env_config = config.pop(environment)

        if 'handlers' in env_config:
            config['handlers'].update(env_config['handlers'])

        if 'loggers' in env_config:
            config['loggers'].update(env_config['loggers'])

    if log_level:
        log_level = log_level.upper()
        config['loggers'] = {name: dict(cfg, level=log_level) for name, cfg in config['loggers'].items()}
        config['handlers'] = {name: dict(cfg, level=log_level) for name, cfg in config['handlers'].items()}

    if log_format and log_format in config['formatters']:
        config['handlers'] = {name: dict(cfg, formatter=log_format) for name, cfg in config['handlers'].items()}

    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        print(f"Failed to configure logging: {e}")
        logging.basicConfig(
            level=getattr(logging, log_level or 'INFO', logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    configure_structlog()


def configure_structlog() -> None:
    """Route structlog events through the stdlib handlers as JSON"""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """Logger for OAuth audit events"""

    def __init__(self, name: str = "truenamepath.audit"):
        self.logger = structlog.get_logger(name)

    def log_oauth_event(
        self,
        user_id: Optional[str],
        action: str,
        client_id: str,
        context_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True
    ):
        """Log an OAuth authorize/resolve/revoke event"""
        log_method = self.logger.info if success else self.logger.warning
        log_method(
            f"OAuth {action}",
            event_type='oauth_event',
            user_id=user_id,
            action=action,
            client_id=client_id,
            context_id=context_id,
            success=success,
            details=details or {}
        )


class PerformanceLogger:
    """Logger for performance metrics"""

    def __init__(self, name: str = "truenamepath.performance"):
        self.logger = logging.getLogger(name)

    def log_performance(
        self,
        operation: str,
        duration: float,
        component: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log performance metrics"""
        self.logger.info(
            f"Performance: {operation} took {duration * 1000:.2f}ms in {component}",
            extra={
                'operation': operation,
                'duration': duration,
                'component': component,
                'details': details or {},
                'event_type': 'performance'
            }
        )


def get_audit_logger() -> AuditLogger:
    """Get audit logger instance"""
    return AuditLogger()


def get_performance_logger() -> PerformanceLogger:
    """Get performance logger instance"""
    return PerformanceLogger()


class performance_timer:
    """Context manager for timing operations"""

    def __init__(self, operation: str, component: str, logger: Optional[PerformanceLogger] = None):
        self.operation = operation
        self.component = component
        self.logger = logger or get_performance_logger()
        self.start_time = None
        self.duration = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the timer started"""
        return (time.perf_counter() - self.start_time) * 1000

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time
        self.logger.log_performance(self.operation, self.duration, self.component)


def init_logging():
    """Initialize logging with environment variables"""
    config_path = os.getenv('LOGGING_CONFIG_PATH')
    log_level = os.getenv('LOG_LEVEL', 'INFO')
    log_format = os.getenv('LOG_FORMAT', 'default')

    setup_logging(config_path, log_level, log_format)
