"""
Centralized logging configuration for the ForoHub client.

Modules only call get_logger(__name__); the entry point calls setup_logging()
once. Development output is colored text, production output is one JSON
object per line. Bearer tokens are masked before any handler writes a record.
"""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

BEARER_PATTERN = re.compile(r"(Bearer\s+)([A-Za-z0-9._~+/=-]+)")
SECRET_FIELDS = {"token", "credential", "authorization", "password", "contrasena"}

CLIENT_LOG_FILE = "forum_client.log"
ERROR_LOG_FILE = "errors.log"


def mask_token(token: Optional[str]) -> str:
    """Show only the ends of a credential"""
    if not token or len(token) < 12:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


class CredentialFilter(logging.Filter):
    """Masks bearer tokens in messages and secret fields in extra_data"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "Bearer" in message:
            record.msg = BEARER_PATTERN.sub(lambda m: m.group(1) + mask_token(m.group(2)), message)
            record.args = None

        extra = getattr(record, "extra_data", None)
        if isinstance(extra, dict) and SECRET_FIELDS.intersection(k.lower() for k in extra):
            record.extra_data = {
                k: mask_token(str(v)) if k.lower() in SECRET_FIELDS else v
                for k, v in extra.items()
            }
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shipping in production"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_data", None)
        if isinstance(extra, dict):
            entry.update(extra)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Readable console lines with colored levels and trailing key=value context"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[95m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        stamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        line = f"[{stamp}] [{color}{record.levelname}{self.RESET}] [{record.name}] {record.getMessage()}"

        extra = getattr(record, "extra_data", None)
        if extra:
            line += "  " + " ".join(f"{k}={v}" for k, v in extra.items())
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


class LoggingConfig:
    """Applies one LOGGING_CONFIG dictionary to the root logger"""

    def __init__(self,
                 log_level: str = "INFO",
                 log_dir: Optional[str] = None,
                 enable_file_logging: bool = False,
                 enable_console_logging: bool = True,
                 structured_logging: bool = False,
                 max_log_size_mb: int = 10,
                 backup_count: int = 5):
        self.log_level = getattr(logging, log_level.upper())
        self.log_dir = Path(log_dir or "./logs")
        self.enable_file_logging = enable_file_logging
        self.enable_console_logging = enable_console_logging
        self.structured_logging = structured_logging
        self.max_bytes = max_log_size_mb * 1024 * 1024
        self.backup_count = backup_count

    def configure(self) -> None:
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        root_logger.setLevel(self.log_level)

        credential_filter = CredentialFilter()

        if self.enable_console_logging:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(StructuredFormatter() if self.structured_logging else ColoredConsoleFormatter())
            console.addFilter(credential_filter)
            root_logger.addHandler(console)

        if self.enable_file_logging:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_formatter = StructuredFormatter() if self.structured_logging else logging.Formatter(
                '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            for filename, level in ((CLIENT_LOG_FILE, self.log_level), (ERROR_LOG_FILE, logging.ERROR)):
                handler = logging.handlers.RotatingFileHandler(
                    self.log_dir / filename,
                    maxBytes=self.max_bytes,
                    backupCount=self.backup_count,
                    encoding='utf-8'
                )
                handler.setLevel(level)
                handler.setFormatter(file_formatter)
                handler.addFilter(credential_filter)
                root_logger.addHandler(handler)

        # HTTP internals are noisy at DEBUG
        for name in ('aiohttp', 'aiohttp.access', 'aiohttp.client', 'asyncio'):
            logging.getLogger(name).setLevel(logging.WARNING)

        logging.getLogger(__name__).debug("Logging configured", extra={"extra_data": {
            "level": logging.getLevelName(self.log_level),
            "structured": self.structured_logging,
            "log_dir": str(self.log_dir) if self.enable_file_logging else None,
        }})


def setup_logging(config_dict: Optional[Dict[str, Any]] = None) -> LoggingConfig:
    """
    Configure the root logger from a LOGGING_CONFIG style dictionary.

    Calling it again replaces the previous handlers.
    """
    logging_config = LoggingConfig(**(config_dict or {}))
    logging_config.configure()
    return logging_config


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context) -> None:
    """Log a message with structured context carried in extra_data"""
    logger.log(level, message, extra={"extra_data": context})


def log_api_call(logger: logging.Logger, service: str, endpoint: str,
                 status_code: Optional[int], duration_ms: float, **context) -> None:
    """One line per HTTP exchange"""
    log_with_context(logger, logging.DEBUG, f"{service} {endpoint} -> {status_code}",
                     service=service, endpoint=endpoint, status_code=status_code,
                     duration_ms=round(duration_ms, 1), **context)


def log_error_with_context(logger: logging.Logger, error: Exception,
                           operation: str, **context) -> None:
    log_with_context(logger, logging.ERROR, f"{operation} failed: {error}",
                     operation=operation, error_type=type(error).__name__, **context)
