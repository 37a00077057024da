"""
Configuration validation module.

Checks the settings in config.py on startup so misconfigurations surface
with a clear message instead of as failed requests later on.
"""

import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import config

STORAGE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


class ConfigValidator:
    """Validates client configuration"""

    def __init__(self,
                 api_config: Optional[Dict[str, Any]] = None,
                 session_config: Optional[Dict[str, Any]] = None,
                 cache_config: Optional[Dict[str, Any]] = None,
                 logging_config: Optional[Dict[str, Any]] = None):
        self.api_config = api_config if api_config is not None else config.API_CONFIG
        self.session_config = session_config if session_config is not None else config.SESSION_CONFIG
        self.cache_config = cache_config if cache_config is not None else config.CACHE_CONFIG
        self.logging_config = logging_config if logging_config is not None else config.LOGGING_CONFIG

        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """
        Validate all configuration settings.

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors.clear()
        self.warnings.clear()

        self._validate_api_config()
        self._validate_session_config()
        self._validate_cache_config()
        self._validate_logging_config()

        is_valid = len(self.errors) == 0
        return is_valid, self.errors.copy(), self.warnings.copy()

    def _validate_api_config(self):
        """Validate REST API settings"""
        base_url = str(self.api_config.get("base_url", ""))
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            self.errors.append(f"API base URL has invalid format: '{base_url}' (expected http(s)://host[:port])")
        elif parsed.scheme == "http" and parsed.hostname not in ("localhost", "127.0.0.1"):
            self.warnings.append(f"API base URL {base_url} is not HTTPS; credentials will travel unencrypted")

        timeout = self.api_config.get("timeout", 10)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            self.errors.append(f"Invalid API timeout: {timeout}. Must be a positive number of seconds")
        elif timeout < 1 or timeout > 120:
            self.warnings.append(f"API timeout {timeout}s may be too {'low' if timeout < 1 else 'high'}. Recommended: 5-30s")

        identity_path = str(self.api_config.get("identity_path", ""))
        if not identity_path.startswith("/"):
            self.errors.append(f"Identity path '{identity_path}' must start with '/'")

        page_size = self.api_config.get("page_size", 10)
        if not isinstance(page_size, int) or page_size < 1:
            self.errors.append(f"Invalid page size: {page_size}. Must be a positive integer")
        elif page_size > 100:
            self.warnings.append(f"Page size {page_size} is large. Recommended: 10-50")

    def _validate_session_config(self):
        """Validate session persistence settings"""
        storage_key = str(self.session_config.get("storage_key", ""))
        if not STORAGE_KEY_PATTERN.match(storage_key):
            self.errors.append(f"Session storage key '{storage_key}' must only contain letters, digits, '.', '_' or '-'")

        if not self.session_config.get("persistence_enabled", True):
            self.warnings.append("Session persistence is disabled; you will need to sign in on every run")
            return

        storage_dir = Path(self.session_config.get("storage_dir", ""))
        # Nearest existing ancestor decides whether the directory can be created
        existing = storage_dir
        while not existing.exists() and existing != existing.parent:
            existing = existing.parent
        if not existing.is_dir():
            self.errors.append(f"Session storage path '{storage_dir}' is not a directory")
        elif not os.access(existing, os.W_OK):
            self.errors.append(f"Session storage directory '{existing}' is not writable")

    def _validate_cache_config(self):
        """Validate query cache settings"""
        max_age = self.cache_config.get("max_age_seconds")
        if max_age is not None and (not isinstance(max_age, (int, float)) or max_age <= 0):
            self.errors.append(f"Invalid cache max age: {max_age}. Must be a positive number of seconds or unset")

    def _validate_logging_config(self):
        """Validate logging configuration"""
        log_level = str(self.logging_config.get("log_level", "INFO"))
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            self.errors.append(f"Invalid log level '{log_level}'. Must be one of: {', '.join(valid_levels)}")

        max_size = self.logging_config.get("max_log_size_mb", 10)
        if max_size < 1 or max_size > 1000:
            self.warnings.append(f"Log file size {max_size}MB may be {'too small' if max_size < 5 else 'too large'}. Recommended: 5-100MB")

        backup_count = self.logging_config.get("backup_count", 5)
        if backup_count < 1 or backup_count > 50:
            self.warnings.append(f"Log backup count {backup_count} may be {'too low' if backup_count < 3 else 'too high'}. Recommended: 3-20")


def validate_startup_config(validator: Optional[ConfigValidator] = None) -> None:
    """
    Validate configuration on startup.

    Raises:
        ConfigValidationError: If critical configuration errors are found
    """
    validator = validator or ConfigValidator()
    is_valid, errors, warnings = validator.validate_all()

    if warnings:
        print("⚠️  Configuration Warnings:")
        for warning in warnings:
            print(f"  • {warning}")
        print()

    if errors:
        print("❌ Configuration Errors:")
        for error in errors:
            print(f"  • {error}")
        print()

        error_msg = f"Found {len(errors)} configuration error(s) that must be fixed before starting the client."
        if warnings:
            error_msg += f" Also found {len(warnings)} warning(s) that should be addressed."

        raise ConfigValidationError(error_msg)


def validate_production_readiness() -> Dict[str, Any]:
    """
    Perform additional production readiness checks.

    Returns:
        Dict with validation results and recommendations
    """
    results = {
        "is_production_ready": True,
        "errors": [],
        "warnings": [],
        "recommendations": []
    }

    environment = os.getenv("ENVIRONMENT", "development").lower()

    if environment not in ["production", "staging", "development"]:
        results["warnings"].append(f"Unknown ENVIRONMENT value: {environment}. Should be 'production', 'staging', or 'development'")

    if environment == "production":
        if os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG":
            results["warnings"].append("DEBUG log level in production logs request details")

        if not config.API_CONFIG["base_url"].startswith("https://"):
            results["errors"].append("Production API base URL must use HTTPS")
            results["is_production_ready"] = False

        if not os.getenv("LOG_DIR"):
            results["recommendations"].append("Set LOG_DIR environment variable to a dedicated log directory in production")

    return results


if __name__ == "__main__":
    try:
        validate_startup_config()
        production_results = validate_production_readiness()

        for message in production_results["errors"] + production_results["warnings"]:
            print(f"  • {message}")
        for rec in production_results["recommendations"]:
            print(f"  • {rec}")
        if not production_results["is_production_ready"]:
            sys.exit(1)

        print("✅ All configuration checks passed!")

    except ConfigValidationError as e:
        print(f"\nConfiguration validation failed: {e}")
        sys.exit(1)
