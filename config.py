"""
Centralized configuration for the ForoHub client
"""

import os

from dotenv import load_dotenv

load_dotenv()

# REST API settings
API_CONFIG = {
    "base_url": os.getenv("FOROHUB_API_URL", "http://localhost:8080"),
    "timeout": float(os.getenv("FOROHUB_API_TIMEOUT", "10")),  # seconds
    "identity_path": os.getenv("FOROHUB_IDENTITY_PATH", "/auth/me"),
    "page_size": int(os.getenv("FOROHUB_PAGE_SIZE", "10")),
    "login_path": "/login",  # Where the UI sends the user after a 401
}

# Session persistence settings
SESSION_CONFIG = {
    "storage_dir": os.getenv("FOROHUB_STORAGE_DIR", os.path.join(os.path.expanduser("~"), ".forohub")),
    "storage_key": "forohub-auth",
    "persistence_enabled": os.getenv("FOROHUB_PERSIST_SESSION", "true").lower() == "true",
}

# Query cache settings
CACHE_CONFIG = {
    "max_age_seconds": float(os.getenv("FOROHUB_CACHE_MAX_AGE")) if os.getenv("FOROHUB_CACHE_MAX_AGE") else None,
    "keep_previous_data": True,
}

# User-facing notices, one per error kind
NOTICE_MESSAGES = {
    "session_expired": "Your session has expired. Please sign in again.",
    "forbidden": "You do not have permission to perform this action.",
    "not_found": "Resource not found.",
    "server_error": "Server error. Please try again later.",
    "network_timeout": "The server took too long to respond. Please try again later.",
    "unknown": "An unexpected error occurred.",
}

# Confirmation notices, one per forum write
SUCCESS_MESSAGES = {
    "create_topic": "Topic created.",
    "update_topic": "Topic updated.",
    "delete_topic": "Topic deleted.",
    "create_reply": "Reply posted.",
    "update_reply": "Reply updated.",
    "delete_reply": "Reply deleted.",
    "mark_solution": "Reply marked as the solution.",
    "unmark_solution": "Solution mark removed.",
}

# Logging configuration
LOGGING_CONFIG = {
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "log_dir": os.getenv("LOG_DIR", "./logs"),
    "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "false").lower() == "true",
    "enable_console_logging": os.getenv("ENABLE_CONSOLE_LOGGING", "true").lower() == "true",
    "structured_logging": os.getenv("ENVIRONMENT", "development").lower() == "production",
    "max_log_size_mb": int(os.getenv("MAX_LOG_SIZE_MB", "10")),
    "backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
}
