"""
Configuration module for the Barback admin batch tooling
========================================================

This module centralizes all configuration for the cocktail/ingredient admin
batch pipeline:
- Document store backend (SQLite file or in-memory)
- Batch pipeline tunables (chunk size, preview caps, tag cap, backups)
- Rate limiting for the admin endpoints
- Background job queue (huey)

CONFIGURATION:
- config.yaml: Deployment settings (store backend, batch tunables, rate limit)
- data/secrets.yaml: Credentials (admin API key, session secret key)

Usage:
    from config import DATA_DIR, get_backups_dir, get_batch_config, load_admin_api_key

    batch_cfg = get_batch_config()
    chunk_size = batch_cfg["chunk_size"]

SETUP:
    1. data/config.yaml is created from config.yaml.example on first run
    2. Edit data/config.yaml for your deployment
    3. Set ADMIN_API_KEY and SECRET_KEY (env vars or data/secrets.yaml)
"""

import os
import shutil
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# =============================================================================
# PATHS
# =============================================================================

# Project root directory (where this file lives)
PROJECT_ROOT = Path(__file__).parent

# Data directory - THE canonical location for all runtime data.
# BARBACK_DATA_DIR overrides it (containers, tests).
DATA_DIR = Path(os.getenv("BARBACK_DATA_DIR", str(PROJECT_ROOT / "data")))

# Config path - ONE location, no fallbacks
CONFIG_PATH = DATA_DIR / "config.yaml"

# Secrets path - unified credential storage
SECRETS_PATH = DATA_DIR / "secrets.yaml"

EXAMPLE_CONFIG_PATH = PROJECT_ROOT / "config.yaml.example"


# =============================================================================
# DEFAULTS
# =============================================================================

BATCH_DEFAULTS = {
    "chunk_size": 450,            # Writes per atomic batch (store ceiling is 500)
    "max_batch_writes": 500,      # Hard per-batch ceiling enforced by the store
    "preview_row_cap": 1000,      # Rows returned by preview/commit
    "paste_row_limit": 1000,      # Rows accepted in paste mode
    "max_tags": 8,                # Tags kept per document
    "jobs_list_limit": 20,        # GET /jobs page size
    "backups_dir": "backups",     # Relative to DATA_DIR unless absolute
    "sync_tag_links": True,       # Rewrite *_tags link rows after each chunk
    "placeholder_prefix": "Imported ingredient",
}

RATE_LIMIT_DEFAULTS = {
    "batch_requests_per_minute": 10,
    "window_seconds": 60,
}

STORE_DEFAULTS = {
    "backend": "sqlite",
    "path": "documents.db",
}

JOBS_DEFAULTS = {
    "immediate": False,
}

PANEL_DEFAULTS = {
    "admin_role": "admin",
}

CLIENT_DEFAULTS = {
    "panel_url": "http://localhost:8080",
    "timeout": 30,
}

SUPPORTED_STORE_BACKENDS = ("sqlite", "memory")


# =============================================================================
# USER CONFIGURATION LOADING (STRICT)
# =============================================================================

def _config_error(title: str, *lines: str) -> str:
    body = "\n".join(lines)
    return (
        f"\n{'='*60}\n"
        f"ERROR: {title}\n"
        f"{'='*60}\n"
        f"{body}\n"
        f"{'='*60}"
    )


def _load_user_config() -> Dict[str, Any]:
    """
    Load configuration from data/config.yaml.

    FAILS IMMEDIATELY if config.yaml is invalid. A missing file is created
    from config.yaml.example so a fresh checkout can boot.

    Returns:
        Dict containing user configuration

    Raises:
        FileNotFoundError: If neither config.yaml nor the example exists
        ValueError: If YAML is invalid or required sections are malformed
    """
    config_path = CONFIG_PATH

    if not config_path.exists():
        if EXAMPLE_CONFIG_PATH.exists():
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            shutil.copy2(EXAMPLE_CONFIG_PATH, config_path)
            print(f"[config] Created {config_path} from config.yaml.example")
        else:
            raise FileNotFoundError(_config_error(
                "config.yaml not found",
                f"Expected location: {config_path}",
                f"Also missing: {EXAMPLE_CONFIG_PATH}",
                "Please restore config.yaml.example.",
            ))

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(_config_error(
            "config.yaml has invalid YAML syntax",
            f"File: {config_path}",
            f"Error: {e}",
        )) from e

    if config is None:
        raise ValueError(_config_error(
            "config.yaml is empty",
            f"File: {config_path}",
            "Please copy config.yaml.example and customize it.",
        ))

    validate_user_config(config)
    return config


def validate_user_config(config: Dict[str, Any]) -> None:
    """
    Validate the shape of a parsed config.yaml.

    Raises:
        ValueError: On a missing section or a value of the wrong type
    """
    required_sections = ["store", "batch"]
    missing_sections = [s for s in required_sections if s not in config]
    if missing_sections:
        raise ValueError(_config_error(
            "config.yaml missing required sections",
            f"Missing: {missing_sections}",
            f"Required sections: {required_sections}",
        ))

    for section in ("store", "batch", "rate_limit", "jobs", "panel", "client"):
        if section in config and not isinstance(config[section] or {}, dict):
            raise ValueError(_config_error(f"config.yaml section '{section}' must be a mapping"))

    backend = (config.get("store") or {}).get("backend", STORE_DEFAULTS["backend"])
    if backend not in SUPPORTED_STORE_BACKENDS:
        raise ValueError(_config_error(
            "config.yaml store.backend is not supported",
            f"Got: {backend}",
            f"Supported: {list(SUPPORTED_STORE_BACKENDS)}",
        ))

    batch = config.get("batch") or {}
    int_fields = [k for k, v in BATCH_DEFAULTS.items() if isinstance(v, int) and not isinstance(v, bool)]
    bad_fields = [
        f"batch.{k}" for k in int_fields
        if k in batch and (not isinstance(batch[k], int) or isinstance(batch[k], bool) or batch[k] < 1)
    ]
    if bad_fields:
        raise ValueError(_config_error(
            "config.yaml batch values must be positive integers",
            f"Invalid: {bad_fields}",
        ))


# Load user config at module initialization (FAIL FAST)
USER_CONFIG = _load_user_config()

# Use standard logging for config.py (foundational module)
logger = logging.getLogger(__name__)


def _section(name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(defaults)
    merged.update(USER_CONFIG.get(name) or {})
    return merged


def get_batch_config() -> Dict[str, Any]:
    """
    Get batch pipeline configuration merged over defaults.

    Returns:
        dict with chunk_size, max_batch_writes, preview_row_cap, paste_row_limit,
        max_tags, jobs_list_limit, backups_dir, sync_tag_links, placeholder_prefix

    Raises:
        ValueError: If chunk_size exceeds the store's per-batch ceiling
    """
    cfg = _section("batch", BATCH_DEFAULTS)
    if cfg["chunk_size"] > cfg["max_batch_writes"]:
        raise ValueError(
            f"batch.chunk_size ({cfg['chunk_size']}) exceeds "
            f"batch.max_batch_writes ({cfg['max_batch_writes']})"
        )
    return cfg


def get_rate_limit_config() -> Dict[str, Any]:
    """Get rate limiter settings for the admin batch endpoints."""
    return _section("rate_limit", RATE_LIMIT_DEFAULTS)


def get_store_config() -> Dict[str, Any]:
    """Get document store settings. A relative path is resolved under DATA_DIR."""
    cfg = _section("store", STORE_DEFAULTS)
    path = Path(cfg["path"])
    cfg["path"] = path if path.is_absolute() else DATA_DIR / path
    return cfg


def get_jobs_config() -> Dict[str, Any]:
    """Get background job queue settings."""
    cfg = _section("jobs", JOBS_DEFAULTS)
    env_immediate = os.getenv("BARBACK_JOBS_IMMEDIATE", "").strip().lower()
    if env_immediate:
        cfg["immediate"] = env_immediate in ("1", "true", "yes", "on")
    return cfg


def get_panel_config() -> Dict[str, Any]:
    """Get web panel settings."""
    return _section("panel", PANEL_DEFAULTS)


def get_client_config() -> Dict[str, Any]:
    """Get settings for admin_client / utils/batch_tool.py (panel URL, timeout)."""
    cfg = _section("client", CLIENT_DEFAULTS)
    env_url = os.getenv("BARBACK_PANEL_URL", "").strip()
    if env_url:
        cfg["panel_url"] = env_url
    return cfg


def get_backups_dir() -> Path:
    """Directory that holds batch_<timestamp>.json snapshots."""
    backups = Path(get_batch_config()["backups_dir"])
    return backups if backups.is_absolute() else DATA_DIR / backups


# =============================================================================
# UNIFIED SECRETS MANAGEMENT
# =============================================================================
"""
Centralized credential storage in data/secrets.yaml.
Environment variables take priority over file-based secrets.
"""


def load_secrets() -> Dict[str, Any]:
    """
    Load secrets from data/secrets.yaml.

    Returns:
        dict with keys 'admin_api_key', 'secret_key', 'session_cookie' (may be missing).
        Returns empty dict if file doesn't exist.
    """
    if not SECRETS_PATH.exists():
        return {}

    try:
        with open(SECRETS_PATH, 'r') as f:
            secrets = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"❌ Failed to parse {SECRETS_PATH}: {e}")
        return {}

    if not isinstance(secrets, dict):
        logger.error(f"❌ {SECRETS_PATH} must contain a mapping")
        return {}
    return secrets


def save_secrets(admin_api_key: str = None, secret_key: str = None, session_cookie: str = None) -> None:
    """
    Save credentials to data/secrets.yaml.

    Only updates keys that are provided (not None). File permissions are
    set to 600.
    """
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    secrets = load_secrets()

    if admin_api_key is not None:
        secrets['admin_api_key'] = admin_api_key
    if secret_key is not None:
        secrets['secret_key'] = secret_key
    if session_cookie is not None:
        secrets['session_cookie'] = session_cookie

    with open(SECRETS_PATH, 'w') as f:
        yaml.dump(secrets, f, default_flow_style=False)
    os.chmod(SECRETS_PATH, 0o600)

    logger.info(f"💾 Secrets saved to {SECRETS_PATH}")


def _load_secret(env_name: str, secrets_key: str) -> Optional[str]:
    env_value = os.getenv(env_name, "").strip()
    if env_value:
        logger.debug(f"🔑 Using {env_name} from env var")
        return env_value

    file_value = load_secrets().get(secrets_key)
    if file_value:
        logger.debug(f"🔑 Using {secrets_key} from {SECRETS_PATH}")
        return str(file_value)
    return None


def load_admin_api_key() -> Optional[str]:
    """
    Load the shared admin key compared against the X-Admin-Key header.

    Priority order (ENV VAR IS SOURCE OF TRUTH):
    1. Environment variable ADMIN_API_KEY
    2. File: data/secrets.yaml (admin_api_key)

    Returns:
        str: The key if configured, None otherwise (the admin gate stays closed)
    """
    key = _load_secret("ADMIN_API_KEY", "admin_api_key")
    if not key:
        logger.warning("⚠️ No ADMIN_API_KEY found in env var or data/secrets.yaml")
    return key


def load_secret_key() -> Optional[str]:
    """Load the Flask session signing key (SECRET_KEY env var or secrets.yaml)."""
    return _load_secret("SECRET_KEY", "secret_key")


def load_session_cookie() -> Optional[str]:
    """Load the signed admin session cookie used by the CLI client."""
    return _load_secret("BARBACK_SESSION_COOKIE", "session_cookie")


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
"""Centralized logging configuration for all modules."""
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "standard",
            "stream": "ext://sys.stdout"
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "detailed",
            "filename": str(DATA_DIR / "logs" / "barback.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }
    },
    "root": {
        "level": "DEBUG",
        "handlers": ["console", "file"]
    }
}
