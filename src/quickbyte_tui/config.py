from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from .errors import ConfigError

# --- Configuration ---
CONFIG_PATH = os.path.expanduser("~/.config/quickbyte/config.json")

HTTP_TIMEOUT = 15
DEFAULT_COUNTRY = "us"
DEFAULT_SORT_BY = "publishedAt"
SESSION_COOKIE = "token"

REQUEST_HEADERS = {
    "User-Agent": "quickbyte-tui/0.1",
    "Accept": "application/json",
}

CATEGORIES = [
    "Tech",
    "Sports",
    "Business",
    "Politics",
    "Health",
    "Entertainment",
    "Science",
    "Lifestyle",
    "Finance",
    "Education",
    "Environment",
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "base_url": "",
    "country": DEFAULT_COUNTRY,
    "page_size": 12,
    "sort_by": DEFAULT_SORT_BY,
    "timeout": HTTP_TIMEOUT,
    "retries": 0,
    "token": None,
    "categories": CATEGORIES,
    "theme": "textual-dark",
}

# Default UI settings
UI_DEFAULTS = {
    "statusbar_keybindings": (
        "[b {color}]/[/] search, [b {color}]n/p[/] page, "
        "[b {color}]f[/] favorite, [b {color}]m[/] my favorites"
    ),
}

# --- Logging ---
logger = logging.getLogger("quickbyte")


def setup_logging(debug: bool = False) -> Optional[str]:
    """Send the app's log records to a per-run file under /tmp when debugging.

    Returns the log file path, or None when logging stays silenced.
    """
    if not debug:
        logging.basicConfig(level=logging.CRITICAL, handlers=[logging.NullHandler()])
        return None

    stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
    log_path = os.path.join("/tmp", f"quickbyte_{stamp}_{os.getpid()}.log")
    logging.basicConfig(
        level=logging.DEBUG,
        handlers=[logging.FileHandler(log_path, encoding="utf-8")],
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    # Connection pool chatter drowns out the request lines the gateway logs.
    logging.getLogger("urllib3").setLevel(logging.INFO)

    logger.debug("Writing debug log to %s", log_path)
    return log_path


def ensure_config_file_exists() -> None:
    if not os.path.exists(CONFIG_PATH):
        logger.info("No config at %s; writing defaults", CONFIG_PATH)
        save_config(DEFAULT_CONFIG)


def load_config() -> Dict[str, Any]:
    """Load the config file merged over the defaults, then apply env overrides."""
    ensure_config_file_exists()
    config = dict(DEFAULT_CONFIG)
    try:
        with open(CONFIG_PATH, "r") as f:
            config.update(json.load(f))
            logger.info("Loaded config from %s", CONFIG_PATH)
    except (IOError, json.JSONDecodeError) as e:
        logger.error("Failed to load config from %s: %s", CONFIG_PATH, e)

    if base_url := os.environ.get("QUICKBYTE_BASE_URL"):
        config["base_url"] = base_url
    if token := os.environ.get("QUICKBYTE_TOKEN"):
        config["token"] = token
    return config


def save_config(config: Dict[str, Any]) -> None:
    """Write `config` to CONFIG_PATH, readable only by the user (it may hold a token)."""
    config_dir = os.path.dirname(CONFIG_PATH)
    tmp_path = f"{CONFIG_PATH}.tmp"
    try:
        os.makedirs(config_dir, exist_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp_path, CONFIG_PATH)
    except OSError as e:
        logger.error("Could not write %s: %s", CONFIG_PATH, e)
        return
    logger.info("Wrote config to %s", CONFIG_PATH)



def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Check the values the client cannot run without."""
    base_url = (config.get("base_url") or "").strip()
    if not base_url:
        raise ConfigError(
            "No backend URL configured",
            context={"config_path": CONFIG_PATH},
        )
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"Invalid backend URL: {base_url}")
    config["base_url"] = base_url.rstrip("/")

    try:
        page_size = int(config.get("page_size", DEFAULT_CONFIG["page_size"]))
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid page_size: {config.get('page_size')!r}")
    if page_size < 1:
        raise ConfigError(f"page_size must be positive, got {page_size}")
    config["page_size"] = page_size
    return config
