"""
Configuration management for drive-tree.

Single JSON file, owned by drive-tree:
  ~/.config/drive-tree/config.json  (honours XDG_CONFIG_HOME)

Resolution (highest → lowest):
  1. CLI flags (--api-url, --token)
  2. config.json
  3. Built-in defaults
"""

import fcntl
import json
import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:4023"
DEFAULT_TIMEOUT = 30.0


# --- Data classes ---

@dataclass
class TreeConfig:
    """Sidebar tree rendering."""
    show_files: bool = False

@dataclass
class ListingConfig:
    """Directory listing rendering."""
    sort_by: str = "type"
    reverse: bool = False

@dataclass
class DriveConfig:
    """Full drive-tree configuration."""
    api_url: str = DEFAULT_API_URL
    access_token: str = ""
    request_timeout: float = DEFAULT_TIMEOUT
    tree: TreeConfig = field(default_factory=TreeConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)


# --- Path helpers ---

def get_config_dir() -> Path:
    """Get drive-tree config directory (~/.config/drive-tree/)."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config) / "drive-tree"

def get_config_path() -> Path:
    return get_config_dir() / "config.json"


# --- Read/write config.json ---

def read_config_file() -> Optional[dict]:
    """Read config.json. Returns None if not found or unreadable."""
    path = get_config_path()
    if not path.exists():
        return None
    try:
        with open(path, "r") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            try:
                return json.load(f)
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)
    except (json.JSONDecodeError, OSError) as e:
        log.warning(f"Could not read config at {path}: {e}")
        return None

def write_config_file(data: dict) -> None:
    """Atomic write to config.json with file locking.

    Writes to a temp file and renames it over the target while holding an
    exclusive lock. The file may hold a token, so it is chmod 600.
    """
    path = get_config_path()
    tmp_path = path.with_suffix(".tmp")

    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(data, indent=2) + "\n"
    if json.loads(content) != data:
        raise ValueError("JSON roundtrip validation failed, refusing to write")

    with open(tmp_path, "w") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        try:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
            os.rename(tmp_path, path)
            os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 600
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)


# --- Conversion ---

def config_to_dict(config: DriveConfig) -> dict:
    """Serialize a DriveConfig to a JSON-safe dict. Single source of truth."""
    return {
        "api_url": config.api_url,
        "access_token": config.access_token,
        "request_timeout": config.request_timeout,
        "tree": {"show_files": config.tree.show_files},
        "listing": {"sort_by": config.listing.sort_by, "reverse": config.listing.reverse},
    }

def config_from_dict(data: dict) -> DriveConfig:
    tree = data.get("tree", {})
    listing = data.get("listing", {})
    return DriveConfig(
        api_url=data.get("api_url", DEFAULT_API_URL),
        access_token=data.get("access_token", ""),
        request_timeout=float(data.get("request_timeout", DEFAULT_TIMEOUT)),
        tree=TreeConfig(show_files=tree.get("show_files", False)),
        listing=ListingConfig(
            sort_by=listing.get("sort_by", "type"),
            reverse=listing.get("reverse", False),
        ),
    )


# --- High-level loading ---

def normalize_config() -> bool:
    """Backfill missing keys with defaults. Returns True if the file was updated."""
    data = read_config_file()
    if not data:
        return False

    changed = False
    for key, default in config_to_dict(DriveConfig()).items():
        if key not in data:
            data[key] = default
            changed = True
        elif isinstance(default, dict) and isinstance(data[key], dict):
            for k, v in default.items():
                if k not in data[key]:
                    data[key][k] = v
                    changed = True

    if changed:
        write_config_file(data)
        log.info("Backfilled missing config keys with defaults")
    return changed

def load_config(
    cli_api_url: Optional[str] = None,
    cli_token: Optional[str] = None,
) -> DriveConfig:
    """Load config.json and apply CLI overrides."""
    normalize_config()
    data = read_config_file() or {}
    config = config_from_dict(data)

    if cli_api_url:
        config.api_url = cli_api_url
    if cli_token:
        config.access_token = cli_token
    config.api_url = config.api_url.rstrip("/")
    return config

def save_config(config: DriveConfig) -> None:
    write_config_file(config_to_dict(config))

def set_config_value(key: str, value: str) -> DriveConfig:
    """Set one dotted key (e.g. "listing.sort_by") from a CLI string and save."""
    config = load_config()
    data = config_to_dict(config)
    section, _, name = key.partition(".")

    if name:
        if section not in data or not isinstance(data[section], dict) or name not in data[section]:
            raise KeyError(key)
        target, field_name = data[section], name
    else:
        if section not in data or isinstance(data[section], dict):
            raise KeyError(key)
        target, field_name = data, section

    current = target[field_name]
    if isinstance(current, bool):
        target[field_name] = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(current, float):
        target[field_name] = float(value)
    else:
        target[field_name] = value

    write_config_file(data)
    return config_from_dict(data)
