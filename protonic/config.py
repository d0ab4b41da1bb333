"""Settings file handling for protonic."""

import copy
import sys
from pathlib import Path
import tomllib
import tomli_w

CONFIG_PATHS = [
    Path.home() / ".config" / "protonic" / "config.toml",
    Path.cwd() / "protonic-config.toml",
    Path.cwd() / "config.toml",
]

CACHE_DIR = Path.home() / ".cache" / "protonic"
DATA_DIR = Path.home() / ".local" / "share" / "protonic"

DEFAULT_CONFIG = {
    "steam": {
        "steam_path": "",
        "steam_command": "steam",
        "lookup_enabled": False,
    },
    "protonhax": {
        "command": "protonhax",
    },
    "launcher": {
        "hotkey": "f1",
        "poll_interval": 0.1,
        "second_exe_delay": 0.5,
    },
    "audio": {
        "enabled": True,
        "player": "paplay",
        "launch_game": "/usr/share/sounds/freedesktop/stereo/service-login.oga",
        "launch_program": "/usr/share/sounds/freedesktop/stereo/complete.oga",
    },
}


def merge_defaults(loaded: dict) -> dict:
    """Overlay a loaded config on top of DEFAULT_CONFIG, section by section."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in loaded.items():
        if isinstance(values, dict) and section in config:
            config[section].update(values)
        else:
            config[section] = values
    return config


def load_config(paths: list[Path] | None = None) -> dict:
    """Load configuration from the first TOML file found, or fall back to defaults."""
    for config_path in paths if paths is not None else CONFIG_PATHS:
        if config_path.exists():
            try:
                with open(config_path, "rb") as f:
                    return merge_defaults(tomllib.load(f))
            except (tomllib.TOMLDecodeError, OSError) as e:
                print(f"Warning: Could not read config {config_path}: {e}", file=sys.stderr)
                break

    return copy.deepcopy(DEFAULT_CONFIG)


def get_config_path() -> Path:
    """
    Get the path to the config file that should be written.
    Prefers the current directory config if it exists, otherwise uses user config directory.
    """
    cwd_config = Path.cwd() / "protonic-config.toml"
    if cwd_config.exists():
        return cwd_config

    return Path.home() / ".config" / "protonic" / "config.toml"


def save_config(config: dict, config_path: Path | None = None) -> Path:
    """Write the config as TOML. Raises OSError on failure."""
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    return config_path


def steam_path_setting(config: dict) -> str | None:
    """The configured Steam root, or None to use auto-detection."""
    return config.get("steam", {}).get("steam_path") or None
