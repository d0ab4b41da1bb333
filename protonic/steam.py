"""
Steam installation discovery: the per-user localconfig.vdf and the catalog of
installed games.
"""

import json
import sys
from datetime import datetime, timedelta
from pathlib import Path

import requests

from protonic.config import CACHE_DIR

STEAM_CANDIDATES = [
    Path.home() / ".local" / "share" / "Steam",
    Path.home() / ".steam" / "steam",
    Path.home() / ".steam" / "root",
    Path.home() / ".var" / "app" / "com.valvesoftware.Steam" / ".local" / "share" / "Steam",
    Path.home() / "snap" / "steam" / "common" / ".local" / "share" / "Steam",
]

CACHE_FILE = CACHE_DIR / "steam_apps.json"
CACHE_METADATA_FILE = CACHE_DIR / "cache_metadata.json"
STEAM_API_URL = "https://api.steampowered.com/ISteamApps/GetAppList/v2/"
CACHE_VALIDITY_DAYS = 7


def find_steam_root(steam_path: str | None = None) -> Path | None:
    """
    Resolve the Steam installation directory.

    An explicit steam_path wins; otherwise the well-known install locations
    (native, symlinks, Flatpak, Snap) are tried in order.
    """
    if steam_path:
        steam_dir = Path(steam_path).expanduser()
        try:
            if steam_dir.is_dir():
                return steam_dir
        except OSError:
            pass
        print(f"Warning: Configured Steam path not found: {steam_dir}", file=sys.stderr)
        return None

    for candidate in STEAM_CANDIDATES:
        try:
            if candidate.is_dir():
                return candidate
        except OSError:
            continue

    return None


def find_userdata_dir(steam_root: Path) -> Path | None:
    """
    Return the first numeric user directory under <steam_root>/userdata.
    Only one Steam user is expected per host; no attempt is made to pick
    between several.
    """
    userdata_dir = steam_root / "userdata"

    try:
        if not userdata_dir.is_dir():
            return None
        for entry in userdata_dir.iterdir():
            if entry.name.isascii() and entry.name.isdigit() and entry.is_dir():
                return entry
    except OSError:
        return None

    return None


def find_localconfig_vdf(steam_path: str | None = None) -> Path | None:
    """
    Find <steam>/userdata/<uid>/config/localconfig.vdf.
    Returns None if Steam, the user directory or the file is missing.
    """
    steam_root = find_steam_root(steam_path)
    if steam_root is None:
        return None

    user_dir = find_userdata_dir(steam_root)
    if user_dir is None:
        return None

    localconfig = user_dir / "config" / "localconfig.vdf"
    try:
        if localconfig.is_file():
            return localconfig
    except OSError:
        pass

    return None


def parse_vdf(content: str) -> dict:
    """
    Parse VDF (KeyValues text) content into nested dictionaries.
    Good enough for libraryfolders.vdf and appmanifest files; it is not used
    to rewrite anything.
    """
    def tokenize(text):
        tokens = []
        i = 0
        while i < len(text):
            if text[i].isspace():
                i += 1
                continue
            # Comments
            if text[i:i+2] == "//":
                while i < len(text) and text[i] != "\n":
                    i += 1
                continue
            if text[i] == '"':
                i += 1
                chars = []
                while i < len(text) and text[i] != '"':
                    if text[i] == "\\" and i + 1 < len(text):
                        i += 1
                    chars.append(text[i])
                    i += 1
                tokens.append(("STRING", "".join(chars)))
                i += 1
            elif text[i] in "{}":
                tokens.append(("BRACE", text[i]))
                i += 1
            else:
                i += 1
        return tokens

    def parse_tokens(tokens, index=0):
        result = {}
        while index < len(tokens):
            token_type, token_value = tokens[index]

            if token_type == "STRING":
                key = token_value
                index += 1
                if index >= len(tokens):
                    break

                next_type, next_value = tokens[index]
                if next_type == "BRACE" and next_value == "{":
                    nested, index = parse_tokens(tokens, index + 1)
                    result[key] = nested
                elif next_type == "STRING":
                    result[key] = next_value
                    index += 1
            elif token_type == "BRACE" and token_value == "}":
                index += 1
                break
            else:
                index += 1

        return result, index

    parsed, _ = parse_tokens(tokenize(content))
    return parsed


def _read_vdf_file(path: Path) -> dict:
    try:
        return parse_vdf(path.read_text(encoding="utf-8", errors="replace"))
    except OSError as e:
        print(f"Warning: Could not read {path}: {e}", file=sys.stderr)
        return {}


def find_library_folders(steam_root: Path) -> list[Path]:
    """
    List the steamapps directories of every Steam library, starting with the
    one inside steam_root. Handles both the current libraryfolders.vdf layout
    ("0" { "path" "..." }) and the legacy one ("1" "/path").
    """
    libraries = [steam_root / "steamapps"]
    vdf_path = steam_root / "steamapps" / "libraryfolders.vdf"

    if vdf_path.is_file():
        data = _read_vdf_file(vdf_path)
        folders = data.get("libraryfolders") or data.get("LibraryFolders") or {}
        for key, value in folders.items():
            if not key.isdigit():
                continue
            raw = value.get("path") if isinstance(value, dict) else value
            if raw:
                libraries.append(Path(raw).expanduser() / "steamapps")

    seen = set()
    unique = []
    for library in libraries:
        try:
            if not library.is_dir():
                continue
            resolved = library.resolve()
        except OSError:
            continue
        if resolved not in seen:
            seen.add(resolved)
            unique.append(library)

    return unique


def read_app_manifest(manifest_file: Path) -> dict:
    """Return the AppState block of an appmanifest_<id>.acf file."""
    data = _read_vdf_file(manifest_file)
    state = data.get("AppState", {})
    return state if isinstance(state, dict) else {}


def get_installed_games(
    steam_path: str | None = None,
    lookup_enabled: bool = False,
) -> list[tuple[str, str]]:
    """
    Enumerate installed games across all Steam libraries.
    Returns (display_name, app_id) pairs sorted by name. Games whose manifest
    has no name are looked up in the Steam app list cache when lookup is
    enabled, and skipped otherwise.
    """
    steam_root = find_steam_root(steam_path)
    if steam_root is None:
        print("Warning: Steam installation not found", file=sys.stderr)
        return []

    games: dict[str, str] = {}
    for library in find_library_folders(steam_root):
        for manifest_file in library.glob("appmanifest_*.acf"):
            app_id = manifest_file.stem.replace("appmanifest_", "")
            if not app_id.isdigit():
                continue

            name = read_app_manifest(manifest_file).get("name")
            if not name and lookup_enabled:
                name = lookup_game_title(app_id)
            if name:
                games[name] = app_id

    return sorted(games.items())


def is_cache_valid() -> bool:
    """Check if the cached Steam app list is still valid."""
    if not CACHE_METADATA_FILE.exists():
        return False

    try:
        with open(CACHE_METADATA_FILE, "r") as f:
            metadata = json.load(f)

        last_update = datetime.fromisoformat(metadata.get("last_update", ""))
        return datetime.now() - last_update < timedelta(days=CACHE_VALIDITY_DAYS)
    except (json.JSONDecodeError, ValueError, OSError):
        return False


def update_steam_app_cache() -> bool:
    """Fetch and cache the Steam app list from the official API."""
    try:
        print("Updating Steam app list cache...")
        response = requests.get(STEAM_API_URL, timeout=30)
        response.raise_for_status()
        data = response.json()

        CACHE_DIR.mkdir(parents=True, exist_ok=True)
        with open(CACHE_FILE, "w") as f:
            json.dump(data, f)

        metadata = {
            "last_update": datetime.now().isoformat(),
            "app_count": len(_app_entries(data)),
        }
        with open(CACHE_METADATA_FILE, "w") as f:
            json.dump(metadata, f)

        print(f"✓ Cache updated with {metadata['app_count']} apps")
        return True

    except (requests.exceptions.RequestException, ValueError, OSError) as e:
        print(f"Warning: Failed to update Steam app cache: {e}", file=sys.stderr)
        return False


def load_app_cache() -> dict | None:
    """Load the cached Steam app list."""
    if not CACHE_FILE.exists():
        return None

    try:
        with open(CACHE_FILE, "r") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return None


def _app_entries(data: dict) -> list:
    # v2 returns {"applist": {"apps": [...]}}, v1 nests one level deeper
    apps = data.get("applist", {}).get("apps", [])
    if isinstance(apps, dict):
        apps = apps.get("app", [])
    return apps


def lookup_game_title(app_id: str) -> str | None:
    """Look up a game title in the Steam app list cache, refreshing it if stale."""
    if not is_cache_valid():
        update_steam_app_cache()

    data = load_app_cache()
    if not data:
        return None

    try:
        app_id_int = int(app_id)
    except ValueError:
        return None

    for app in _app_entries(data):
        if app.get("appid") == app_id_int and app.get("name"):
            return app["name"]

    return None
