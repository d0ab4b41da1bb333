"""
In-place editing of the LaunchOptions value of one app in Steam's
localconfig.vdf.

The file is treated as a UTF-8 blob and only the bytes of the edited value
change; nothing is parsed or re-serialized. Steam must not be running while
the file is modified or it will overwrite the edit on exit.
"""

import os
import shutil
import sys
import tempfile
from datetime import datetime
from pathlib import Path

from protonic.config import DATA_DIR
from protonic.steam import find_localconfig_vdf

WRAPPER_PREFIX = "protonhax init "
WRAPPER_MARKER = b"protonhax"
COMMAND_TOKEN = "%COMMAND%"
WRAPPED_EMPTY = WRAPPER_PREFIX + COMMAND_TOKEN

LAUNCH_OPTIONS_KEY = b'"LaunchOptions"'
SEARCH_WINDOW = 500
INSERT_INDENT = b"\t" * 7
INSERTED_LINE = (
    b"\n" + INSERT_INDENT + LAUNCH_OPTIONS_KEY
    + b"\t\t" + b'"' + WRAPPED_EMPTY.encode("utf-8") + b'"'
)

BACKUP_FILE = DATA_DIR / "launch_options_backup.md"

STATUS_CONFIGURED = "✓ Launch options configured"
STATUS_PENDING = "Launch options will be configured on launch"


class LaunchOptionsError(Exception):
    """Base class for failures while editing localconfig.vdf."""


class SteamConfigNotFound(LaunchOptionsError):
    pass


class AppNotFound(LaunchOptionsError):
    pass


class MalformedVDF(LaunchOptionsError):
    pass


class ConfigIOError(LaunchOptionsError):
    pass


def _app_token(app_id: str) -> bytes:
    return f'"{app_id}"'.encode("utf-8")


def _window_value_span(content: bytes, app_id: str) -> tuple[int, int] | None:
    """
    Byte span of the LaunchOptions value near the first "<app_id>" token.
    Key and both quotes of the value must lie inside the SEARCH_WINDOW bytes
    that start at the token.
    """
    app_pos = content.find(_app_token(app_id))
    if app_pos == -1:
        return None

    window = content[app_pos:app_pos + SEARCH_WINDOW]
    key_pos = window.find(LAUNCH_OPTIONS_KEY)
    if key_pos == -1:
        return None

    open_quote = window.find(b'"', key_pos + len(LAUNCH_OPTIONS_KEY))
    if open_quote == -1:
        return None
    close_quote = window.find(b'"', open_quote + 1)
    if close_quote == -1:
        return None

    return app_pos + open_quote + 1, app_pos + close_quote


def has_wrapper(content: bytes, app_id: str) -> bool:
    """True if the app's LaunchOptions value already mentions protonhax."""
    span = _window_value_span(content, app_id)
    if span is None:
        return False
    start, end = span
    return WRAPPER_MARKER in content[start:end]


def get_launch_options(content: bytes, app_id: str) -> str | None:
    """The app's current LaunchOptions value, or None if there is none."""
    span = _window_value_span(content, app_id)
    if span is None:
        return None
    start, end = span
    return content[start:end].decode("utf-8", errors="replace")


def _section_value_span(content: bytes, app_id: str) -> tuple[int, tuple[int, int] | None]:
    """
    Locate the app's block and its LaunchOptions value.

    Returns (section_start, value_span). section_start is the offset just past
    the '{' that follows the app token. value_span is None when no
    LaunchOptions key starts within SEARCH_WINDOW bytes of section_start.
    """
    token = _app_token(app_id)
    app_pos = content.find(token)
    if app_pos == -1:
        raise AppNotFound(
            "Game not found in Steam config. Launch the game from Steam at least once first."
        )

    brace = content.find(b"{", app_pos + len(token))
    if brace == -1:
        raise MalformedVDF("Invalid VDF structure")
    section_start = brace + 1

    window = content[section_start:section_start + SEARCH_WINDOW]
    key_pos = window.find(LAUNCH_OPTIONS_KEY)
    if key_pos == -1:
        return section_start, None

    key_end = section_start + key_pos + len(LAUNCH_OPTIONS_KEY)
    open_quote = content.find(b'"', key_end)
    if open_quote == -1:
        raise MalformedVDF("Invalid LaunchOptions format")
    close_quote = content.find(b'"', open_quote + 1)
    if close_quote == -1:
        raise MalformedVDF("Invalid LaunchOptions format")

    return section_start, (open_quote + 1, close_quote)


def wrap_launch_options(existing: str) -> str:
    """
    Prefix existing launch options with the protonhax wrapper.
    %COMMAND% is always appended, even if existing already contains one.
    """
    if not existing:
        return WRAPPED_EMPTY
    return f"{WRAPPER_PREFIX}{existing} {COMMAND_TOKEN}"


def unwrap_launch_options(value: str) -> str:
    """Undo wrap_launch_options. Values it did not produce are returned as-is."""
    if not value.startswith(WRAPPER_PREFIX):
        return value

    value = value[len(WRAPPER_PREFIX):]
    if value == COMMAND_TOKEN:
        return ""
    suffix = " " + COMMAND_TOKEN
    if value.endswith(suffix):
        return value[:-len(suffix)]
    return value


def install_wrapper(content: bytes, app_id: str) -> bytes:
    """
    Return content with the protonhax wrapper installed in app_id's launch
    options. Content that already has it is returned unchanged.
    """
    if has_wrapper(content, app_id):
        return content

    section_start, span = _section_value_span(content, app_id)

    if span is None:
        return content[:section_start] + INSERTED_LINE + content[section_start:]

    start, end = span
    # The value can end past the detection window; never wrap twice.
    if WRAPPER_MARKER in content[start:end]:
        return content
    existing = content[start:end].decode("utf-8")
    new_value = wrap_launch_options(existing).encode("utf-8")
    return content[:start] + new_value + content[end:]


def remove_wrapper(content: bytes, app_id: str) -> bytes:
    """
    Return content with the protonhax wrapper stripped from app_id's launch
    options. A line added by install_wrapper is removed entirely. Content
    without a wrapper is returned unchanged.
    """
    section_start, span = _section_value_span(content, app_id)
    if span is None:
        return content

    if content.startswith(INSERTED_LINE, section_start):
        return content[:section_start] + content[section_start + len(INSERTED_LINE):]

    start, end = span
    value = content[start:end].decode("utf-8")
    restored = unwrap_launch_options(value)
    if restored == value:
        return content
    return content[:start] + restored.encode("utf-8") + content[end:]


def _resolve_path(localconfig_path: Path | None, steam_path: str | None) -> Path:
    if localconfig_path is None:
        localconfig_path = find_localconfig_vdf(steam_path)
    if localconfig_path is None:
        raise SteamConfigNotFound("Could not find Steam localconfig.vdf")
    return Path(localconfig_path)


def read_localconfig(localconfig_path: Path) -> bytes:
    """Read localconfig.vdf, insisting that it is valid UTF-8."""
    try:
        content = localconfig_path.read_bytes()
        content.decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigIOError(f"Failed to read localconfig.vdf: {e}") from e
    return content


def write_localconfig(localconfig_path: Path, content: bytes) -> None:
    """
    Replace localconfig.vdf through a temporary file in the same directory,
    so a failed write leaves the original intact.
    """
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=localconfig_path.parent,
            prefix=".localconfig.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
        shutil.copymode(localconfig_path, tmp_name)
        os.replace(tmp_name, localconfig_path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ConfigIOError(f"Failed to write localconfig.vdf: {e}") from e


def create_backup(app_id: str, original_value: str) -> None:
    """
    Append the LaunchOptions value about to be replaced to a Markdown table.
    Failures are reported and otherwise ignored.
    """
    backup_content = f"| {datetime.now().isoformat(timespec='seconds')} | {app_id} | {original_value} |\n"

    try:
        BACKUP_FILE.parent.mkdir(parents=True, exist_ok=True)
        if BACKUP_FILE.exists():
            with open(BACKUP_FILE, "a", encoding="utf-8") as f:
                f.write(backup_content)
        else:
            with open(BACKUP_FILE, "w", encoding="utf-8") as f:
                f.write("# Launch Options Backup\n\n")
                f.write("| Time | Game ID | Original LaunchOptions |\n")
                f.write("|------|---------|------------------------|\n")
                f.write(backup_content)
    except OSError as e:
        print(f"Warning: Could not write backup {BACKUP_FILE}: {e}", file=sys.stderr)


def is_wrapper_configured(
    app_id: str,
    localconfig_path: Path | None = None,
    steam_path: str | None = None,
) -> bool:
    """File-level has_wrapper. Any locate or read failure counts as not configured."""
    try:
        content = read_localconfig(_resolve_path(localconfig_path, steam_path))
    except LaunchOptionsError:
        return False
    return has_wrapper(content, app_id)


def read_launch_options(
    app_id: str,
    localconfig_path: Path | None = None,
    steam_path: str | None = None,
) -> str | None:
    """Current LaunchOptions value for app_id, None if unset or unreadable."""
    try:
        content = read_localconfig(_resolve_path(localconfig_path, steam_path))
    except LaunchOptionsError:
        return None
    return get_launch_options(content, app_id)


def configure_launch_options(
    app_id: str,
    localconfig_path: Path | None = None,
    steam_path: str | None = None,
) -> tuple[bool, str]:
    """
    Install the protonhax wrapper into app_id's launch options on disk.
    Returns (ok, message); never raises LaunchOptionsError.
    """
    try:
        path = _resolve_path(localconfig_path, steam_path)
        content = read_localconfig(path)

        if has_wrapper(content, app_id):
            return True, "Launch options already configured"

        _, span = _section_value_span(content, app_id)
        new_content = install_wrapper(content, app_id)
        if new_content == content:
            return True, "Launch options already configured"

        write_localconfig(path, new_content)
    except LaunchOptionsError as e:
        return False, str(e)

    if span is not None:
        start, end = span
        create_backup(app_id, content[start:end].decode("utf-8"))

    return True, "Launch options configured successfully"


def remove_launch_options(
    app_id: str,
    localconfig_path: Path | None = None,
    steam_path: str | None = None,
) -> tuple[bool, str]:
    """Strip the protonhax wrapper from app_id's launch options on disk."""
    try:
        path = _resolve_path(localconfig_path, steam_path)
        content = read_localconfig(path)

        _, span = _section_value_span(content, app_id)
        new_content = remove_wrapper(content, app_id)
        if new_content == content:
            return True, "No protonhax wrapper to remove"

        write_localconfig(path, new_content)
    except LaunchOptionsError as e:
        return False, str(e)

    start, end = span
    create_backup(app_id, content[start:end].decode("utf-8"))

    return True, "Launch options restored"


def launch_options_status(
    app_id: str,
    auto_configure: bool,
    localconfig_path: Path | None = None,
    steam_path: str | None = None,
) -> str:
    """Status line for the front-end; empty when nothing is selected or auto-configure is off."""
    if not app_id or not auto_configure:
        return ""
    if is_wrapper_configured(app_id, localconfig_path, steam_path):
        return STATUS_CONFIGURED
    return STATUS_PENDING
