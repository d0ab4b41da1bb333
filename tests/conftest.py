from pathlib import Path

import pytest

from protonic import launchoptions, preferences, steam

LOCALCONFIG = """\
"UserLocalConfigStore"
{
\t"Software"
\t{
\t\t"Valve"
\t\t{
\t\t\t"Steam"
\t\t\t{
\t\t\t\t"apps"
\t\t\t\t{
\t\t\t\t\t"440"
\t\t\t\t\t{
\t\t\t\t\t\t"LastPlayed"\t\t"1700000000"
\t\t\t\t\t\t"LaunchOptions"\t\t"-novid"
\t\t\t\t\t}
\t\t\t\t\t"620"
\t\t\t\t\t{
\t\t\t\t\t\t"LastPlayed"\t\t"1700000001"
\t\t\t\t\t}
\t\t\t\t}
\t\t\t}
\t\t}
\t}
}
"""


def write_manifest(steamapps: Path, app_id: str, name: str | None) -> Path:
    steamapps.mkdir(parents=True, exist_ok=True)
    lines = ['"AppState"', "{", f'\t"appid"\t\t"{app_id}"']
    if name is not None:
        lines.append(f'\t"name"\t\t"{name}"')
    lines += [f'\t"installdir"\t\t"dir{app_id}"', "}"]
    manifest = steamapps / f"appmanifest_{app_id}.acf"
    manifest.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return manifest


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    """Keep every test away from the real home directory and network."""
    monkeypatch.setattr(launchoptions, "BACKUP_FILE", tmp_path / "data" / "launch_options_backup.md")
    monkeypatch.setattr(preferences, "PREFERENCES_PATH", tmp_path / "prefs" / "default-config.toml")
    monkeypatch.setattr(steam, "STEAM_CANDIDATES", [])
    monkeypatch.setattr(steam, "CACHE_DIR", tmp_path / "cache")
    monkeypatch.setattr(steam, "CACHE_FILE", tmp_path / "cache" / "steam_apps.json")
    monkeypatch.setattr(steam, "CACHE_METADATA_FILE", tmp_path / "cache" / "cache_metadata.json")


@pytest.fixture
def steam_root(tmp_path):
    """A Steam install with one user, a localconfig.vdf and two installed games."""
    root = tmp_path / "Steam"
    config_dir = root / "userdata" / "12345678" / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "localconfig.vdf").write_text(LOCALCONFIG, encoding="utf-8")

    write_manifest(root / "steamapps", "440", "Team Fortress 2")
    write_manifest(root / "steamapps", "620", "Portal 2")
    return root


@pytest.fixture
def localconfig(steam_root):
    return steam_root / "userdata" / "12345678" / "config" / "localconfig.vdf"


@pytest.fixture
def test_config(steam_root):
    return {
        "steam": {"steam_path": str(steam_root), "steam_command": "steam", "lookup_enabled": False},
        "protonhax": {"command": "protonhax"},
        "launcher": {"hotkey": "f1", "poll_interval": 0.01, "second_exe_delay": 0.5},
        "audio": {"enabled": False},
    }
