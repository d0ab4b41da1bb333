import json
from datetime import datetime, timedelta

import requests

from protonic import steam
from protonic.steam import (
    find_library_folders,
    find_localconfig_vdf,
    find_steam_root,
    find_userdata_dir,
    get_installed_games,
    lookup_game_title,
    parse_vdf,
    update_steam_app_cache,
)

from conftest import write_manifest


def test_find_localconfig_vdf(steam_root, localconfig):
    assert find_localconfig_vdf(str(steam_root)) == localconfig


def test_find_localconfig_vdf_uses_candidates(steam_root, localconfig, tmp_path, monkeypatch):
    monkeypatch.setattr(steam, "STEAM_CANDIDATES", [tmp_path / "nope", steam_root])
    assert find_localconfig_vdf() == localconfig


def test_find_steam_root_missing(tmp_path, capsys):
    assert find_steam_root() is None
    assert find_steam_root(str(tmp_path / "missing")) is None
    assert "Configured Steam path not found" in capsys.readouterr().err


def test_userdata_skips_non_numeric_entries(tmp_path):
    userdata = tmp_path / "userdata"
    (userdata / "anonymous").mkdir(parents=True)
    (userdata / "12ab").mkdir()
    (userdata / "999").write_text("not a directory")
    (userdata / "4242").mkdir()

    assert find_userdata_dir(tmp_path) == userdata / "4242"


def test_userdata_absent(tmp_path):
    assert find_userdata_dir(tmp_path) is None
    (tmp_path / "userdata").mkdir()
    assert find_userdata_dir(tmp_path) is None


def test_localconfig_absent_for_user(tmp_path):
    (tmp_path / "userdata" / "1" / "config").mkdir(parents=True)
    assert find_localconfig_vdf(str(tmp_path)) is None


def test_parse_vdf_nested_values():
    content = """
    // comment
    "AppState"
    {
        "appid"     "440"
        "name"      "Say \\"Hi\\""
        "LaunchOptions"     ""
        "UserConfig"
        {
            "language"      "english"
        }
    }
    """
    data = parse_vdf(content)

    assert data == {
        "AppState": {
            "appid": "440",
            "name": 'Say "Hi"',
            "LaunchOptions": "",
            "UserConfig": {"language": "english"},
        }
    }


def test_find_library_folders(steam_root, tmp_path):
    second = tmp_path / "Library2"
    (second / "steamapps").mkdir(parents=True)
    (steam_root / "steamapps" / "libraryfolders.vdf").write_text(
        '"libraryfolders"\n{\n'
        f'\t"0"\n\t{{\n\t\t"path"\t\t"{steam_root}"\n\t}}\n'
        f'\t"1"\n\t{{\n\t\t"path"\t\t"{second}"\n\t}}\n'
        f'\t"2"\n\t{{\n\t\t"path"\t\t"{tmp_path / "unplugged"}"\n\t}}\n'
        "}\n",
        encoding="utf-8",
    )

    assert find_library_folders(steam_root) == [steam_root / "steamapps", second / "steamapps"]


def test_find_library_folders_legacy_format(steam_root, tmp_path):
    second = tmp_path / "Old"
    (second / "steamapps").mkdir(parents=True)
    (steam_root / "steamapps" / "libraryfolders.vdf").write_text(
        f'"LibraryFolders"\n{{\n\t"TimeNextStatsReport"\t"1"\n\t"1"\t"{second}"\n}}\n',
        encoding="utf-8",
    )

    assert find_library_folders(steam_root) == [steam_root / "steamapps", second / "steamapps"]


def test_get_installed_games_sorted_by_name(steam_root, tmp_path):
    second = tmp_path / "Library2"
    write_manifest(second / "steamapps", "70", "Half-Life")
    write_manifest(second / "steamapps", "12345", None)
    (steam_root / "steamapps" / "libraryfolders.vdf").write_text(
        f'"libraryfolders"\n{{\n\t"1"\n\t{{\n\t\t"path"\t\t"{second}"\n\t}}\n}}\n',
        encoding="utf-8",
    )

    games = get_installed_games(str(steam_root))

    assert games == [("Half-Life", "70"), ("Portal 2", "620"), ("Team Fortress 2", "440")]


def test_get_installed_games_looks_up_missing_names(steam_root, monkeypatch):
    write_manifest(steam_root / "steamapps", "12345", None)
    monkeypatch.setattr(steam, "lookup_game_title", lambda app_id: f"App {app_id}")

    games = get_installed_games(str(steam_root), lookup_enabled=True)

    assert ("App 12345", "12345") in games


def test_get_installed_games_without_steam(tmp_path):
    assert get_installed_games(str(tmp_path / "missing")) == []


def _write_cache(apps, age=timedelta(0)):
    steam.CACHE_DIR.mkdir(parents=True, exist_ok=True)
    steam.CACHE_FILE.write_text(json.dumps({"applist": {"apps": apps}}))
    steam.CACHE_METADATA_FILE.write_text(
        json.dumps({"last_update": (datetime.now() - age).isoformat(), "app_count": len(apps)})
    )


def test_lookup_game_title_from_fresh_cache(monkeypatch):
    _write_cache([{"appid": 440, "name": "Team Fortress 2"}])

    def no_network(*args, **kwargs):
        raise AssertionError("cache is fresh, no request expected")

    monkeypatch.setattr(steam.requests, "get", no_network)

    assert lookup_game_title("440") == "Team Fortress 2"
    assert lookup_game_title("441") is None


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


def test_stale_cache_is_refreshed(monkeypatch):
    _write_cache([], age=timedelta(days=30))
    payload = {"applist": {"apps": [{"appid": 620, "name": "Portal 2"}]}}
    monkeypatch.setattr(steam.requests, "get", lambda url, timeout: FakeResponse(payload))

    assert lookup_game_title("620") == "Portal 2"
    assert json.loads(steam.CACHE_METADATA_FILE.read_text())["app_count"] == 1


def test_update_cache_network_failure(monkeypatch, capsys):
    def offline(url, timeout):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(steam.requests, "get", offline)

    assert update_steam_app_cache() is False
    assert "Failed to update Steam app cache" in capsys.readouterr().err
    assert lookup_game_title("620") is None
