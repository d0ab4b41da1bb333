import pytest

from protonic import cli
from protonic.launchoptions import read_launch_options


@pytest.fixture
def use_config(monkeypatch, test_config):
    monkeypatch.setattr(cli, "load_config", lambda: test_config)
    return test_config


def test_unknown_command(use_config, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["frobnicate"])

    assert exc.value.code == 1
    assert "Unknown command 'frobnicate'" in capsys.readouterr().err


@pytest.mark.parametrize("command", ["configure", "remove", "status", "launch"])
def test_commands_require_game_id(use_config, command, capsys):
    with pytest.raises(SystemExit):
        cli.main([command])

    assert "Game ID required" in capsys.readouterr().err


def test_configure_and_remove(use_config, localconfig, capsys):
    cli.main(["configure", "440"])
    assert read_launch_options("440", localconfig) == "protonhax init -novid %COMMAND%"
    assert "Launch options configured successfully" in capsys.readouterr().out

    cli.main(["remove", "440"])
    assert read_launch_options("440", localconfig) == "-novid"


def test_configure_unknown_game_exits(use_config, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["configure", "999999"])

    assert exc.value.code == 1
    assert "Game not found in Steam config" in capsys.readouterr().err


def test_status(use_config, capsys):
    cli.main(["status", "440"])
    out = capsys.readouterr().out
    assert "LaunchOptions = '-novid'" in out

    cli.main(["status", "620"])
    assert "No LaunchOptions set" in capsys.readouterr().out


def test_list(use_config, localconfig, capsys):
    cli.configure_launch_options("440", localconfig)

    cli.main(["list"])

    out = capsys.readouterr().out
    assert "Team Fortress 2" in out
    assert "Configured" in out
    assert "Not Set" in out


def test_wrapper_states_without_steam(tmp_path):
    assert cli.wrapper_states(["440"], str(tmp_path / "missing")) == {"440": "Error"}


def test_launch_without_executable_exits(use_config, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["launch", "440"])

    assert exc.value.code == 1
    assert "No executable selected!" in capsys.readouterr().out


def test_launch_with_executables(use_config, monkeypatch, tmp_path):
    spawned = []

    class RecordingLauncher(cli.Launcher):
        def __init__(self, config):
            super().__init__(config, spawn=spawned.append, is_pressed=lambda key: True, sleep=lambda s: None)

    monkeypatch.setattr(cli, "Launcher", RecordingLauncher)

    cli.main(["launch", "620", str(tmp_path / "a.exe"), str(tmp_path / "b.exe")])

    assert spawned == [
        ["steam", "steam://run/620"],
        ["protonhax", "run", "620", str(tmp_path / "a.exe")],
        ["protonhax", "run", "620", str(tmp_path / "b.exe")],
    ]


def test_build_app(test_config, tmp_path):
    store = cli.PreferenceStore(tmp_path / "prefs.toml")

    app = cli.build_app(test_config, store)

    assert app.game_names == ["Portal 2", "Team Fortress 2"]
