"""
Front-end state and the handlers for user intents. The console menu in
protonic.cli drives this; it holds no terminal code itself.
"""

from protonic.launcher import HotkeyWorker, Launcher
from protonic.launchoptions import launch_options_status
from protonic.preferences import PreferenceStore


def filter_game_names(names: list[str], search_text: str) -> list[str]:
    """Case-insensitive substring filter, order preserved."""
    term = search_text.lower()
    return [n for n in names if term in n.lower()]


class ProtonicApp:
    """Mirrors what the window shows: search text, game list, selection, exe paths, status."""

    def __init__(
        self,
        games: list[tuple[str, str]],
        store: PreferenceStore,
        launcher: Launcher,
        steam_path: str | None = None,
    ):
        self.games = dict(games)
        self.all_game_names = sorted(self.games)
        self.store = store
        self.launcher = launcher
        self.steam_path = steam_path

        prefs = store.snapshot()
        self.search_text = prefs.last_game_name
        self.app_id = prefs.last_app_id
        self.auto_configure = prefs.auto_configure
        self.game_names = filter_game_names(self.all_game_names, self.search_text)

        game = store.game_config(self.app_id) if self.app_id else None
        self.exe1_path = game.exe1_path if game else ""
        self.exe2_path = game.exe2_path if game else ""
        self.launch_options_status = ""
        self.refresh_status()

    @property
    def selected_game_name(self) -> str:
        for name, app_id in self.games.items():
            if app_id == self.app_id:
                return name
        return ""

    def refresh_status(self) -> str:
        self.launch_options_status = launch_options_status(
            self.app_id, self.auto_configure, steam_path=self.steam_path
        )
        return self.launch_options_status

    def search_edited(self, text: str) -> list[str]:
        self.search_text = text
        self.game_names = filter_game_names(self.all_game_names, text)
        return self.game_names

    def select_game(self, name: str) -> bool:
        """Select a game by display name. Unknown names are ignored."""
        app_id = self.games.get(name)
        if app_id is None:
            return False

        self.app_id = app_id
        game = self.store.game_config(app_id)
        self.exe1_path = game.exe1_path
        self.exe2_path = game.exe2_path
        self.refresh_status()
        self.store.set_last_game(name, app_id)
        return True

    def toggle_auto_configure(self, enabled: bool) -> None:
        self.auto_configure = enabled
        self.store.set_auto_configure(enabled)
        self.refresh_status()

    def browse_exe(self, slot: int, picker) -> str | None:
        """
        Ask picker() for an executable and remember it for the selected game.
        Nothing happens without a selected game or when the picker is cancelled.
        """
        if not self.app_id:
            return None

        path = picker()
        if not path:
            return None

        path = str(path)
        self._set_slot(slot, path)
        self.store.set_exe(self.app_id, slot, path)
        return path

    def clear_exe(self, slot: int) -> None:
        self._set_slot(slot, "")
        if self.app_id:
            self.store.clear_exe(self.app_id, slot)

    def _set_slot(self, slot: int, path: str) -> None:
        if slot == 1:
            self.exe1_path = path
        elif slot == 2:
            self.exe2_path = path
        else:
            raise ValueError(f"Executable slot must be 1 or 2, got {slot!r}")

    def launch(self, app_id: str | None = None) -> HotkeyWorker | None:
        """Launch using the stored settings for app_id (the selection by default)."""
        app_id = app_id or self.app_id
        if not app_id:
            print("No game selected!")
            return None

        exe1, exe2, auto_configure = self.store.launch_settings(app_id)
        worker = self.launcher.run_launch(app_id, exe1, exe2, auto_configure)
        self.refresh_status()
        return worker

    def shutdown(self) -> None:
        self.launcher.shutdown()
