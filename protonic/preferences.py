"""
Persistent user preferences: last selected game, per-game executables and
the auto-configure flag.
"""

import copy
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path

import tomllib
import tomli_w

PREFERENCES_PATH = Path.home() / ".config" / "protonic" / "default-config.toml"


@dataclass
class GameConfig:
    exe1_path: str = ""
    exe2_path: str = ""

    def set(self, slot: int, path: str) -> None:
        if slot == 1:
            self.exe1_path = path
        else:
            self.exe2_path = path


@dataclass
class Preferences:
    last_game_name: str = ""
    last_app_id: str = ""
    auto_configure: bool = True
    game_configs: dict[str, GameConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Preferences":
        games = {}
        for app_id, game in (data.get("game_configs") or {}).items():
            if isinstance(game, dict):
                games[str(app_id)] = GameConfig(
                    exe1_path=str(game.get("exe1_path", "")),
                    exe2_path=str(game.get("exe2_path", "")),
                )

        auto_configure = data.get("auto_configure", True)
        if not isinstance(auto_configure, bool):
            auto_configure = True

        return cls(
            last_game_name=str(data.get("last_game_name", "")),
            last_app_id=str(data.get("last_app_id", "")),
            auto_configure=auto_configure,
            game_configs=games,
        )

    def to_dict(self) -> dict:
        return {
            "last_game_name": self.last_game_name,
            "last_app_id": self.last_app_id,
            "auto_configure": self.auto_configure,
            "game_configs": {
                app_id: {"exe1_path": game.exe1_path, "exe2_path": game.exe2_path}
                for app_id, game in self.game_configs.items()
            },
        }


def _validate_slot(slot: int) -> None:
    if slot not in (1, 2):
        raise ValueError(f"Executable slot must be 1 or 2, got {slot!r}")


class PreferenceStore:
    """
    Owns the in-memory Preferences behind a single lock. Every mutation is
    followed by a best-effort write; disk I/O happens outside the lock on a
    copy of the data.
    """

    def __init__(self, path: Path | None = None):
        self.path = path if path is not None else PREFERENCES_PATH
        self._lock = threading.Lock()
        self._prefs = Preferences()

    def load(self) -> Preferences:
        """Load preferences from disk. Any failure yields defaults."""
        prefs = Preferences()
        if self.path.exists():
            try:
                with open(self.path, "rb") as f:
                    prefs = Preferences.from_dict(tomllib.load(f))
            except (tomllib.TOMLDecodeError, OSError, AttributeError) as e:
                print(f"Warning: Could not read preferences {self.path}: {e}", file=sys.stderr)

        with self._lock:
            self._prefs = prefs
        return self.snapshot()

    def store(self) -> bool:
        """Write preferences to disk. Failures are reported, never raised."""
        with self._lock:
            data = self._prefs.to_dict()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "wb") as f:
                tomli_w.dump(data, f)
        except OSError as e:
            print(f"Warning: Could not save preferences {self.path}: {e}", file=sys.stderr)
            return False
        return True

    def snapshot(self) -> Preferences:
        with self._lock:
            return copy.deepcopy(self._prefs)

    def game_config(self, app_id: str) -> GameConfig:
        with self._lock:
            return copy.copy(self._prefs.game_configs.get(app_id, GameConfig()))

    def launch_settings(self, app_id: str) -> tuple[str, str, bool]:
        """(exe1, exe2, auto_configure) for a launch, read in one critical section."""
        with self._lock:
            game = self._prefs.game_configs.get(app_id, GameConfig())
            return game.exe1_path, game.exe2_path, self._prefs.auto_configure

    def set_last_game(self, name: str, app_id: str) -> None:
        with self._lock:
            self._prefs.last_game_name = name
            self._prefs.last_app_id = app_id
        self.store()

    def set_auto_configure(self, enabled: bool) -> None:
        with self._lock:
            self._prefs.auto_configure = enabled
        self.store()

    def set_exe(self, app_id: str, slot: int, path: str) -> None:
        _validate_slot(slot)
        with self._lock:
            self._prefs.game_configs.setdefault(app_id, GameConfig()).set(slot, path)
        self.store()

    def clear_exe(self, app_id: str, slot: int) -> None:
        """Clear one executable slot. Unknown games are left alone and nothing is written."""
        _validate_slot(slot)
        with self._lock:
            game = self._prefs.game_configs.get(app_id)
            if game is None:
                return
            game.set(slot, "")
        self.store()
