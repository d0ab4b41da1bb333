"""
Launch sequencing: start the Steam game, wait for the hotkey, then start the
auxiliary executables inside the game's Proton prefix through protonhax.
"""

import enum
import subprocess
import sys
import threading
import time
from pathlib import Path

from protonic.config import DEFAULT_CONFIG
from protonic.launchoptions import configure_launch_options


def spawn_detached(argv: list[str]) -> bool:
    """
    Start argv without waiting for it. stdio is inherited, not captured.
    A daemon thread waits on the child so it does not linger as a zombie.
    Returns False if the process could not be started.
    """
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        print(f"Warning: Could not start {argv[0]}: {e}", file=sys.stderr)
        return False

    threading.Thread(target=proc.wait, daemon=True).start()
    return True


def key_is_pressed(key: str) -> bool:
    """Global keyboard state, independent of window focus."""
    import keyboard

    return keyboard.is_pressed(key)


class WorkerState(enum.Enum):
    WAITING = "waiting"
    FIRED = "fired"
    CANCELLED = "cancelled"


class HotkeyWorker(threading.Thread):
    """
    Polls the hotkey until it is seen pressed once, then launches the
    executables and exits. stop() ends the wait without launching anything.
    """

    def __init__(self, launcher: "Launcher", app_id: str, exe1: str, exe2: str = ""):
        super().__init__(name=f"hotkey-{app_id}", daemon=True)
        self.launcher = launcher
        self.app_id = app_id
        self.exe1 = exe1
        self.exe2 = exe2
        self.state = WorkerState.WAITING
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        launcher = self.launcher
        print(f"Waiting for {launcher.hotkey.upper()}...")

        while not self._stop_event.is_set():
            try:
                pressed = launcher.is_pressed(launcher.hotkey)
            except (ImportError, OSError, ValueError) as e:
                print(f"Error: Cannot read keyboard state: {e}", file=sys.stderr)
                break

            if pressed:
                self.fire()
                return

            self._stop_event.wait(launcher.poll_interval)

        self.state = WorkerState.CANCELLED

    def fire(self) -> None:
        self.state = WorkerState.FIRED
        launcher = self.launcher
        launcher.play_cue("launch_program")

        print(f"Launching: {self.exe1}")
        launcher.spawn([launcher.protonhax_command, "run", self.app_id, self.exe1])

        if self.exe2:
            launcher.sleep(launcher.second_exe_delay)
            print(f"Launching: {self.exe2}")
            launcher.spawn([launcher.protonhax_command, "run", self.app_id, self.exe2])


class Launcher:
    """
    Drives one or more game launches. The process-spawning, key-reading and
    sleeping primitives can be replaced, which is how the tests run it.
    """

    def __init__(
        self,
        config: dict | None = None,
        spawn=spawn_detached,
        is_pressed=key_is_pressed,
        sleep=time.sleep,
        configure=None,
    ):
        if config is None:
            config = DEFAULT_CONFIG

        steam = config.get("steam", {})
        launcher = config.get("launcher", {})
        audio = config.get("audio", {})

        self.steam_path = steam.get("steam_path") or None
        self.steam_command = steam.get("steam_command", "steam")
        self.protonhax_command = config.get("protonhax", {}).get("command", "protonhax")
        self.hotkey = launcher.get("hotkey", "f1")
        self.poll_interval = float(launcher.get("poll_interval", 0.1))
        self.second_exe_delay = float(launcher.get("second_exe_delay", 0.5))
        self.audio = audio

        self.spawn = spawn
        self.is_pressed = is_pressed
        self.sleep = sleep
        self._configure = configure or self._configure_launch_options
        self._workers: list[HotkeyWorker] = []
        self._lock = threading.Lock()

    def _configure_launch_options(self, app_id: str) -> tuple[bool, str]:
        return configure_launch_options(app_id, steam_path=self.steam_path)

    def play_cue(self, cue: str) -> None:
        """Play the sound configured for cue without waiting for it."""
        if not self.audio.get("enabled", True):
            return

        sound = self.audio.get(cue)
        if not sound:
            return
        sound_path = Path(sound).expanduser()
        if not sound_path.is_file():
            return

        self.spawn([self.audio.get("player", "paplay"), str(sound_path)])

    def run_launch(
        self,
        app_id: str,
        exe1: str,
        exe2: str = "",
        auto_configure: bool = True,
    ) -> HotkeyWorker | None:
        """
        Configure launch options if asked to, start the game and leave a
        background worker waiting for the hotkey. Returns the worker, or None
        when there was nothing to launch.
        """
        if not exe1:
            print("No executable selected!")
            return None

        if auto_configure:
            ok, message = self._configure(app_id)
            if ok:
                print(message)
            else:
                print(f"Warning: Could not configure launch options: {message}", file=sys.stderr)

        self.play_cue("launch_game")

        print(f"Launching Steam Game {app_id}...")
        self.spawn([self.steam_command, f"steam://run/{app_id}"])

        worker = HotkeyWorker(self, app_id, exe1, exe2)
        with self._lock:
            self._workers = [w for w in self._workers if w.is_alive()]
            self._workers.append(worker)
        worker.start()
        return worker

    def pending(self) -> list[HotkeyWorker]:
        """Workers still waiting for the hotkey."""
        with self._lock:
            return [w for w in self._workers if w.is_alive()]

    def shutdown(self, timeout: float = 1.0) -> None:
        """Cancel every waiting worker. Called when the application exits."""
        for worker in self.pending():
            worker.stop()
        for worker in self.pending():
            worker.join(timeout)
