"""
protonic: launch a Steam game and, on a hotkey, run extra Windows programs in
its Proton prefix via protonhax.
Run with: protonic [command] [args]

Commands:
  menu                      - Interactive game browser and launcher (default)
  list                      - List installed games and their LaunchOptions status
  launch <ID> [exe1] [exe2] - Launch a game, then the executables on hotkey
  configure <ID>            - Add the protonhax wrapper to a game's LaunchOptions
  remove <ID>               - Remove the protonhax wrapper from a game's LaunchOptions
  status <ID>               - Show a game's current LaunchOptions
  init                      - Interactive configuration setup
"""

import sys
from pathlib import Path

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from protonic.app import ProtonicApp
from protonic.config import get_config_path, load_config, save_config, steam_path_setting
from protonic.launcher import Launcher
from protonic.launchoptions import (
    LaunchOptionsError,
    configure_launch_options,
    has_wrapper,
    read_launch_options,
    read_localconfig,
    remove_launch_options,
)
from protonic.preferences import PreferenceStore
from protonic.steam import find_localconfig_vdf, find_steam_root, get_installed_games

USAGE = """\
Usage:
  protonic [menu]                    - Interactive game browser and launcher
  protonic list                      - List installed games
  protonic launch <ID> [exe1] [exe2] - Launch a game, then the executables on hotkey
  protonic configure <ID>            - Add the protonhax wrapper to LaunchOptions
  protonic remove <ID>               - Remove the protonhax wrapper from LaunchOptions
  protonic status <ID>               - Show current LaunchOptions
  protonic init                      - Interactive configuration setup"""


def build_app(config: dict, store: PreferenceStore | None = None) -> ProtonicApp:
    steam_path = steam_path_setting(config)
    games = get_installed_games(steam_path, config["steam"].get("lookup_enabled", False))

    if store is None:
        store = PreferenceStore()
    store.load()

    return ProtonicApp(games, store, Launcher(config), steam_path=steam_path)


def wrapper_states(app_ids: list[str], steam_path: str | None = None) -> dict[str, str]:
    """LaunchOptions status label per app, reading localconfig.vdf only once."""
    localconfig_path = find_localconfig_vdf(steam_path)
    if localconfig_path is None:
        return {app_id: "Error" for app_id in app_ids}

    try:
        content = read_localconfig(localconfig_path)
    except LaunchOptionsError:
        return {app_id: "Error" for app_id in app_ids}

    return {
        app_id: "Configured" if has_wrapper(content, app_id) else "Not Set"
        for app_id in app_ids
    }


def pick_executable() -> str | None:
    """
    Ask for an executable with the desktop file dialog, or on the terminal
    when no display is available. Returns an absolute path or None.
    """
    try:
        import tkinter
        from tkinter import filedialog
    except ImportError:
        tkinter = None

    if tkinter is not None:
        try:
            root = tkinter.Tk()
            root.withdraw()
            try:
                path = filedialog.askopenfilename(
                    title="Select executable",
                    filetypes=[("Executables", "*.exe"), ("All Files", "*")],
                )
            finally:
                root.destroy()
            return path or None
        except tkinter.TclError:
            pass

    path = Prompt.ask("Path to executable (empty to cancel)", default="", show_default=False).strip()
    if not path:
        return None
    return str(Path(path).expanduser().absolute())


def get_key() -> str:
    """
    Get keyboard input from user.
    Returns: 'up', 'down', 'enter', 'q', 'esc', or the character
    """
    import tty
    import termios

    fd = sys.stdin.fileno()
    old_settings = termios.tcgetattr(fd)

    try:
        tty.setraw(fd)
        ch = sys.stdin.read(1)

        if ch == "\x1b":
            next_chars = sys.stdin.read(2)
            if next_chars == "[A":
                return "up"
            elif next_chars == "[B":
                return "down"
            return "esc"
        elif ch == "\r" or ch == "\n":
            return "enter"
        elif ch == "\x03":
            raise KeyboardInterrupt
        else:
            return ch.lower()
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def games_table(app: ProtonicApp, selection: int) -> Table:
    table = Table(title="Steam Games", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", width=10)
    table.add_column("Game Name", style="green")
    table.add_column("LaunchOption Status", style="yellow")

    app_ids = [app.games[name] for name in app.game_names]
    states = wrapper_states(app_ids, app.steam_path)

    for idx, name in enumerate(app.game_names):
        app_id = app.games[name]
        style = "bold white on blue" if idx == selection else ""
        table.add_row(Text(app_id, style=style), Text(name, style=style), Text(states[app_id], style=style))

    return table


def display_interactive_menu(app: ProtonicApp) -> None:
    """
    Browse installed games with the arrow keys, '/' to search, Enter to select.
    Waiting hotkey workers are cancelled when the menu is left.
    """
    console = Console()
    current_selection = 0
    if app.selected_game_name in app.game_names:
        current_selection = app.game_names.index(app.selected_game_name)

    try:
        while True:
            console.clear()
            console.print(games_table(app, current_selection))
            if app.search_text:
                console.print(f"[cyan]Search:[/cyan] {app.search_text}")
            for worker in app.launcher.pending():
                console.print(f"[yellow]Game {worker.app_id} waiting for {app.launcher.hotkey.upper()}[/yellow]")
            console.print(
                "\n[cyan]Navigation:[/cyan] Use [bold]↑[/bold]/[bold]↓[/bold] to move, "
                "[bold]Enter[/bold] to select, [bold]/[/bold] to search, [bold]Q[/bold]/[bold]Esc[/bold] to quit"
            )

            key = get_key()

            if key == "up":
                current_selection = max(0, current_selection - 1)
            elif key == "down":
                current_selection = min(max(len(app.game_names) - 1, 0), current_selection + 1)
            elif key == "/":
                app.search_edited(Prompt.ask("Search", default=app.search_text))
                current_selection = 0
            elif key == "enter" and app.game_names:
                app.select_game(app.game_names[current_selection])
                handle_game_selection(app, console)
            elif key in ["q", "esc"]:
                console.print("[yellow]Exiting menu...[/yellow]")
                break
    except KeyboardInterrupt:
        console.print("\n[yellow]Menu cancelled[/yellow]")
    finally:
        app.shutdown()


def handle_game_selection(app: ProtonicApp, console: Console) -> None:
    """Menu for the selected game."""
    while True:
        console.clear()
        console.print(f"\n[bold blue]Selected Game:[/bold blue] {app.selected_game_name} (ID: {app.app_id})")
        console.print(f"Executable 1: {app.exe1_path or '[dim]not set[/dim]'}")
        console.print(f"Executable 2: {app.exe2_path or '[dim]not set[/dim]'}")
        console.print(f"Auto-configure LaunchOptions: {'on' if app.auto_configure else 'off'}")
        if app.launch_options_status:
            console.print(f"[yellow]{app.launch_options_status}[/yellow]")

        console.print("\n[cyan]Options:[/cyan]")
        console.print("[bold]L[/bold] - Launch")
        console.print("[bold]1[/bold]/[bold]2[/bold] - Browse executable 1/2")
        console.print("[bold]X[/bold]/[bold]Y[/bold] - Clear executable 1/2")
        console.print("[bold]A[/bold] - Toggle auto-configure")
        console.print("[bold]V[/bold] - View current LaunchOptions")
        console.print("[bold]R[/bold] - Remove protonhax from LaunchOptions")
        console.print("[bold]C[/bold] - Back to game list\n")

        choice = Prompt.ask(
            "[cyan]Choose option[/cyan]",
            choices=["l", "1", "2", "x", "y", "a", "v", "r", "c"],
            show_default=False,
        ).lower()

        if choice == "l":
            if app.launch():
                console.print(f"\n[green]Press {app.launcher.hotkey.upper()} once the game is running.[/green]")
            input("Press Enter to continue...")
        elif choice in ("1", "2"):
            app.browse_exe(int(choice), pick_executable)
        elif choice == "x":
            app.clear_exe(1)
        elif choice == "y":
            app.clear_exe(2)
        elif choice == "a":
            app.toggle_auto_configure(not app.auto_configure)
        elif choice == "v":
            launch_options = read_launch_options(app.app_id, steam_path=app.steam_path)
            if launch_options:
                console.print(f"\n[green]Current LaunchOptions:[/green]\n{launch_options}")
            else:
                console.print("\n[yellow]No LaunchOptions configured for this game[/yellow]")
            input("\nPress Enter to continue...")
        elif choice == "r":
            ok, message = remove_launch_options(app.app_id, steam_path=app.steam_path)
            console.print(f"\n[{'green' if ok else 'red'}]{message}[/]")
            app.refresh_status()
            input("Press Enter to continue...")
        elif choice == "c":
            break


def cmd_list(config: dict) -> None:
    steam_path = steam_path_setting(config)
    games = get_installed_games(steam_path, config["steam"].get("lookup_enabled", False))
    if not games:
        print("No installed games found", file=sys.stderr)
        return

    states = wrapper_states([app_id for _, app_id in games], steam_path)

    table = Table(title="Steam Games", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", width=10)
    table.add_column("Game Name", style="green")
    table.add_column("LaunchOption Status", style="yellow")
    for name, app_id in games:
        table.add_row(app_id, name, states[app_id])

    Console().print(table)


def cmd_launch(app_id: str | None, exe_args: list[str], config: dict) -> None:
    """Launch a game and block until the executables have been started."""
    if not app_id:
        print("Error: Game ID required for launch command", file=sys.stderr)
        sys.exit(1)

    store = PreferenceStore()
    store.load()
    exe1, exe2, auto_configure = store.launch_settings(app_id)
    if exe_args:
        exe1 = str(Path(exe_args[0]).expanduser().absolute())
        exe2 = str(Path(exe_args[1]).expanduser().absolute()) if len(exe_args) > 1 else ""

    launcher = Launcher(config)
    worker = launcher.run_launch(app_id, exe1, exe2, auto_configure)
    if worker is None:
        sys.exit(1)

    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        print("\nCancelled")
        launcher.shutdown()


def cmd_configure(app_id: str | None, config: dict) -> None:
    if not app_id:
        print("Error: Game ID required for configure command", file=sys.stderr)
        sys.exit(1)

    ok, message = configure_launch_options(app_id, steam_path=steam_path_setting(config))
    if ok:
        print(f"✓ {message}")
    else:
        print(f"Error: {message}", file=sys.stderr)
        sys.exit(1)


def cmd_remove(app_id: str | None, config: dict) -> None:
    if not app_id:
        print("Error: Game ID required for remove command", file=sys.stderr)
        sys.exit(1)

    ok, message = remove_launch_options(app_id, steam_path=steam_path_setting(config))
    if ok:
        print(f"✓ {message}")
    else:
        print(f"Error: {message}", file=sys.stderr)
        sys.exit(1)


def cmd_status(app_id: str | None, config: dict) -> None:
    if not app_id:
        print("Error: Game ID required for status command", file=sys.stderr)
        sys.exit(1)

    steam_path = steam_path_setting(config)
    localconfig_path = find_localconfig_vdf(steam_path)
    if localconfig_path is None:
        print("Error: Could not find Steam localconfig.vdf", file=sys.stderr)
        sys.exit(1)

    print(f"Found localconfig.vdf at: {localconfig_path}")
    launch_options = read_launch_options(app_id, localconfig_path)
    if launch_options is None:
        print(f"Game {app_id}: No LaunchOptions set")
    else:
        print(f"Game {app_id}: LaunchOptions = {launch_options!r}")


def ask_yes_no(question: str, default: bool) -> bool:
    while True:
        response = input(f"{question} (y/n) [default: {'y' if default else 'n'}]: ").strip().lower()
        if not response:
            return default
        if response in ["y", "yes"]:
            return True
        if response in ["n", "no"]:
            return False
        print("Please answer 'y' or 'n'")


def cmd_init() -> None:
    """Handle init command for guided configuration setup."""
    print("=" * 60)
    print("protonic Configuration Setup")
    print("=" * 60)

    config_path = get_config_path()
    print(f"\nConfig file will be saved to: {config_path}")
    config = load_config([config_path])

    print("\n" + "-" * 60)
    print("Steam Configuration")
    print("-" * 60)

    detected = find_steam_root()
    default_steam_path = config["steam"].get("steam_path") or (str(detected) if detected else "")
    print("\nEnter the path to your Steam installation directory.")
    print("Leave empty to detect it automatically on every start.")
    while True:
        steam_path = input(f"Steam path [{default_steam_path}]: ").strip() or default_steam_path
        if not steam_path or Path(steam_path).expanduser().is_dir():
            config["steam"]["steam_path"] = steam_path
            break
        print(f"✗ Error: Could not find directory at {steam_path}")

    config["steam"]["lookup_enabled"] = ask_yes_no(
        "Look up missing game titles through the Steam API?",
        config["steam"].get("lookup_enabled", False),
    )

    print("\n" + "-" * 60)
    print("Launcher")
    print("-" * 60)

    hotkey = input(f"Hotkey that starts the executables [{config['launcher']['hotkey']}]: ").strip()
    if hotkey:
        config["launcher"]["hotkey"] = hotkey.lower()

    config["audio"]["enabled"] = ask_yes_no("Play a sound on launch?", config["audio"].get("enabled", True))

    try:
        save_config(config, config_path)
    except OSError as e:
        print(f"\n✗ Error saving config file: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"\n✓ Configuration saved to: {config_path}")
    print("\nSetup complete! You can now run:")
    print("  protonic")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else "menu"
    arg = args[1] if len(args) > 1 else None

    if cmd == "init":
        cmd_init()
        return

    config = load_config()

    if cmd == "menu":
        display_interactive_menu(build_app(config))
    elif cmd == "list":
        cmd_list(config)
    elif cmd == "launch":
        cmd_launch(arg, args[2:4], config)
    elif cmd == "configure":
        cmd_configure(arg, config)
    elif cmd == "remove":
        cmd_remove(arg, config)
    elif cmd == "status":
        cmd_status(arg, config)
    else:
        print(f"Error: Unknown command '{cmd}'", file=sys.stderr)
        print(f"\n{USAGE}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
