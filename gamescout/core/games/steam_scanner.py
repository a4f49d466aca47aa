"""
Installed Steam games from libraryfolders.vdf and appmanifest_*.acf files.

Steps:
  1. Resolve the Steam root from OS-specific candidates (first existing wins)
  2. Collect library folders (default library first, then libraryfolders.vdf)
  3. Parse every appmanifest in every library, skipping tools and
     titles whose install dir is missing
  4. Pick a main executable from the top level of the install dir
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import vdf

from gamescout.core.errors import ManifestError, ScanCancelledError
from .pathutil import current_os, normalize_path
from .scanner import GameScanner, check_cancelled
from .types import DetectedGame, GamePlatform

__all__ = ["SteamScanner", "pick_main_executable", "find_main_executable", "steam_icon_url"]

log = logging.getLogger(__name__)

# Runtime redistributables and compatibility layers that Steam installs as apps
NON_GAME_NAME_FRAGMENTS = ("steamworks common", "proton", "steam linux runtime")

IGNORED_EXE_FRAGMENTS = ("unins", "crash", "redist", "setup")

NON_BINARY_SUFFIXES = (".so", ".sh", ".dll", ".py")

ICON_URL_TEMPLATE = "https://steamcdn-a.akamaihd.net/steam/apps/{app_id}/header.jpg"


def steam_icon_url(app_id: str) -> str:
    return ICON_URL_TEMPLATE.format(app_id=app_id)


def _is_excluded_executable(file_name: str) -> bool:
    stem = Path(file_name).stem.lower()
    if any(fragment in stem for fragment in IGNORED_EXE_FRAGMENTS):
        return True
    # "GameLauncherHelper" is a helper; "Launcher" / "GameLauncher" may be the game
    return "launcher" in stem and not stem.endswith("launcher")


def pick_main_executable(candidates: Sequence[str]) -> Optional[str]:
    """First candidate that is not an installer/crash handler/helper, else the first one."""
    for name in candidates:
        if not _is_excluded_executable(os.path.basename(name)):
            return name
    return candidates[0] if candidates else None


def _is_executable_candidate(entry: os.DirEntry, os_name: str) -> bool:
    if not entry.is_file():
        return False
    lowered = entry.name.lower()
    if lowered.endswith(".exe"):
        return True
    if os_name == "windows":
        return False
    # Shared libraries and scripts often carry the exec bit too
    if lowered.endswith(NON_BINARY_SUFFIXES) or ".so." in lowered:
        return False
    return os.access(entry.path, os.X_OK)


def find_main_executable(install_path: str, os_name: Optional[str] = None) -> Optional[str]:
    os_name = os_name or current_os()
    try:
        with os.scandir(install_path) as it:
            candidates = sorted(
                (e.path for e in it if _is_executable_candidate(e, os_name)),
                key=lambda p: os.path.basename(p).lower(),
            )
    except OSError as exc:
        log.debug("Cannot list %s: %s", install_path, exc)
        return None
    return pick_main_executable(candidates)


def _get_ci(node: Mapping[str, Any], key: str) -> Any:
    """Case-insensitive lookup; VDF key casing varies between Steam versions."""
    if key in node:
        return node[key]
    lowered = key.lower()
    for k, v in node.items():
        if k.lower() == lowered:
            return v
    return None


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _epoch_to_datetime(epoch: Optional[int]) -> Optional[datetime]:
    if not epoch or epoch <= 0:
        return None
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        log.debug("Ignoring out-of-range LastPlayed %r", epoch)
        return None


class SteamScanner(GameScanner):
    """
    Scan installed Steam games by parsing Steam's own config files.

    Usage::

        scanner = SteamScanner()
        if scanner.is_available:
            games = scanner.detect_games()
    """

    def __init__(
        self,
        steam_root: Optional[str] = None,
        candidate_roots: Optional[Iterable[str]] = None,
    ) -> None:
        if steam_root:
            self._candidates: Optional[List[str]] = [steam_root]
        elif candidate_roots is not None:
            self._candidates = list(candidate_roots)
        else:
            self._candidates = None

    @property
    def platform(self) -> GamePlatform:
        return GamePlatform.STEAM

    @property
    def is_available(self) -> bool:
        return self.get_install_path() is not None

    def get_install_path(self) -> Optional[str]:
        candidates = self._candidates if self._candidates is not None else self._default_candidates()
        for candidate in candidates:
            if candidate and os.path.isdir(candidate):
                return candidate
        return None

    def _default_candidates(self) -> List[str]:
        os_name = current_os()
        home = Path.home()
        if os_name == "windows":
            return self._windows_candidates()
        if os_name == "macos":
            return [str(home / "Library" / "Application Support" / "Steam")]
        return [
            str(home / ".steam" / "steam"),
            str(home / ".local" / "share" / "Steam"),
            str(home / ".var" / "app" / "com.valvesoftware.Steam" / ".steam" / "steam"),  # Flatpak
        ]

    @staticmethod
    def _windows_candidates() -> List[str]:
        candidates: List[str] = []
        program_files = os.environ.get("ProgramFiles(x86)") or os.environ.get("ProgramFiles")
        if program_files:
            candidates.append(os.path.join(program_files, "Steam"))

        try:
            import winreg
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, r"Software\Valve\Steam") as key:
                value, _ = winreg.QueryValueEx(key, "SteamPath")
                if value:
                    candidates.append(str(value))
        except (ImportError, OSError) as exc:
            log.debug("Steam registry lookup failed: %s", exc)

        for drive in ("C:", "D:", "E:", "F:"):
            candidates.append(os.path.join(drive + os.sep, "Program Files (x86)", "Steam"))
            candidates.append(os.path.join(drive + os.sep, "Steam"))
        return candidates

    def detect_games(self, cancel: Optional[threading.Event] = None) -> List[DetectedGame]:
        steam_path = self.get_install_path()
        if steam_path is None:
            log.debug("Steam not found")
            return []

        log.debug("Steam path: %s", steam_path)
        libraries = self.get_library_folders(steam_path)
        log.debug("Found %d Steam library folders", len(libraries))

        games: List[DetectedGame] = []
        seen: set[str] = set()
        for library in libraries:
            check_cancelled(cancel)
            for game in self.scan_library_folder(library, cancel):
                # The same library can be reachable through two spellings of its path
                if game.id in seen:
                    continue
                seen.add(game.id)
                games.append(game)

        log.info("Steam: found %d games", len(games))
        return games

    def get_library_folders(self, steam_path: str) -> List[str]:
        """Return every ``steamapps`` directory, default library first."""
        default = os.path.join(steam_path, "steamapps")
        folders: List[str] = [default] if os.path.isdir(default) else []
        config = os.path.join(default, "libraryfolders.vdf")

        if not os.path.isfile(config):
            return folders

        try:
            extra = self._parse_library_folders(config)
        except (OSError, SyntaxError, UnicodeDecodeError, ManifestError) as exc:
            log.warning("Failed to parse libraryfolders.vdf: %s", exc)
            return folders

        known = {normalize_path(f) for f in folders}
        for library_root in extra:
            steamapps = os.path.join(library_root, "steamapps")
            if not os.path.isdir(steamapps):
                log.debug("Library folder missing on disk: %s", steamapps)
                continue
            key = normalize_path(steamapps)
            if key in known:
                continue
            known.add(key)
            folders.append(steamapps)
        return folders

    @staticmethod
    def _parse_library_folders(config_path: str) -> List[str]:
        with open(config_path, encoding="utf-8") as f:
            data = vdf.loads(f.read())

        root = _get_ci(data, "libraryfolders")
        if not isinstance(root, Mapping):
            raise ManifestError(f"No libraryfolders section in {config_path}")

        paths: List[str] = []
        for key, value in root.items():
            if not key.isdigit():
                continue
            if isinstance(value, Mapping):
                path = _get_ci(value, "path")
            else:
                # Pre-2021 format: "1" "D:\\SteamLibrary"
                path = value
            if isinstance(path, str) and path:
                paths.append(path)
        return paths

    def scan_library_folder(
        self, steamapps_path: str, cancel: Optional[threading.Event] = None
    ) -> List[DetectedGame]:
        games: List[DetectedGame] = []
        try:
            manifests = sorted(Path(steamapps_path).glob("appmanifest_*.acf"))
        except OSError as exc:
            log.warning("Cannot list %s: %s", steamapps_path, exc)
            return games

        for manifest in manifests:
            check_cancelled(cancel)
            try:
                game = self.parse_app_manifest(str(manifest), steamapps_path)
            except ScanCancelledError:
                raise
            except (OSError, SyntaxError, UnicodeDecodeError, ValueError, OverflowError, ManifestError) as exc:
                log.debug("Failed to parse %s: %s", manifest, exc)
                continue
            if game is not None:
                games.append(game)
        return games

    def parse_app_manifest(self, manifest_path: str, steamapps_path: str) -> Optional[DetectedGame]:
        """
        Parse one appmanifest_*.acf.

        Returns None for tools and titles not present on disk.

        Raises:
            ManifestError: the file has no usable AppState section.
            SyntaxError: the VDF text is malformed.
        """
        with open(manifest_path, encoding="utf-8") as f:
            data = vdf.loads(f.read())

        app_state = _get_ci(data, "AppState")
        if not isinstance(app_state, Mapping):
            raise ManifestError(f"No AppState section in {manifest_path}")

        app_id = _get_ci(app_state, "appid")
        name = _get_ci(app_state, "name")
        install_dir = _get_ci(app_state, "installdir")
        if not app_id or not name or not install_dir:
            raise ManifestError(f"Incomplete manifest {manifest_path}")

        lowered = str(name).lower()
        if any(fragment in lowered for fragment in NON_GAME_NAME_FRAGMENTS):
            log.debug("Skipping Steam tool: %s", name)
            return None

        install_path = os.path.join(steamapps_path, "common", str(install_dir))
        if not os.path.isdir(install_path):
            log.debug("Skipping %s: install dir missing (%s)", name, install_path)
            return None

        return DetectedGame(
            id=str(app_id),
            name=str(name),
            platform=GamePlatform.STEAM,
            install_path=install_path,
            executable_path=find_main_executable(install_path),
            icon=steam_icon_url(str(app_id)),
            last_played=_epoch_to_datetime(_to_int(_get_ci(app_state, "LastPlayed"))),
            playtime_minutes=_to_int(_get_ci(app_state, "playtime_forever")),
        )
