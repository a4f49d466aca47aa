"""
Unit tests for SteamScanner.

Every test builds a fake Steam root under tmp_path with
libraryfolders.vdf and appmanifest_*.acf files.
"""

import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from gamescout.core.errors import ScanCancelledError
from gamescout.core.games.steam_scanner import (
    SteamScanner,
    find_main_executable,
    pick_main_executable,
    steam_icon_url,
)
from gamescout.core.games.types import GamePlatform


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _write_manifest(
    steamapps: Path,
    app_id: str,
    name: str,
    installdir: str,
    last_played: int = 0,
    create_dir: bool = True,
) -> None:
    steamapps.mkdir(parents=True, exist_ok=True)
    (steamapps / f"appmanifest_{app_id}.acf").write_text(
        '"AppState"\n'
        "{\n"
        f'\t"appid"\t\t"{app_id}"\n'
        f'\t"name"\t\t"{name}"\n'
        f'\t"installdir"\t\t"{installdir}"\n'
        f'\t"LastPlayed"\t\t"{last_played}"\n'
        "}\n",
        encoding="utf-8",
    )
    if create_dir:
        (steamapps / "common" / installdir).mkdir(parents=True, exist_ok=True)


def _write_library_folders(steamapps: Path, libraries: list) -> None:
    entries = "".join(
        f'\t"{i}"\n\t{{\n\t\t"path"\t\t"{lib}"\n\t\t"label"\t\t""\n\t}}\n'
        for i, lib in enumerate(libraries, start=1)
    )
    steamapps.mkdir(parents=True, exist_ok=True)
    (steamapps / "libraryfolders.vdf").write_text(
        f'"libraryfolders"\n{{\n{entries}}}\n', encoding="utf-8"
    )


@pytest.fixture
def steam_root(tmp_path) -> Path:
    root = tmp_path / "Steam"
    (root / "steamapps").mkdir(parents=True)
    return root


@pytest.fixture
def scanner(steam_root) -> SteamScanner:
    return SteamScanner(steam_root=str(steam_root))


# ─────────────────────────────────────────────────────────────────────────────
# 1. Executable picker
# ─────────────────────────────────────────────────────────────────────────────

class TestPickMainExecutable:
    def test_skips_setup_and_crash_handler(self):
        assert pick_main_executable(["setup.exe", "Crash Handler.exe", "Game.exe"]) == "Game.exe"

    def test_skips_launcher_helper(self):
        assert pick_main_executable(["GameLauncherHelper.exe", "Game.exe"]) == "Game.exe"

    def test_keeps_plain_launcher(self):
        assert pick_main_executable(["Launcher.exe"]) == "Launcher.exe"

    def test_keeps_stem_ending_with_launcher(self):
        assert pick_main_executable(["unins000.exe", "GameLauncher.exe"]) == "GameLauncher.exe"

    def test_falls_back_to_first_candidate(self):
        assert pick_main_executable(["unins000.exe", "vcredist_x64.exe"]) == "unins000.exe"

    def test_empty(self):
        assert pick_main_executable([]) is None

    def test_works_on_full_paths(self):
        picked = pick_main_executable(["/g/setup.exe", "/g/Game.exe"])
        assert picked == "/g/Game.exe"


class TestFindMainExecutable:
    def test_lists_top_level_exe_files(self, tmp_path):
        (tmp_path / "setup.exe").touch()
        (tmp_path / "Game.exe").touch()
        (tmp_path / "readme.txt").touch()
        sub = tmp_path / "bin"
        sub.mkdir()
        (sub / "Other.exe").touch()

        assert find_main_executable(str(tmp_path), os_name="windows") == str(tmp_path / "Game.exe")

    def test_skips_shared_libraries_and_scripts(self, tmp_path):
        for name in ("libsteam_api.so", "libGL.so.1", "run.sh", "Zeta"):
            path = tmp_path / name
            path.touch()
            path.chmod(0o755)

        assert find_main_executable(str(tmp_path), os_name="linux") == str(tmp_path / "Zeta")

    def test_no_candidates(self, tmp_path):
        (tmp_path / "data.pak").touch()
        assert find_main_executable(str(tmp_path), os_name="windows") is None

    def test_missing_directory(self, tmp_path):
        assert find_main_executable(str(tmp_path / "nope")) is None


# ─────────────────────────────────────────────────────────────────────────────
# 2. Root resolution
# ─────────────────────────────────────────────────────────────────────────────

class TestInstallPath:
    def test_first_existing_candidate_wins(self, tmp_path):
        first = tmp_path / "a"
        second = tmp_path / "b"
        second.mkdir()
        third = tmp_path / "c"
        third.mkdir()

        scanner = SteamScanner(candidate_roots=[str(first), str(second), str(third)])

        assert scanner.get_install_path() == str(second)
        assert scanner.is_available

    def test_unavailable_returns_no_games(self, tmp_path):
        scanner = SteamScanner(candidate_roots=[str(tmp_path / "missing")])

        assert not scanner.is_available
        assert scanner.detect_games() == []

    def test_platform(self, scanner):
        assert scanner.platform == GamePlatform.STEAM


# ─────────────────────────────────────────────────────────────────────────────
# 3. Library folders
# ─────────────────────────────────────────────────────────────────────────────

class TestLibraryFolders:
    def test_default_library_without_config(self, scanner, steam_root):
        assert scanner.get_library_folders(str(steam_root)) == [str(steam_root / "steamapps")]

    def test_corrupt_config_falls_back_to_default(self, scanner, steam_root):
        (steam_root / "steamapps" / "libraryfolders.vdf").write_text(
            '"libraryfolders"\n{\n\t"1"\n\t{\n', encoding="utf-8"
        )
        assert scanner.get_library_folders(str(steam_root)) == [str(steam_root / "steamapps")]

    def test_legacy_format(self, scanner, steam_root, tmp_path):
        extra = tmp_path / "Legacy"
        (extra / "steamapps").mkdir(parents=True)
        (steam_root / "steamapps" / "libraryfolders.vdf").write_text(
            f'"LibraryFolders"\n{{\n\t"TimeNextStatsReport"\t"0"\n\t"1"\t"{extra}"\n}}\n',
            encoding="utf-8",
        )

        folders = scanner.get_library_folders(str(steam_root))

        assert folders == [str(steam_root / "steamapps"), str(extra / "steamapps")]

    def test_root_listed_in_config_is_not_duplicated(self, scanner, steam_root):
        _write_library_folders(steam_root / "steamapps", [str(steam_root)])

        assert scanner.get_library_folders(str(steam_root)) == [str(steam_root / "steamapps")]

    def test_missing_library_is_skipped(self, scanner, steam_root, tmp_path):
        _write_library_folders(steam_root / "steamapps", [str(tmp_path / "gone")])

        assert scanner.get_library_folders(str(steam_root)) == [str(steam_root / "steamapps")]


# ─────────────────────────────────────────────────────────────────────────────
# 4. Manifests
# ─────────────────────────────────────────────────────────────────────────────

class TestManifests:
    def test_parses_fields(self, scanner, steam_root):
        steamapps = steam_root / "steamapps"
        _write_manifest(steamapps, "570", "Dota 2", "dota 2 beta", last_played=1700000000)
        (steamapps / "common" / "dota 2 beta" / "dota2.exe").touch()

        games = scanner.detect_games()

        assert len(games) == 1
        game = games[0]
        assert game.id == "570"
        assert game.name == "Dota 2"
        assert game.platform == GamePlatform.STEAM
        assert game.install_path == str(steamapps / "common" / "dota 2 beta")
        assert game.executable_path == str(steamapps / "common" / "dota 2 beta" / "dota2.exe")
        assert game.icon == steam_icon_url("570")
        assert game.last_played == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_zero_last_played_is_none(self, scanner, steam_root):
        _write_manifest(steam_root / "steamapps", "10", "Counter-Strike", "Half-Life")

        assert scanner.detect_games()[0].last_played is None

    def test_out_of_range_last_played_keeps_game(self, scanner, steam_root):
        _write_manifest(steam_root / "steamapps", "10", "Counter-Strike", "Half-Life", last_played=10**20)

        games = scanner.detect_games()

        assert [g.id for g in games] == ["10"]
        assert games[0].last_played is None

    def test_missing_install_dir_is_skipped(self, scanner, steam_root):
        _write_manifest(steam_root / "steamapps", "10", "Ghost", "ghost", create_dir=False)

        assert scanner.detect_games() == []

    @pytest.mark.parametrize("name", [
        "Steamworks Common Redistributables",
        "Proton Experimental",
        "Steam Linux Runtime 3.0 (sniper)",
        "proton 8.0",
    ])
    def test_tools_are_skipped(self, scanner, steam_root, name):
        _write_manifest(steam_root / "steamapps", "228980", name, "tool")

        assert scanner.detect_games() == []

    def test_one_corrupted_manifest_does_not_abort_library(self, scanner, steam_root):
        steamapps = steam_root / "steamapps"
        _write_manifest(steamapps, "1", "One", "one")
        _write_manifest(steamapps, "2", "Two", "two")
        _write_manifest(steamapps, "4", "Four", "four")
        (steamapps / "appmanifest_3.acf").write_text('"AppState"\n{\n\t"appid"\t"3"\n', encoding="utf-8")

        ids = [g.id for g in scanner.detect_games()]

        assert ids == ["1", "2", "4"]

    def test_manifest_without_app_state_is_skipped(self, scanner, steam_root):
        steamapps = steam_root / "steamapps"
        _write_manifest(steamapps, "1", "One", "one")
        (steamapps / "appmanifest_9.acf").write_text('"Other"\n{\n}\n', encoding="utf-8")

        assert [g.id for g in scanner.detect_games()] == ["1"]

    def test_ids_are_unique_within_a_pass(self, scanner, steam_root, tmp_path):
        other = tmp_path / "Other"
        _write_manifest(steam_root / "steamapps", "1", "One", "one")
        _write_manifest(other / "steamapps", "1", "One", "one")
        _write_library_folders(steam_root / "steamapps", [str(other)])

        keys = [g.key for g in scanner.detect_games()]

        assert keys == [(GamePlatform.STEAM, "1")]

    def test_cancellation_raises(self, scanner, steam_root):
        _write_manifest(steam_root / "steamapps", "1", "One", "one")
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ScanCancelledError):
            scanner.detect_games(cancel)


# ─────────────────────────────────────────────────────────────────────────────
# 5. End to end
# ─────────────────────────────────────────────────────────────────────────────

class TestEndToEnd:
    def test_scans_all_three_libraries(self, scanner, steam_root, tmp_path):
        lib1 = tmp_path / "LibraryOne"
        lib2 = tmp_path / "LibraryTwo"
        _write_library_folders(steam_root / "steamapps", [str(lib1), str(lib2)])

        _write_manifest(steam_root / "steamapps", "100", "Game A", "GameA")
        _write_manifest(steam_root / "steamapps", "228980", "Steamworks Common Redistributables", "Steamworks Shared")
        _write_manifest(lib1 / "steamapps", "200", "Game B", "GameB")
        _write_manifest(lib1 / "steamapps", "250", "Game B2", "GameB2")
        _write_manifest(lib2 / "steamapps", "300", "Game C", "GameC")
        _write_manifest(lib2 / "steamapps", "400", "Not Installed", "Missing", create_dir=False)

        games = scanner.detect_games()

        ids = [g.id for g in games]
        assert "228980" not in ids
        assert ids == ["100", "200", "250", "300"]
        assert games[2].install_path == str(lib1 / "steamapps" / "common" / "GameB2")
