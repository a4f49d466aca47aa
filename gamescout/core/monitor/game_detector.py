from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from gamescout.core.games.pathutil import (
    command_line_references,
    is_ignored,
    is_path_within_directory,
    paths_equal,
)
from gamescout.core.games.types import DetectedGame, GameKey, RunningProcess
from .process_enumerator import ProcessEnumerator
from .types import MonitorConfig, MonitorState

log = logging.getLogger(__name__)

GameCallback = Callable[[DetectedGame], None]


def _strip_exe(name: str) -> str:
    lowered = name.strip().lower()
    return lowered[:-4] if lowered.endswith(".exe") else lowered


class GameDetector:
    """
    Background monitor that emits game started/stopped events based on process polling.

    Each tick takes one process snapshot and evaluates every monitored game
    against it. Events are edge-triggered: a game that stays running fires
    nothing after its "started" event.
    """

    def __init__(self, config: Optional[dict] = None, enumerator: Optional[ProcessEnumerator] = None) -> None:
        self._cfg = MonitorConfig.from_dict(config or {})
        self._enumerator = enumerator or ProcessEnumerator()
        self._lock = threading.Lock()
        self._tick_lock = threading.Lock()

        self._games: Tuple[DetectedGame, ...] = ()
        self._running_keys: Set[GameKey] = set()
        self._running_flags: Dict[GameKey, bool] = {}
        self._needs_command_lines = False
        self._status = "STOPPED"

        self._started_cb: Optional[GameCallback] = None
        self._stopped_cb: Optional[GameCallback] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

    def on_game_started(self, cb: GameCallback) -> None:
        self._started_cb = cb

    def on_game_stopped(self, cb: GameCallback) -> None:
        self._stopped_cb = cb

    def update_config(self, config: dict) -> None:
        with self._lock:
            self._cfg = MonitorConfig.from_dict(config)

    def get_state(self) -> MonitorState:
        with self._lock:
            return MonitorState(
                status=self._status,
                monitored_count=len(self._games),
                running=frozenset(self._running_keys),
            )

    def get_running_processes(self) -> List[RunningProcess]:
        try:
            return self._enumerator.snapshot(extended=True)
        except Exception:
            log.exception("Failed to enumerate processes")
            return []

    def get_running_game_process(
        self, game: DetectedGame, processes: Optional[Sequence[RunningProcess]] = None
    ) -> Optional[RunningProcess]:
        """
        First process that belongs to ``game``.

        Priority: exe under the install dir or a command line naming a path
        inside it (ignored fragments excluded), exact exe path, process name,
        deep-search pattern.
        """
        if processes is None:
            processes = self.get_running_processes()
        with self._lock:
            ignored = self._cfg.ignored_path_fragments

        if game.install_path:
            for proc in processes:
                exe = proc.executable_path
                if exe and is_path_within_directory(exe, game.install_path) and not is_ignored(exe, ignored):
                    return proc
                # Wine/Proton: the exe is the loader, the game path is an argument
                cmd = proc.command_line
                if cmd and command_line_references(cmd, game.install_path) and not is_ignored(cmd, ignored):
                    return proc

        if game.executable_path:
            for proc in processes:
                if proc.executable_path and paths_equal(proc.executable_path, game.executable_path):
                    return proc

        if game.process_names:
            wanted = {_strip_exe(n) for n in game.process_names if n.strip()}
            for proc in processes:
                if _strip_exe(proc.name) in wanted:
                    return proc
                if proc.executable_path and _strip_exe(os.path.basename(proc.executable_path)) in wanted:
                    return proc

        if game.deep_search_patterns:
            for proc in processes:
                for pattern in game.deep_search_patterns:
                    if proc.matches_deep_search(pattern):
                        log.debug("Deep search matched: pattern=%r on process=%s", pattern, proc.name)
                        return proc

        return None

    def is_game_running(
        self, game: DetectedGame, processes: Optional[Sequence[RunningProcess]] = None
    ) -> bool:
        return self.get_running_game_process(game, processes) is not None

    def is_running(self, game: DetectedGame) -> bool:
        """Last known running flag; set by refresh_running_flags() and poll ticks."""
        with self._lock:
            return self._running_flags.get(game.key, False)

    def _membership(
        self, games: Sequence[DetectedGame], processes: Sequence[RunningProcess]
    ) -> Dict[GameKey, bool]:
        # Scanners may report the same key twice; the key runs if any of them does
        running: Dict[GameKey, bool] = {}
        for game in games:
            if not running.get(game.key):
                running[game.key] = self.is_game_running(game, processes)
        return running

    def refresh_running_flags(self, games: Iterable[DetectedGame]) -> Dict[GameKey, bool]:
        games = list(games)
        processes = self.get_running_processes()
        flags = self._membership(games, processes)
        with self._lock:
            self._running_flags.update(flags)
        return flags

    def start_monitoring(self, games: Iterable[DetectedGame]) -> None:
        self.stop_monitoring()

        snapshot = tuple(games)
        with self._lock:
            self._games = snapshot
            self._running_keys.clear()
            keys = {g.key for g in snapshot}
            self._running_flags = {k: v for k, v in self._running_flags.items() if k in keys}
            self._needs_command_lines = any(g.deep_search_patterns or g.install_path for g in snapshot)
            self._status = "RUNNING"
            interval = self._cfg.poll_interval_seconds

        if self._needs_command_lines:
            log.debug("Command lines will be collected for deep search and Wine/Proton matching")
        log.info("Starting game monitoring for %d games (every %.0fs)", len(snapshot), interval)

        self._stop_evt = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_evt,), name="GameDetector", daemon=True
        )
        self._thread.start()

    def stop_monitoring(self) -> None:
        """Halt polling. Running state is kept until the next start_monitoring()."""
        self._stop_evt.set()
        thread, self._thread = self._thread, None
        with self._lock:
            was_running = self._status == "RUNNING"
            self._status = "STOPPED"
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        if was_running:
            log.info("Stopped game monitoring")

    def _emit(self, cb: Optional[GameCallback], game: DetectedGame) -> None:
        if cb is None:
            return
        try:
            cb(game)
        except Exception:
            log.exception("Game event callback failed for %s", game.name)

    def _run(self, stop_evt: threading.Event) -> None:
        while True:
            with self._lock:
                interval = self._cfg.poll_interval_seconds
            if stop_evt.wait(interval):
                break
            self.poll(stop_evt)

    def poll(self, stop_evt: Optional[threading.Event] = None) -> None:
        """Run one tick. Ticks are serialised and never raise."""
        with self._tick_lock:
            if stop_evt is not None and stop_evt.is_set():
                return
            try:
                self._tick()
            except Exception:
                log.exception("Error polling running games")

    def _tick(self) -> None:
        with self._lock:
            games = self._games
            extended = self._needs_command_lines

        if not games:
            return

        processes = self._enumerator.snapshot(extended=extended)
        running = self._membership(games, processes)

        seen: Set[GameKey] = set()
        for game in games:
            key = game.key
            if key in seen:
                continue
            seen.add(key)

            is_running = running[key]
            with self._lock:
                was_running = key in self._running_keys
                self._running_flags[key] = is_running
                if is_running and not was_running:
                    self._running_keys.add(key)
                elif not is_running and was_running:
                    self._running_keys.discard(key)

            if is_running and not was_running:
                log.info("Game started: %s", game.name)
                self._emit(self._started_cb, game)
            elif not is_running and was_running:
                log.info("Game stopped: %s", game.name)
                self._emit(self._stopped_cb, game)
