"""
GameService: runs every scanner, publishes the merged game list and feeds the detector.

Usage::

    service = GameService([SteamScanner(), RemoteMappingsScanner()], GameDetector())
    service.on_games_detected(lambda games: print(len(games)))
    service.on_game_started(lambda payload: print(payload.model_dump()))
    service.scan_all_games()
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

from gamescout.core.errors import ScanCancelledError
from gamescout.core.monitor.game_detector import GameDetector
from .scanner import GameScanner
from .types import DetectedGame, GameStatePayload

__all__ = ["GameService"]

log = logging.getLogger(__name__)

GamesCallback = Callable[[Tuple[DetectedGame, ...]], None]
PayloadCallback = Callable[[GameStatePayload], None]


class GameService:
    """
    Aggregates installed games across all registered scanners.

    The published snapshot is replaced wholesale per scan, so readers of
    ``cached_games`` see either the previous complete list or the next one.
    """

    def __init__(
        self,
        scanners: Sequence[GameScanner],
        detector: GameDetector,
        max_workers: Optional[int] = None,
    ) -> None:
        self._scanners = tuple(scanners)
        self._detector = detector
        self._max_workers = max_workers
        self._cached: Tuple[DetectedGame, ...] = ()
        self._scan_lock = threading.Lock()

        self._detected_cb: Optional[GamesCallback] = None
        self._started_cb: Optional[PayloadCallback] = None
        self._stopped_cb: Optional[PayloadCallback] = None

        detector.on_game_started(lambda game: self._emit_state(self._started_cb, game, "started"))
        detector.on_game_stopped(lambda game: self._emit_state(self._stopped_cb, game, "stopped"))

    def on_games_detected(self, cb: GamesCallback) -> None:
        self._detected_cb = cb

    def on_game_started(self, cb: PayloadCallback) -> None:
        self._started_cb = cb

    def on_game_stopped(self, cb: PayloadCallback) -> None:
        self._stopped_cb = cb

    def _emit_state(self, cb: Optional[PayloadCallback], game: DetectedGame, state: str) -> None:
        if cb is not None:
            cb(GameStatePayload.for_game(game, state))

    @property
    def cached_games(self) -> Tuple[DetectedGame, ...]:
        return self._cached

    def is_running(self, game: DetectedGame) -> bool:
        return self._detector.is_running(game)

    def scan_all_games(self, cancel: Optional[threading.Event] = None) -> Tuple[DetectedGame, ...]:
        """
        Scan every available platform and publish the result.

        Raises:
            ScanCancelledError: ``cancel`` was set; nothing is published.
        """
        with self._scan_lock:
            scanners = [s for s in self._scanners if self._probe(s)]
            results = self._run_scanners(scanners, cancel)

            games: List[DetectedGame] = []
            for found in results:
                games.extend(found)
            snapshot = tuple(games)

            flags = self._detector.refresh_running_flags(snapshot)
            log.info(
                "Scan complete: %d games from %d scanners (%d running)",
                len(snapshot), len(scanners), sum(flags.values()),
            )

            self._cached = snapshot
            self._detector.start_monitoring(snapshot)

            if self._detected_cb is not None:
                self._detected_cb(snapshot)
            return snapshot

    def rescan_games(self, cancel: Optional[threading.Event] = None) -> Tuple[DetectedGame, ...]:
        """Full rebuild: nothing from the previous snapshot is carried over."""
        self._detector.stop_monitoring()
        self._cached = ()
        return self.scan_all_games(cancel)

    def shutdown(self) -> None:
        self._detector.stop_monitoring()

    @staticmethod
    def _probe(scanner: GameScanner) -> bool:
        try:
            return bool(scanner.is_available)
        except Exception:
            log.exception("Availability probe failed for %s", type(scanner).__name__)
            return False

    def _run_scanners(
        self, scanners: Sequence[GameScanner], cancel: Optional[threading.Event]
    ) -> List[List[DetectedGame]]:
        """Fan out detect_games() and wait for all of them, in registration order."""
        if not scanners:
            return []

        results: List[List[DetectedGame]] = []
        cancelled = False
        workers = self._max_workers or len(scanners)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="GameScan") as pool:
            futures = [pool.submit(s.detect_games, cancel) for s in scanners]
            for scanner, future in zip(scanners, futures):
                try:
                    results.append(list(future.result()))
                except ScanCancelledError:
                    cancelled = True
                    results.append([])
                except Exception:
                    log.exception("Scanner %s failed", type(scanner).__name__)
                    results.append([])

        if cancelled or (cancel is not None and cancel.is_set()):
            log.info("Game scan cancelled")
            raise ScanCancelledError("Game scan cancelled")
        return results
