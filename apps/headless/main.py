"""
Headless runner: scan installed games, then print started/stopped events as JSON.

    python -m apps.headless.main            # scan, then monitor until Ctrl+C
    python -m apps.headless.main --once     # scan, print, exit
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from gamescout.core.errors import ScanCancelledError
from gamescout.core.games.remote_scanner import RemoteMappingsScanner
from gamescout.core.games.scanner import GameScanner
from gamescout.core.games.service import GameService
from gamescout.core.games.steam_scanner import SteamScanner
from gamescout.core.logging_ import setup_logging
from gamescout.core.monitor.game_detector import GameDetector
from gamescout.shared.config import AppConfig
from gamescout.shared.store import ConfigStore

log = logging.getLogger(__name__)


def build_scanners(cfg: AppConfig) -> List[GameScanner]:
    scanners: List[GameScanner] = []
    if cfg.steam_enabled:
        scanners.append(SteamScanner(steam_root=cfg.steam_root))
    if cfg.remote_mappings_enabled:
        scanners.append(RemoteMappingsScanner(cfg.mappings_url, timeout=cfg.http_timeout_seconds))
    return scanners


def build_service(cfg: AppConfig) -> GameService:
    return GameService(build_scanners(cfg), GameDetector(cfg.to_monitor_config()))


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="gamescout", description="Detect installed and running games")
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--once", action="store_true", help="scan, print the games and exit")
    parser.add_argument("--log-level", default=None, help="override the configured log level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    cfg = ConfigStore(args.config).load()
    setup_logging((args.log_level or cfg.log_level).upper())

    service = build_service(cfg)
    stop = threading.Event()

    def print_payload(payload) -> None:
        print(json.dumps(payload.model_dump()), flush=True)

    service.on_game_started(print_payload)
    service.on_game_stopped(print_payload)

    # Ctrl+C cancels an in-flight scan and ends monitoring
    def signal_handler(sig, frame):
        print("\nReceived interrupt signal (Ctrl+C), shutting down...")
        stop.set()

    if hasattr(signal, "SIGINT"):
        signal.signal(signal.SIGINT, signal_handler)

    try:
        games = service.scan_all_games(cancel=stop)
    except ScanCancelledError:
        return 130

    for game in games:
        state = "running" if service.is_running(game) else "installed"
        print(f"[{game.platform.value}] {game.id}  {game.name}  ({state})")

    if args.once:
        service.shutdown()
        return 0

    while not stop.wait(0.5):
        pass
    service.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
