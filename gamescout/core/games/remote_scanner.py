from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

import requests
from pydantic import ValidationError

from gamescout.shared.config import DEFAULT_MAPPINGS_URL
from .mappings import GameMapping
from .pathutil import OsName
from .scanner import GameScanner, check_cancelled
from .types import DetectedGame, GamePlatform

__all__ = ["RemoteMappingsScanner"]

log = logging.getLogger(__name__)

USER_AGENT = "GameScout/1.0"


class RemoteMappingsScanner(GameScanner):
    """
    Games described by a remote JSON mappings document.

    Lets new titles become detectable without shipping an update. Every
    network or document problem degrades to zero games.
    """

    def __init__(
        self,
        url: str = DEFAULT_MAPPINGS_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        os_name: Optional[OsName] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._os_name = os_name
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    @property
    def platform(self) -> GamePlatform:
        return GamePlatform.CUSTOM

    @property
    def is_available(self) -> bool:
        return True

    def get_install_path(self) -> Optional[str]:
        return None

    def detect_games(self, cancel: Optional[threading.Event] = None) -> List[DetectedGame]:
        records = self._fetch_records()
        if not records:
            return []

        log.info("Loaded %d game mappings from remote", len(records))
        games: List[DetectedGame] = []
        seen: set[str] = set()
        for record in records:
            check_cancelled(cancel)

            try:
                mapping = GameMapping.model_validate(record)
            except ValidationError as exc:
                log.warning("Skipping invalid mapping record: %s", exc.errors()[:1])
                continue

            if not mapping.is_valid_for_platform(self._os_name):
                log.debug("Skipping %s: not valid for current platform", mapping.name)
                continue

            game = mapping.to_detected_game(self._os_name)
            if game is None:
                continue
            if game.id in seen:
                log.debug("Duplicate mapping id %s ignored", game.id)
                continue
            seen.add(game.id)
            games.append(game)
            log.debug("Added game from mapping: %s", game.name)

        log.info("Remote mappings: %d games applicable to current platform", len(games))
        return games

    def _fetch_records(self) -> List[Any]:
        log.debug("Fetching remote mappings from %s", self._url)
        try:
            resp = self._session.get(self._url, timeout=self._timeout)
        except requests.exceptions.Timeout:
            log.warning("Timed out fetching remote mappings after %.0fs", self._timeout)
            return []
        except requests.exceptions.RequestException as exc:
            log.warning("Network error fetching remote mappings: %s", exc)
            return []

        if not resp.ok:
            log.warning("Failed to fetch remote mappings: HTTP %s", resp.status_code)
            return []

        body = (resp.text or "").strip()
        if not body or body == "[]":
            log.debug("Remote mappings file is empty")
            return []

        try:
            data = resp.json()
        except ValueError as exc:
            log.warning("Failed to parse remote mappings JSON: %s", exc)
            return []

        if not isinstance(data, list):
            log.warning("Remote mappings document is not a JSON array")
            return []
        return data
