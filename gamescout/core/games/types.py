from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import BaseModel


class GamePlatform(str, Enum):
    STEAM     = "steam"
    EPIC      = "epic"
    GOG       = "gog"
    XBOX      = "xbox"
    ORIGIN    = "origin"
    UBISOFT   = "ubisoft"
    BATTLENET = "battlenet"
    CUSTOM    = "custom"


GameKey = Tuple[GamePlatform, str]


@dataclass(frozen=True)
class DetectedGame:
    """
    An installed game found by a scanner.

    Instances are rebuilt on every scan. Whether the game is running is
    tracked by the detector, keyed by ``key``.
    """
    id: str
    name: str
    platform: GamePlatform
    install_path: str
    executable_path: Optional[str] = None
    icon: Optional[str] = None
    last_played: Optional[datetime] = None
    playtime_minutes: Optional[int] = None
    process_names: Tuple[str, ...] = ()  # without extension, for games with no known install dir
    deep_search_patterns: Tuple[str, ...] = ()

    @property
    def key(self) -> GameKey:
        return (self.platform, self.id)


@dataclass
class RunningProcess:
    pid: int
    name: str
    executable_path: Optional[str] = None
    command_line: Optional[str] = None  # only filled for extended snapshots
    start_time: Optional[datetime] = None

    def matches_deep_search(self, pattern: str) -> bool:
        needle = pattern.strip().lower()
        if not needle:
            return False
        for value in (self.name, self.command_line, self.executable_path):
            if value and needle in value.lower():
                return True
        return False


GameState = Literal["started", "stopped"]


class GameStatePayload(BaseModel):
    """Normalized started/stopped notification handed to consumers."""
    state: GameState
    platform: str
    id: str
    name: str
    icon: Optional[str] = None

    @classmethod
    def for_game(cls, game: DetectedGame, state: GameState) -> "GameStatePayload":
        return cls(
            state=state,
            platform=game.platform.value,
            id=game.id,
            name=game.name,
            icon=game.icon,
        )
