from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Literal, Tuple

from gamescout.core.games.pathutil import DEFAULT_IGNORED_PATH_FRAGMENTS
from gamescout.core.games.types import GameKey

MonitorStatus = Literal["STOPPED", "RUNNING"]


@dataclass(frozen=True)
class MonitorConfig:
    poll_interval_seconds: float = 15.0
    ignored_path_fragments: Tuple[str, ...] = DEFAULT_IGNORED_PATH_FRAGMENTS

    @classmethod
    def from_dict(cls, config: dict) -> "MonitorConfig":
        return cls(
            poll_interval_seconds=float(config.get("poll_interval_seconds", 15.0)),
            ignored_path_fragments=tuple(
                config.get("ignored_path_fragments", DEFAULT_IGNORED_PATH_FRAGMENTS)
            ),
        )


@dataclass
class MonitorState:
    status: MonitorStatus = "STOPPED"
    monitored_count: int = 0
    running: FrozenSet[GameKey] = field(default_factory=frozenset)
