from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from gamescout.core.errors import ScanCancelledError
from .types import DetectedGame, GamePlatform


def check_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise ScanCancelledError("Scan cancelled")


class GameScanner(ABC):
    """Interface for discovering installed games from one platform or source."""

    @property
    @abstractmethod
    def platform(self) -> GamePlatform:
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Cheap probe, e.g. whether the platform client is installed."""
        ...

    @abstractmethod
    def detect_games(self, cancel: Optional[threading.Event] = None) -> List[DetectedGame]:
        """
        Return installed games in a stable order.

        A missing platform yields an empty list. Raises ScanCancelledError
        when ``cancel`` is set at a checkpoint.
        """
        ...

    @abstractmethod
    def get_install_path(self) -> Optional[str]:
        """Root directory of the platform client, if installed."""
        ...
