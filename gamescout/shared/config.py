from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field

DEFAULT_MAPPINGS_URL = (
    "https://gist.githubusercontent.com/dev-ov2/a6e4d27235b9456faeb55967caf8b64f/raw/canopy-mappings.json"
)


class AppConfig(BaseModel):
    mappings_url: str = DEFAULT_MAPPINGS_URL
    http_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 15.0
    # Companion-tool folders that live inside a game's install dir but are not the game.
    ignored_path_fragments: List[str] = Field(default_factory=lambda: ["wallpaper_engine"])
    steam_enabled: bool = True
    steam_root: Optional[str] = None
    remote_mappings_enabled: bool = True
    log_level: str = "INFO"

    def to_monitor_config(self) -> dict:
        return {
            "poll_interval_seconds": self.poll_interval_seconds,
            "ignored_path_fragments": self.ignored_path_fragments,
        }
