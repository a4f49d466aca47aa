"""
Schema of the remote game-mappings document.

Each record describes how to recognise one title without a platform
client: process names per OS, free-text deep-search patterns, and
candidate install paths (``%ENVVAR%``, ``$VAR`` and ``~`` are expanded).

Example record::

    {
      "id": "league-of-legends",
      "name": "League of Legends",
      "platform": "custom",
      "iconUrl": "https://example.invalid/lol.png",
      "process": {"windows": ["LeagueClient"], "deepSearch": ["Riot Games"]},
      "paths": {"windows": ["C:/Riot Games/League of Legends"]}
    }
"""

from __future__ import annotations

import os
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .pathutil import OsName, current_os, expand_path
from .types import DetectedGame, GamePlatform

__all__ = ["GameMapping", "ProcessDetection", "PathDetection", "platform_from_tag"]

_PLATFORM_TAGS = {p.value: p for p in GamePlatform}


def platform_from_tag(tag: Optional[str]) -> GamePlatform:
    return _PLATFORM_TAGS.get((tag or "").strip().lower(), GamePlatform.CUSTOM)


def _dedupe(values: List[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


class _MappingModel(BaseModel):
    """Base model matching JSON keys case-insensitively (``deepSearch`` == ``deep_search``)."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(k).lower().replace("_", ""): v for k, v in data.items()}
        return data


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class _PerOsLists(_MappingModel):
    common:  List[str] = Field(default_factory=list)
    windows: List[str] = Field(default_factory=list)
    linux:   List[str] = Field(default_factory=list)
    macos:   List[str] = Field(default_factory=list, validation_alias=AliasChoices("macos", "osx", "mac"))

    @field_validator("common", "windows", "linux", "macos", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return _as_str_list(value)

    def for_os(self, os_name: OsName) -> List[str]:
        """Common entries first, then the ones for ``os_name``."""
        return [*self.common, *getattr(self, os_name)]


class ProcessDetection(_PerOsLists):
    # Case-insensitive substrings matched against process name, command line and exe path
    deep_search: List[str] = Field(default_factory=list, validation_alias=AliasChoices("deepsearch"))

    @field_validator("deep_search", mode="before")
    @classmethod
    def deep_none_to_empty(cls, value: Any) -> Any:
        return _as_str_list(value)


class PathDetection(_PerOsLists):
    pass


class GameMapping(_MappingModel):
    id:       str
    name:     str
    platform: Optional[str] = "custom"
    icon_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("iconurl", "icon"))
    enabled:  bool = True
    process:  Optional[ProcessDetection] = Field(
        default=None, validation_alias=AliasChoices("process", "processdetection")
    )
    paths:    Optional[PathDetection] = Field(
        default=None, validation_alias=AliasChoices("paths", "pathdetection")
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def enabled_default(cls, value: Any) -> Any:
        return True if value is None else value

    def process_names_for(self, os_name: Optional[OsName] = None) -> List[str]:
        if self.process is None:
            return []
        return _dedupe(self.process.for_os(os_name or current_os()))

    def deep_search_patterns(self) -> List[str]:
        if self.process is None:
            return []
        return [p for p in self.process.deep_search if p and p.strip()]

    def paths_for(self, os_name: Optional[OsName] = None) -> List[str]:
        if self.paths is None:
            return []
        return self.paths.for_os(os_name or current_os())

    def resolve_install_path(self, os_name: Optional[OsName] = None) -> Optional[str]:
        """First configured path that currently exists as a directory."""
        for path in self.paths_for(os_name):
            expanded = expand_path(path)
            if os.path.isdir(expanded):
                return expanded
        return None

    def is_valid_for_platform(self, os_name: Optional[OsName] = None) -> bool:
        if not self.enabled:
            return False
        if self.process_names_for(os_name) or self.deep_search_patterns():
            return True
        return self.resolve_install_path(os_name) is not None

    def to_detected_game(self, os_name: Optional[OsName] = None) -> Optional[DetectedGame]:
        """Build a DetectedGame, or None when nothing could ever match it."""
        process_names = self.process_names_for(os_name)
        install_path = self.resolve_install_path(os_name)
        patterns = self.deep_search_patterns()

        if not process_names and not install_path and not patterns:
            return None

        return DetectedGame(
            id=self.id,
            name=self.name,
            platform=platform_from_tag(self.platform),
            install_path=install_path or "",
            icon=self.icon_url,
            process_names=tuple(process_names),
            deep_search_patterns=tuple(patterns),
        )
