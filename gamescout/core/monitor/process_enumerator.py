from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import List, Optional

import psutil

from gamescout.core.games.types import RunningProcess

log = logging.getLogger(__name__)

_BASE_ATTRS = ["pid", "name", "exe", "create_time"]


class ProcessEnumerator:
    """Best-effort snapshot of the OS process table."""

    def snapshot(self, extended: bool = False) -> List[RunningProcess]:
        """
        One entry per live process. ``extended`` also collects the command
        line, which deep-search matching needs.

        Processes that exit or deny access mid-enumeration are omitted;
        this never raises for a single process.
        """
        attrs = _BASE_ATTRS + ["cmdline"] if extended else _BASE_ATTRS
        processes: List[RunningProcess] = []
        for proc in psutil.process_iter():
            try:
                info = proc.as_dict(attrs=attrs, ad_value=None)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            rp = self._to_running_process(info)
            if rp is not None:
                processes.append(rp)
        return processes

    @staticmethod
    def _to_running_process(info: dict) -> Optional[RunningProcess]:
        exe = info.get("exe") or None
        name = info.get("name") or (os.path.basename(exe) if exe else None)
        if not name:
            return None

        cmdline = info.get("cmdline")
        created = info.get("create_time")
        start_time: Optional[datetime] = None
        if created:
            try:
                start_time = datetime.fromtimestamp(created)
            except (OverflowError, OSError, ValueError):
                log.debug("Bad create_time %r for pid %s", created, info.get("pid"))

        return RunningProcess(
            pid=int(info.get("pid") or 0),
            name=str(name),
            executable_path=exe,
            command_line=" ".join(cmdline) if cmdline else None,
            start_time=start_time,
        )
