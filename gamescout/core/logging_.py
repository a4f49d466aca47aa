from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Union

from gamescout.shared.paths import log_path, ensure_app_dirs


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    ensure_app_dirs()
    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers:
        return

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    fh = RotatingFileHandler(str(log_path()), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # Per-process lookups and manifest parsing are chatty at DEBUG
    logging.getLogger("gamescout.core.monitor.process_enumerator").setLevel(max(logging.INFO, root.level))
    logging.getLogger("urllib3").setLevel(logging.WARNING)
