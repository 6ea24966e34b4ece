from __future__ import annotations

import logging
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _level(name: str) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, module_levels: Optional[Dict[str, str]] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=_level(level), format=LOG_FORMAT, handlers=handlers, force=True)
    for name, lvl in (module_levels or {}).items():
        logging.getLogger(str(name)).setLevel(_level(lvl))


def setup_logging_from_config(cfg: Dict[str, Any], level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Apply the ``logging`` section of a telemetry YAML; explicit arguments win over the file."""
    setup_logging(
        level=level or str(cfg.get("level", "INFO")),
        log_file=log_file if log_file is not None else cfg.get("file"),
        module_levels={str(k): str(v) for k, v in (cfg.get("modules", {}) or {}).items()},
    )
