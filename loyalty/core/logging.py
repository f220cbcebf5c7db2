"""Logging setup shared by the API, the workers and the scripts."""
from __future__ import annotations

import logging.config
from pathlib import Path

import yaml  # type: ignore[import-untyped]

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "logging.yaml"
_PROJECT_LOGGERS = ("loyalty", "workers")


def configure_logging(config_path: str | Path | None = None, *, level: str | None = None) -> None:
    """Apply the YAML ``dictConfig`` at ``config_path``.

    Falls back to ``basicConfig`` when the file is absent (e.g. an installed
    wheel without the ``configs`` directory).  ``level`` overrides the level of
    the project loggers only.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if path.exists():
        with path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=logging.INFO)
    if level:
        for name in _PROJECT_LOGGERS:
            logging.getLogger(name).setLevel(level.upper())
    logging.getLogger("loyalty").debug("logging configured", extra={"config_path": str(path)})


__all__ = ["DEFAULT_CONFIG_PATH", "configure_logging"]
