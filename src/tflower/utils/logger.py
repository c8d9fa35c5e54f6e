from __future__ import annotations

import logging

from tflower.utils.config import config

_ROOT = "tflower"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(config.log_level)
    return root


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the ``tflower`` namespace."""
    root = _configure_root()
    if not name or name == _ROOT:
        return root
    if name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return root.getChild(name)
