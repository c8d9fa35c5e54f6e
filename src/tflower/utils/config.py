"""
Import configuration, read from ``TFLOWER_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class ImportConfig:
    debug_graph: bool = False
    check_edges: bool = False
    max_model_bytes: int = 512 << 20
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> ImportConfig:
        return cls(
            debug_graph=_env_flag("TFLOWER_DEBUG_GRAPH"),
            check_edges=_env_flag("TFLOWER_CHECK_EDGES"),
            max_model_bytes=int(os.getenv("TFLOWER_MAX_MODEL_BYTES", str(512 << 20))),
            log_level=os.getenv("TFLOWER_LOG_LEVEL", "WARNING").upper(),
        )


config = ImportConfig.from_env()
