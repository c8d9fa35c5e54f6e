"""Utility helpers for logging, configuration, and common routines."""

from .config import ImportConfig, config
from .logger import get_logger

__all__ = ["ImportConfig", "config", "get_logger"]
