"""Lowering of the rewritten foreign graph into the target IR."""

from .lower import lower_graph
from .materialize import LoweringContext, create_preset_const, placeholder_dims
from .registry import RegisteredTranslator, Translator, TranslatorRegistry
from .translators import GENERIC_OPS, build_default_registry

__all__ = [
    "GENERIC_OPS",
    "LoweringContext",
    "RegisteredTranslator",
    "Translator",
    "TranslatorRegistry",
    "build_default_registry",
    "create_preset_const",
    "lower_graph",
    "placeholder_dims",
]
