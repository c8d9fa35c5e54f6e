from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tflower.errors import MissingTranslatorError

if TYPE_CHECKING:
    from tflower.foreign.graph import ForeignNode
    from tflower.lowering.materialize import LoweringContext

Translator = Callable[["ForeignNode", "LoweringContext"], None]


@dataclass
class RegisteredTranslator:
    op_type: str
    translate: Translator
    generic: bool = False


class TranslatorRegistry:
    """
    Maps foreign op types to translators. Op types without a dedicated
    translator may still be lowered by the generic translator when they are
    on the generic allowlist.
    """

    def __init__(self) -> None:
        self._items: dict[str, RegisteredTranslator] = {}
        self._generic_ops: set[str] = set()
        self._generic: Translator | None = None

    def register(self, op_type: str, translate: Translator) -> None:
        # re-registration replaces the previous translator
        self._items[op_type] = RegisteredTranslator(op_type=op_type, translate=translate)

    def register_generic(self, op_types: Iterable[str], translate: Translator | None = None) -> None:
        if translate is not None:
            self._generic = translate
        self._generic_ops.update(op_types)

    def get(self, op_type: str) -> RegisteredTranslator | None:
        item = self._items.get(op_type)
        if item is not None:
            return item
        if op_type in self._generic_ops and self._generic is not None:
            return RegisteredTranslator(op_type=op_type, translate=self._generic, generic=True)
        return None

    def resolve(self, op_type: str, node_name: str) -> Translator:
        item = self.get(op_type)
        if item is None:
            raise MissingTranslatorError(op_type, node_name)
        return item.translate

    def __contains__(self, op_type: str) -> bool:
        return self.get(op_type) is not None

    def op_types(self) -> list[str]:
        return sorted(set(self._items) | (self._generic_ops if self._generic else set()))
