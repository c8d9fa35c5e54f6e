from __future__ import annotations

import pytest

from tflower.errors import MissingTranslatorError
from tflower.lowering import GENERIC_OPS, TranslatorRegistry, build_default_registry


def _noop(node, ctx) -> None:
    return None


def _other(node, ctx) -> None:
    return None


def test_register_replaces_previous() -> None:
    registry = TranslatorRegistry()
    registry.register("Relu", _noop)
    registry.register("Relu", _other)
    assert registry.resolve("Relu", "relu") is _other


def test_resolve_unknown_raises() -> None:
    registry = TranslatorRegistry()
    with pytest.raises(MissingTranslatorError) as exc:
        registry.resolve("Foo", "foo")
    assert exc.value.op_type == "Foo"
    assert exc.value.code == "ENOTRANSLATOR"


def test_generic_allowlist_needs_translator() -> None:
    registry = TranslatorRegistry()
    registry.register_generic(["Mfcc"])
    assert "Mfcc" not in registry

    registry.register_generic([], _noop)
    item = registry.get("Mfcc")
    assert item is not None and item.generic
    assert item.translate is _noop


def test_dedicated_translator_wins_over_generic() -> None:
    registry = TranslatorRegistry()
    registry.register_generic(["Mfcc"], _noop)
    registry.register("Mfcc", _other)
    assert registry.get("Mfcc").generic is False
    assert registry.resolve("Mfcc", "mfcc") is _other


def test_default_registry_covers_supported_ops() -> None:
    registry = build_default_registry()
    for op_type in (
        "Conv2D",
        "DepthwiseConv2dNative",
        "MaxPool",
        "AvgPool",
        "FusedBatchNorm",
        "ComposedBN",
        "Relu",
        "Relu6",
        "Softmax",
        "ConcatV2",
        "Add",
        "Mul",
        "Sub",
        "Rsqrt",
        "ResizeNearestNeighbor",
        "Reshape",
        "MatMul",
        "FIFOQueueV2",
        "Mean",
        "LSTM",
        *GENERIC_OPS,
    ):
        assert op_type in registry, op_type
    assert "GRU" not in registry
    assert registry.op_types() == sorted(registry.op_types())
