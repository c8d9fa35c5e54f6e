from __future__ import annotations

import numpy as np
import pytest

from tflower.errors import AttributeDecodeError
from tflower.foreign import NodeRecord, TensorValue, decode_tensor, make_node, make_tensor, tensor_layout
from tflower.foreign.records import get_bool, get_float, get_ints, get_shapes, get_string, get_tensor


def test_decode_raw_content() -> None:
    arr = np.arange(6, dtype=np.float32).reshape(2, 3)
    out = decode_tensor(make_tensor(arr))
    np.testing.assert_array_equal(out, arr)
    assert out.dtype == np.float32


def test_decode_packed_values_repeat_last() -> None:
    value = TensorValue(dtype="float32", shape=[2, 2], float_val=[0.5])
    np.testing.assert_array_equal(decode_tensor(value), np.full((2, 2), 0.5, dtype=np.float32))

    value = TensorValue(dtype="int32", shape=[3], int_val=[1, 2])
    np.testing.assert_array_equal(decode_tensor(value), np.array([1, 2, 2], dtype=np.int32))


def test_decode_packed_values_truncate() -> None:
    value = TensorValue(dtype="int32", shape=[2], int_val=[7, 8, 9])
    np.testing.assert_array_equal(decode_tensor(value), np.array([7, 8], dtype=np.int32))


def test_decode_without_payload_raises() -> None:
    with pytest.raises(AttributeDecodeError):
        decode_tensor(TensorValue(dtype="float32", shape=[4]), node_name="w")


def test_decode_content_size_mismatch_raises() -> None:
    value = TensorValue(dtype="float32", shape=[3], content=np.zeros(2, np.float32).tobytes())
    with pytest.raises(AttributeDecodeError):
        decode_tensor(value)


def test_decode_partial_element_content_raises() -> None:
    value = TensorValue(dtype="float32", shape=[2], content=b"\x00" * 7)
    with pytest.raises(AttributeDecodeError) as exc:
        decode_tensor(value, node_name="w")
    assert exc.value.node_name == "w"


def test_make_tensor_narrows_default_dtypes() -> None:
    assert make_tensor([1.0, 2.0]).dtype == "float32"
    assert make_tensor([1, 2]).dtype == "int32"
    assert make_tensor(3.0).shape == []


def test_typed_getters() -> None:
    record = make_node(
        "conv",
        "Conv2D",
        ["x", "w"],
        strides=[1, 2, 2, 1],
        padding="SAME",
        epsilon=1e-3,
        transpose_b=True,
        shapes=[[1, 28, 28, 1]],
        value=make_tensor([1.0]),
    )
    assert get_ints(record, "strides") == [1, 2, 2, 1]
    assert get_string(record, "padding") == "SAME"
    assert get_float(record, "epsilon") == pytest.approx(1e-3)
    assert get_bool(record, "transpose_b") is True
    assert get_shapes(record, "shapes") == [[1, 28, 28, 1]]
    assert get_tensor(record).shape == [1]
    assert get_ints(record, "dilations", None) is None


def test_getters_raise_on_missing_or_wrong_kind() -> None:
    record = NodeRecord(name="pool", op="MaxPool", attrs={"ksize": "2x2"})
    with pytest.raises(AttributeDecodeError) as exc:
        get_ints(record, "ksize")
    assert exc.value.node_name == "pool"
    with pytest.raises(AttributeDecodeError):
        get_ints(record, "strides")
    with pytest.raises(AttributeDecodeError):
        get_tensor(record)


def test_tensor_layout_by_rank() -> None:
    assert tensor_layout(0) == "W"
    assert tensor_layout(1) == "W"
    assert tensor_layout(2) == "HW"
    assert tensor_layout(3) is None
    assert tensor_layout(4) == "NHWC"
