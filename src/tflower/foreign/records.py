from __future__ import annotations

from dataclasses import dataclass, field
from math import prod
from typing import Any

import numpy as np

from tflower.errors import AttributeDecodeError

_MISSING: Any = object()


@dataclass
class TensorValue:
    """A tensor payload as carried by a ``value`` attribute."""

    dtype: str = "float32"
    shape: list[int] = field(default_factory=list)
    content: bytes = b""
    float_val: list[float] = field(default_factory=list)
    int_val: list[int] = field(default_factory=list)

    @property
    def num_elements(self) -> int:
        return int(prod(self.shape))


@dataclass
class NodeRecord:
    """One decoded GraphDef node: name, op type, input references, attributes."""

    name: str
    op: str
    inputs: list[str] = field(default_factory=list)
    attrs: dict[str, Any] = field(default_factory=dict)


def make_tensor(array: Any, dtype: str | None = None) -> TensorValue:
    """Build a ``TensorValue`` with raw content from an array-like."""
    arr = np.asarray(array, dtype=dtype)
    if arr.dtype == np.float64 and dtype is None:
        arr = arr.astype(np.float32)
    elif arr.dtype == np.int64 and dtype is None:
        arr = arr.astype(np.int32)
    return TensorValue(
        dtype=str(arr.dtype.name), shape=list(arr.shape), content=arr.tobytes()
    )


def make_node(
    name: str, op: str, inputs: list[str] | None = None, **attrs: Any
) -> NodeRecord:
    return NodeRecord(name=name, op=op, inputs=list(inputs or []), attrs=dict(attrs))


def make_const(name: str, array: Any, dtype: str | None = None) -> NodeRecord:
    return make_node(name, "Const", value=make_tensor(array, dtype))


def _lookup(record: NodeRecord, key: str, default: Any) -> Any:
    if key in record.attrs:
        return record.attrs[key]
    if default is _MISSING:
        raise AttributeDecodeError(
            f"node '{record.name}' has no attribute '{key}'", node_name=record.name
        )
    return default


def _wrong_kind(record: NodeRecord, key: str, expected: str) -> AttributeDecodeError:
    return AttributeDecodeError(
        f"attribute '{key}' of node '{record.name}' is not {expected}",
        node_name=record.name,
    )


def get_ints(record: NodeRecord, key: str, default: Any = _MISSING) -> list[int]:
    value = _lookup(record, key, default)
    if value is default and default is not _MISSING:
        return value
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in value
    ):
        raise _wrong_kind(record, key, "an int list")
    return [int(v) for v in value]


def get_string(record: NodeRecord, key: str, default: Any = _MISSING) -> str:
    value = _lookup(record, key, default)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    if value is default and default is not _MISSING:
        return value
    if not isinstance(value, str):
        raise _wrong_kind(record, key, "a string")
    return value


def get_float(record: NodeRecord, key: str, default: Any = _MISSING) -> float:
    value = _lookup(record, key, default)
    if value is default and default is not _MISSING:
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _wrong_kind(record, key, "a float")
    return float(value)


def get_bool(record: NodeRecord, key: str, default: Any = _MISSING) -> bool:
    value = _lookup(record, key, default)
    if value is default and default is not _MISSING:
        return value
    if not isinstance(value, bool):
        raise _wrong_kind(record, key, "a bool")
    return value


def get_shape(record: NodeRecord, key: str, default: Any = _MISSING) -> list[int]:
    return get_ints(record, key, default)


def get_shapes(
    record: NodeRecord, key: str, default: Any = _MISSING
) -> list[list[int]]:
    value = _lookup(record, key, default)
    if value is default and default is not _MISSING:
        return value
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(s, (list, tuple)) for s in value
    ):
        raise _wrong_kind(record, key, "a shape list")
    return [[int(d) for d in s] for s in value]


def get_tensor(
    record: NodeRecord, key: str = "value", default: Any = _MISSING
) -> TensorValue:
    value = _lookup(record, key, default)
    if value is default and default is not _MISSING:
        return value
    if not isinstance(value, TensorValue):
        raise _wrong_kind(record, key, "a tensor")
    return value


def decode_tensor(value: TensorValue, node_name: str | None = None) -> np.ndarray:
    """
    Decode a tensor payload into an array shaped ``value.shape``.

    Raw content is read as the declared dtype. Packed values fill the tensor in
    order; a short list is padded by repeating its last value and a long list
    is truncated.
    """
    shape = tuple(value.shape)
    elem_num = value.num_elements
    try:
        dtype = np.dtype(value.dtype)
    except TypeError as error:
        raise AttributeDecodeError(
            f"unsupported tensor dtype '{value.dtype}'", node_name=node_name
        ) from error

    if value.content:
        if len(value.content) % dtype.itemsize:
            raise AttributeDecodeError(
                f"tensor content of {len(value.content)} bytes is not a whole "
                f"number of {dtype.name} elements",
                node_name=node_name,
            )
        arr = np.frombuffer(value.content, dtype=dtype).copy()
        if arr.size != elem_num:
            raise AttributeDecodeError(
                f"tensor content holds {arr.size} elements, shape {list(shape)} "
                f"needs {elem_num}",
                node_name=node_name,
            )
        return arr.reshape(shape)

    packed = value.float_val if dtype.kind == "f" else value.int_val
    if elem_num == 0:
        return np.zeros(shape, dtype=dtype)
    if not packed:
        raise AttributeDecodeError(
            f"tensor of shape {list(shape)} carries no payload", node_name=node_name
        )
    data = list(packed[:elem_num])
    data.extend([data[-1]] * (elem_num - len(data)))
    return np.array(data, dtype=dtype).reshape(shape)


def tensor_layout(rank: int) -> str | None:
    if rank in (0, 1):
        return "W"
    if rank == 2:
        return "HW"
    if rank == 4:
        return "NHWC"
    return None
