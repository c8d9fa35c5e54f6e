"""Operator parameter structs attached to target-IR operators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


@dataclass
class ConvParam:
    kernel_h: int = 1
    kernel_w: int = 1
    stride_h: int = 1
    stride_w: int = 1
    # -1 means "SAME": computed at run time
    pad_h: int = 0
    pad_w: int = 0
    dilation_h: int = 1
    dilation_w: int = 1
    output_channel: int = 1
    group: int = 1
    # explicit [top, left, bottom, right] from a fused Pad
    pads: list[int] = field(default_factory=list)


class PoolAlg(IntEnum):
    MAX = 0
    AVG = 1


@dataclass
class PoolParam:
    alg: PoolAlg = PoolAlg.MAX
    kernel_h: int = 1
    kernel_w: int = 1
    stride_h: int = 1
    stride_w: int = 1
    pad_h: int = 0
    pad_w: int = 0
    global_pool: bool = False
    kernel_shape: list[int] = field(default_factory=list)
    pads: list[int] = field(default_factory=list)
    strides: list[int] = field(default_factory=list)


@dataclass
class BatchNormParam:
    eps: float = 1e-5


@dataclass
class SoftmaxParam:
    axis: int = 1


@dataclass
class ReluParam:
    negative_slope: float = 0.0


@dataclass
class ResizeParam:
    scale_h: float = 2.0
    scale_w: float = 2.0
    # 0: nearest neighbor
    type: int = 0


@dataclass
class ConcatParam:
    axis: int = 1


class EltType(IntEnum):
    SUM = 0
    PROD = 1
    SUB = 2
    RSQRT = 3
    MIN_SCALAR = 4


@dataclass
class EltwiseParam:
    type: EltType = EltType.SUM


@dataclass
class ReshapeParam:
    dims: list[int] = field(default_factory=list)


@dataclass
class GemmParam:
    alpha: float = 1.0
    beta: float = 1.0
    trans_a: bool = False
    trans_b: bool = False


@dataclass
class FCParam:
    num_output: int = 0


@dataclass
class GenericParam:
    op_name: str = ""
    max_input_num: int = 0
    max_output_num: int = 0


@dataclass
class LSTMParam:
    forget_bias: float = 1.0
    cell_size: int = 0
    hidden_size: int = 0
    input_size: int = 0
    has_bias: bool = False
    has_peephole: bool = False
    has_projection: bool = False
    has_init_state: bool = False
