"""Target graph IR, builder API and analysis utilities."""

from .builder import GraphBuilder
from .graph import Graph, GraphValidator, Node, Operator, Tensor, ValidationError
from .params import (
    BatchNormParam,
    ConcatParam,
    ConvParam,
    EltType,
    EltwiseParam,
    FCParam,
    GemmParam,
    GenericParam,
    LSTMParam,
    PoolAlg,
    PoolParam,
    ReluParam,
    ReshapeParam,
    ResizeParam,
    SoftmaxParam,
)
from .utils import build_consumer_map, summarize

__all__ = [
    "BatchNormParam",
    "ConcatParam",
    "ConvParam",
    "EltType",
    "EltwiseParam",
    "FCParam",
    "GemmParam",
    "GenericParam",
    "Graph",
    "GraphBuilder",
    "GraphValidator",
    "LSTMParam",
    "Node",
    "Operator",
    "PoolAlg",
    "PoolParam",
    "ReluParam",
    "ReshapeParam",
    "ResizeParam",
    "SoftmaxParam",
    "Tensor",
    "ValidationError",
    "build_consumer_map",
    "summarize",
]
