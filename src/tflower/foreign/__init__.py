"""Foreign (TensorFlow) graph model, construction, surgery and RNN extraction."""

from .construct import clean_reference, construct_graph
from .graph import CellKind, ForeignGraph, ForeignNode, RecurrentCell
from .records import (
    NodeRecord,
    TensorValue,
    decode_tensor,
    make_const,
    make_node,
    make_tensor,
    tensor_layout,
)
from .rnn import find_rnn_scope, optimize_rnn, strip_rnn_scope
from .surgery import add_edge, disconnect, merge_child_node, merge_parent_node, remove_edge

__all__ = [
    "CellKind",
    "ForeignGraph",
    "ForeignNode",
    "NodeRecord",
    "RecurrentCell",
    "TensorValue",
    "add_edge",
    "clean_reference",
    "construct_graph",
    "decode_tensor",
    "disconnect",
    "find_rnn_scope",
    "make_const",
    "make_node",
    "make_tensor",
    "merge_child_node",
    "merge_parent_node",
    "optimize_rnn",
    "remove_edge",
    "strip_rnn_scope",
    "tensor_layout",
]
