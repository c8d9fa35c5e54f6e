from __future__ import annotations

from collections import Counter
from typing import Any

from tflower.ir.graph import Graph


def build_consumer_map(graph: Graph) -> dict[str, list[int]]:
    """
    Map tensor name -> list of consuming node indices.
    """
    consumers: dict[str, list[int]] = {}
    for idx, node in enumerate(graph.nodes):
        for inp in node.inputs:
            consumers.setdefault(inp, []).append(idx)
    return consumers


def summarize(graph: Graph) -> dict[str, Any]:
    """JSON-friendly overview of a lowered graph."""
    consumers = build_consumer_map(graph)
    const_tensors = [t for t in graph.tensors.values() if t.const]
    unused = sorted(
        t.name for t in const_tensors if not consumers.get(t.name)
    )
    return {
        "name": graph.name,
        "nodes": len(graph.nodes),
        "tensors": len(graph.tensors),
        "const_tensors": len(const_tensors),
        "const_bytes": sum(t.size for t in const_tensors),
        "op_types": dict(sorted(Counter(n.op_type or "?" for n in graph.nodes).items())),
        "inputs": list(graph.inputs),
        "outputs": list(graph.outputs),
        "unused_consts": unused,
    }
