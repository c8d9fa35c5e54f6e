from __future__ import annotations

from collections.abc import Iterable

from tflower.errors import ResolutionError
from tflower.foreign.graph import ForeignGraph, ForeignNode
from tflower.foreign.records import NodeRecord
from tflower.utils import get_logger

logger = get_logger(__name__)


def clean_reference(reference: str) -> str:
    """
    Strip the ``^`` control-dependency marker and the ``:<index>`` output
    selector from an input reference.
    """
    name = reference[1:] if reference.startswith("^") else reference
    pos = name.find(":")
    return name if pos < 0 else name[:pos]


def construct_graph(records: Iterable[NodeRecord]) -> ForeignGraph:
    """
    Build a ForeignGraph with one node per record and one edge per input
    reference. Raises ResolutionError if a reference names no record.
    """
    records = list(records)
    graph = ForeignGraph()
    node_map: dict[str, ForeignNode] = {}

    # first scan: all nodes
    for idx, record in enumerate(records):
        if record.name in node_map:
            raise ResolutionError(
                record.name, record.name, f"duplicate node name '{record.name}'"
            )
        node = ForeignNode(idx=idx, name=record.name, op=record.op, defs=[record])
        graph.add_node(node)
        node_map[node.name] = node

    # second scan: connections
    for record in records:
        cur_node = node_map[record.name]
        for reference in record.inputs:
            input_node = node_map.get(clean_reference(reference))
            if input_node is None:
                logger.error(
                    "cannot find input: %s for node: %s", reference, record.name
                )
                raise ResolutionError(reference, record.name)
            cur_node.inputs.append(input_node)
            input_node.outputs.append(cur_node)

    logger.info(
        "constructed foreign graph: %d nodes, %d edges",
        len(graph),
        graph.edge_count(),
    )
    return graph
