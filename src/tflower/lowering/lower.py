from __future__ import annotations

from tflower.errors import ConversionError
from tflower.foreign.graph import ForeignGraph
from tflower.ir.builder import GraphBuilder
from tflower.ir.graph import Graph
from tflower.lowering.materialize import (
    LoweringContext,
    create_shell,
    materialize_const,
    materialize_input,
)
from tflower.lowering.registry import TranslatorRegistry
from tflower.lowering.translators import build_default_registry
from tflower.utils import get_logger

logger = get_logger(__name__)

SOURCE_OPS = ("Const", "Placeholder")


def lower_graph(
    graph: ForeignGraph,
    registry: TranslatorRegistry | None = None,
    *,
    builder: GraphBuilder | None = None,
    name: str = "",
) -> Graph:
    """
    Lower a rewritten foreign graph into the target IR.

    Every node op is resolved against ``registry`` before anything is built,
    so a missing translator leaves no partial target graph behind.
    """
    registry = registry if registry is not None else build_default_registry()
    builder = builder if builder is not None else GraphBuilder(name=name)

    translators = {}
    for node in graph.nodes:
        if node.op in SOURCE_OPS:
            continue
        try:
            translators[node.op] = registry.resolve(node.op, node.name)
        except ConversionError:
            logger.error("cannot find translator for operator: %s (%s)", node.op, node.name)
            raise

    # first: create all nodes and output tensors
    for node in graph.nodes:
        if node.no_materialize:
            continue
        if node.op == "Const":
            materialize_const(node, builder)
        elif node.op == "Placeholder":
            materialize_input(node, builder)
        else:
            create_shell(node, builder)

    ctx = LoweringContext(graph=graph, builder=builder)
    for node in graph.nodes:
        if node.op in SOURCE_OPS or node.no_materialize:
            continue
        try:
            translators[node.op](node, ctx)
        except ConversionError:
            logger.error("error on load node: %s op: %s", node.name, node.op)
            raise

    target = builder.graph
    if not target.outputs:
        for node in graph.nodes:
            if node.outputs or node.op in SOURCE_OPS or node.target_node is None:
                continue
            builder.add_graph_output_node(node.target_node)

    logger.info(
        "lowered graph: %d nodes, %d tensors, %d input(s), %d output(s)",
        len(target.nodes),
        len(target.tensors),
        len(target.inputs),
        len(target.outputs),
    )
    return target
