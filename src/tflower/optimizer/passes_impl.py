from __future__ import annotations

from collections.abc import Iterable

from tflower.errors import PatternMismatchError
from tflower.foreign.graph import ForeignGraph, ForeignNode
from tflower.foreign.surgery import (
    add_edge,
    disconnect,
    merge_child_node,
    merge_parent_node,
    remove_edge,
)
from tflower.optimizer.passes import Pass, scan
from tflower.utils import get_logger

logger = get_logger(__name__)


def _input(node: ForeignNode, pos: int) -> ForeignNode:
    if len(node.inputs) <= pos:
        raise PatternMismatchError(
            f"{node.op} node '{node.name}' expects at least {pos + 1} input(s), "
            f"has {len(node.inputs)}",
            node_name=node.name,
        )
    return node.inputs[pos]


def _first_output(node: ForeignNode) -> ForeignNode:
    if not node.outputs:
        raise PatternMismatchError(
            f"{node.op} node '{node.name}' has no consumer", node_name=node.name
        )
    return node.outputs[0]


class ClassificationHeadPass(Pass):
    """Drop the prediction reshape around Softmax and fold flattening reshapes."""

    name = "classification-head"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "Reshape"):
            if len(node.inputs) != 2:
                raise PatternMismatchError(
                    f"Reshape '{node.name}' should have two inputs", node_name=node.name
                )
            if any(n.op == "Softmax" for n in node.inputs):
                yield node
            elif node.outputs and node.outputs[0].op in ("Softmax", "MatMul"):
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        input0, input1 = candidate.inputs
        if input0.op == "Softmax" or input1.op == "Softmax":
            logger.debug("drop prediction reshape %s", candidate.name)
            disconnect(candidate)
            graph.remove(candidate)
            return

        if input0.op == "Const":
            disconnect(input0)
            base = input1
        else:
            disconnect(input1)
            base = input0
        logger.debug("fold reshape %s into %s", candidate.name, base.name)
        merge_child_node(base, candidate)
        graph.remove(candidate)


class SqueezeIdentityPass(Pass):
    name = "squeeze-identity"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "Squeeze", "Identity"):
            if node.op == "Identity":
                yield node
            elif any(n.op == "Softmax" for n in node.outputs) or len(node.outputs) == 1:
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        if candidate.op == "Identity":
            merge_child_node(_input(candidate, 0), candidate)
            graph.remove(candidate)
            return

        softmax = next((n for n in candidate.outputs if n.op == "Softmax"), None)
        if softmax is not None:
            shape = next((n for n in candidate.outputs if n.op == "Shape"), None)
            if shape is not None:
                disconnect(shape)
            merge_child_node(_input(candidate, 0), candidate)
        else:
            consumer = candidate.outputs[0]
            data = _input(candidate, 0)
            pos = next(i for i, n in enumerate(consumer.inputs) if n is candidate)
            merge_parent_node(consumer, candidate)
            # the squeezed operand was appended last; put it back in place
            consumer.inputs.pop()
            consumer.inputs.insert(pos, data)
        logger.debug("elide squeeze %s", candidate.name)
        graph.remove(candidate)


class ConcatAxisPass(Pass):
    """Move the axis constant of ConcatV2 (its last operand) into its records."""

    name = "concat-axis"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "ConcatV2"):
            if node.inputs:
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        axis_node = candidate.inputs[-1]
        if axis_node.op != "Const":
            raise PatternMismatchError(
                f"ConcatV2 '{candidate.name}' axis operand '{axis_node.name}' "
                f"is {axis_node.op}, expected Const",
                node_name=candidate.name,
            )
        candidate.defs.append(axis_node.defs[0])
        remove_edge(axis_node, candidate)


class QueueDequeuePass(Pass):
    """Collapse the input queue and its dequeue into one source node."""

    name = "queue-dequeue"
    first_match_only = True

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        yield from scan(graph, "FIFOQueueV2")

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        dequeue = _first_output(candidate)
        if dequeue.op != "QueueDequeueManyV2":
            return
        count = _input(dequeue, 1)
        merge_parent_node(dequeue, count)
        graph.remove(count)
        merge_child_node(candidate, dequeue)
        graph.remove(dequeue)


class ExpandDimsPass(Pass):
    name = "expand-dims"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        yield from scan(graph, "ExpandDims")

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        data = _input(candidate, 0)
        axis = _input(candidate, 1)

        if data.op == "Const" and axis.op == "Const":
            consumers = list(candidate.outputs)
            disconnect(axis)
            disconnect(candidate)
            for child in consumers:
                add_edge(data, child)
        else:
            # a dynamic axis leaves the first operand to be dropped
            disconnect(axis if axis.op == "Const" else data)
            merge_parent_node(_first_output(candidate), candidate)
        logger.debug("remove ExpandDims %s", candidate.name)
        graph.remove(candidate)


class ResizeHelperPass(Pass):
    """Prune the Shape/StridedSlice/Mul chain computing a 2x resize target."""

    name = "resize-helpers"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "ResizeNearestNeighbor"):
            if len(node.inputs) == 2:
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        data, size = candidate.inputs
        shape = next((n for n in data.outputs if n.op == "Shape"), None)
        if shape is not None:
            disconnect(shape)

        if size.op == "Mul":
            if size.inputs:
                disconnect(size.inputs[0])
            disconnect(size)
        elif size.op == "Const":
            disconnect(size)


class InputReshapePass(Pass):
    """Fold the reshape applied to the graph input into the Placeholder."""

    name = "input-reshape"
    first_match_only = True

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "Reshape"):
            if len(node.inputs) != 2:
                continue
            ops = {n.op for n in node.inputs}
            if ops == {"Placeholder", "Const"}:
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        input0, input1 = candidate.inputs
        if input0.op == "Const":
            const_node, placeholder = input0, input1
        else:
            const_node, placeholder = input1, input0

        disconnect(const_node)
        merge_child_node(placeholder, candidate)
        placeholder.defs.append(const_node.defs[0])
        logger.debug("fold input reshape %s into %s", candidate.name, placeholder.name)
        graph.remove(candidate)


class ShapeSlicePass(Pass):
    name = "shape-slice"
    first_match_only = True

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "StridedSlice"):
            if node.inputs and node.inputs[0].op == "Shape":
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        shape = candidate.inputs[0]
        disconnect(candidate)
        disconnect(shape)


class ArgMaxRemovalPass(Pass):
    name = "argmax"
    first_match_only = True

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        yield from scan(graph, "ArgMax")

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        disconnect(candidate)
        graph.remove(candidate)


class TrailingSqueezePass(Pass):
    name = "trailing-squeeze"
    first_match_only = True

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "Squeeze"):
            if not node.outputs:
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        disconnect(candidate)


class IsolatedNodePrunePass(Pass):
    name = "prune-isolated"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph):
            if node.is_isolated:
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        graph.remove(candidate)


SOURCE_OPS = ("Const", "Placeholder", "FIFOQueueV2")


class DanglingSourcePrunePass(Pass):
    """
    Remove nodes without inputs that cannot act as a graph source. Removing
    one can leave its consumers without inputs, so they are checked again.
    """

    name = "prune-dangling"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        pending = list(scan(graph))
        while pending:
            node = pending.pop(0)
            if node.dead or node.inputs or node.op in SOURCE_OPS:
                continue
            consumers = list(node.outputs)
            yield node
            pending.extend(consumers)

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        logger.debug("prune dangling %s (%s)", candidate.name, candidate.op)
        disconnect(candidate)
        graph.remove(candidate)
