"""
Fusion passes: nodes absorbed into a neighbour keep their records in the
survivor's ``defs`` so translators can still read their attributes.
"""

from __future__ import annotations

from collections.abc import Iterable

from tflower.errors import PatternMismatchError
from tflower.foreign.graph import ForeignGraph, ForeignNode
from tflower.foreign.surgery import disconnect, merge_child_node, merge_parent_node, remove_edge
from tflower.optimizer.passes import Pass, scan
from tflower.utils import get_logger

logger = get_logger(__name__)

CONV_OPS = ("Conv2D", "DepthwiseConv2dNative")


class BiasAddFusionPass(Pass):
    name = "bias-add"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, *CONV_OPS, "MatMul"):
            if node.outputs and node.outputs[0].op in ("BiasAdd", "Add"):
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        bias_add = candidate.outputs[0]
        logger.debug("fuse %s into %s", bias_add.name, candidate.name)
        merge_child_node(candidate, bias_add)
        graph.remove(bias_add)


def _basename(node: ForeignNode) -> str:
    return node.name.rsplit("/", 1)[-1]


def composed_bn_variant(node: ForeignNode) -> int | None:
    """
    Return the batch-norm variant if ``node`` is the final Add of a
    decomposed batch norm: 1 when a scale multiply is present, else 0.
    """
    if node.op != "Add" or len(node.inputs) != 2:
        return None
    input0, input1 = node.inputs
    if input0.op != "Mul" or input1.op != "Sub":
        return None
    if "/add_1" not in node.name:
        return None
    if "/mul_1" in input0.name or "/mul_1" in input1.name:
        return 1
    return 0


class ComposedBNPass(Pass):
    """
    Fuse ``x * inv + (beta - mean * inv)`` with ``inv = rsqrt(var + eps)``,
    optionally scaled by gamma, into one ``ComposedBN`` node.

    Resulting inputs: ``[x, gamma, var, eps, beta, mean]`` when scaled,
    ``[x, var, eps, beta, mean]`` otherwise.
    """

    name = "composed-bn"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "Add"):
            variant = composed_bn_variant(node)
            if variant is not None:
                node.bn_variant = variant
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        absorbed: list[ForeignNode] = []
        self._merge_inputs(candidate, absorbed)
        for node in absorbed:
            graph.remove(node)

        old_name = candidate.name
        candidate.op = "ComposedBN"
        candidate.name = old_name.replace("/add_1", "/bn.fused", 1)

        for node in candidate.inputs:
            if "/add/y" in node.name:
                node.no_materialize = True
        logger.debug(
            "fuse composed batch norm %s (variant %d, %d nodes absorbed)",
            candidate.name,
            candidate.bn_variant,
            len(absorbed),
        )

    def _merge_inputs(self, node: ForeignNode, absorbed: list[ForeignNode]) -> None:
        skip_data = False
        base = _basename(node)

        if node.bn_variant == 1:
            if base == "mul_1":
                skip_data = True
            elif base == "mul":
                # mean * inv reads the shared inv separately
                mul_2 = next((n for n in node.outputs if _basename(n) == "mul_2"), None)
                if mul_2 is None:
                    raise PatternMismatchError(
                        f"composed batch norm: '{node.name}' does not feed mul_2",
                        node_name=node.name,
                    )
                remove_edge(node, mul_2)
        elif base == "mul_1":
            # inv was merged into add_1; break the edge it left behind
            add_1 = next((n for n in node.inputs if "/add_1" in n.name), None)
            if add_1 is not None:
                remove_edge(add_1, node)
        elif base == "mul":
            skip_data = True

        for i, input_node in enumerate(list(node.inputs)):
            if skip_data and i == 0:
                continue
            input_node.bn_variant = node.bn_variant
            if input_node.op == "Const":
                continue
            self._merge_inputs(input_node, absorbed)
            merge_parent_node(node, input_node)
            absorbed.append(input_node)


class ReluMinimumPass(Pass):
    """``Minimum(Relu(x), 6)`` becomes ``Relu6(x)``."""

    name = "relu-minimum"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, "Minimum"):
            if node.inputs and node.inputs[0].op == "Relu":
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        relu = candidate.inputs[0]
        if len(candidate.inputs) < 2:
            raise PatternMismatchError(
                f"Minimum '{candidate.name}' has no bound operand",
                node_name=candidate.name,
            )
        disconnect(candidate.inputs[1])
        merge_child_node(relu, candidate)
        relu.op = "Relu6"
        graph.remove(candidate)


class PadMeanPass(Pass):
    """Fold explicit Pad into the convolution; capture Mean reduction axes."""

    name = "pad-mean"

    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        for node in scan(graph, *CONV_OPS, "Mean"):
            if node.op == "Mean":
                yield node
            elif node.inputs and node.inputs[0].op == "Pad":
                yield node

    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        if candidate.op == "Mean":
            if len(candidate.inputs) < 2:
                raise PatternMismatchError(
                    f"Mean '{candidate.name}' has no axis operand",
                    node_name=candidate.name,
                )
            indices = candidate.inputs[1]
            if indices.op != "Const":
                raise PatternMismatchError(
                    f"Mean '{candidate.name}' axis operand '{indices.name}' is not constant",
                    node_name=candidate.name,
                )
            disconnect(indices)
            candidate.defs.append(indices.defs[0])
            return

        pad = candidate.inputs[0]
        if len(pad.inputs) < 2:
            raise PatternMismatchError(
                f"Pad '{pad.name}' has no paddings operand", node_name=pad.name
            )
        paddings = pad.inputs[1]
        pad.defs.append(paddings.defs[0])
        disconnect(paddings)
        merge_parent_node(candidate, pad)
        graph.remove(pad)

        # the pad's data input was appended last
        data = candidate.inputs.pop()
        candidate.inputs.insert(0, data)
        logger.debug("fuse pad %s into %s", pad.name, candidate.name)
