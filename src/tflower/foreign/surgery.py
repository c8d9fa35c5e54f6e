"""
Edge-preserving mutation primitives for the foreign graph.

Every structural rewrite goes through these functions so that ``X in
Y.inputs`` holds exactly when ``Y in X.outputs``, with equal multiplicity.
"""

from __future__ import annotations

from tflower.errors import PatternMismatchError
from tflower.foreign.graph import ForeignNode


def _replace_first(nodes: list[ForeignNode], old: ForeignNode, new: ForeignNode) -> None:
    for i, node in enumerate(nodes):
        if node is old:
            nodes[i] = new
            return


def _remove_first(nodes: list[ForeignNode], target: ForeignNode) -> None:
    for i, node in enumerate(nodes):
        if node is target:
            del nodes[i]
            return
    raise ValueError(f"{target.name} not found in adjacency list")


def add_edge(src: ForeignNode, dst: ForeignNode) -> None:
    src.outputs.append(dst)
    dst.inputs.append(src)


def remove_edge(src: ForeignNode, dst: ForeignNode) -> None:
    """Remove one ``src -> dst`` edge."""
    _remove_first(src.outputs, dst)
    _remove_first(dst.inputs, src)


def disconnect(node: ForeignNode) -> None:
    """Detach ``node`` from all of its neighbours. It stays in the sequence."""
    for input_node in node.inputs:
        _remove_first(input_node.outputs, node)
    node.inputs.clear()

    for output_node in node.outputs:
        _remove_first(output_node.inputs, node)
    node.outputs.clear()


def merge_parent_node(base: ForeignNode, parent: ForeignNode) -> None:
    """
    Fold ``parent`` (an input of ``base``) into ``base``.

    Parent's inputs are appended to base's inputs, parent's other consumers
    become consumers of base, and parent's records follow base's. Parent is
    left without edges.
    """
    if not any(n is parent for n in base.inputs):
        raise PatternMismatchError(
            f"{parent.name} is not an input of {base.name}", node_name=base.name
        )

    base.inputs[:] = [n for n in base.inputs if n is not parent]

    base.inputs.extend(parent.inputs)
    for node in parent.inputs:
        _replace_first(node.outputs, parent, base)

    for node in parent.outputs:
        if node is base:
            continue
        base.outputs.append(node)
        _replace_first(node.inputs, parent, base)

    base.defs.extend(parent.defs)

    parent.inputs.clear()
    parent.outputs.clear()


def merge_child_node(base: ForeignNode, child: ForeignNode) -> None:
    """Fold ``child`` (a consumer of ``base``) into ``base``; mirror of merge_parent_node."""
    if not any(n is child for n in base.outputs):
        raise PatternMismatchError(
            f"{child.name} is not an output of {base.name}", node_name=base.name
        )

    base.outputs[:] = [n for n in base.outputs if n is not child]

    base.outputs.extend(child.outputs)
    for node in child.outputs:
        _replace_first(node.inputs, child, base)

    for node in child.inputs:
        if node is base:
            continue
        base.inputs.append(node)
        _replace_first(node.outputs, child, base)

    base.defs.extend(child.defs)

    child.inputs.clear()
    child.outputs.clear()
