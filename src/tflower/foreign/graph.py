from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tflower.foreign.records import NodeRecord


class CellKind(str, Enum):
    LSTM = "LSTM"
    BASIC_LSTM = "BASIC_LSTM"
    GRU = "GRU"


@dataclass(eq=False)
class RecurrentCell:
    """Recurrent-only fields of a node that replaced an unrolled cell scope."""

    kind: CellKind
    absorbed: list[ForeignNode] = field(default_factory=list)
    kernel: ForeignNode | None = None
    bias: ForeignNode | None = None
    w_f_diag: ForeignNode | None = None
    w_i_diag: ForeignNode | None = None
    w_o_diag: ForeignNode | None = None
    projection: ForeignNode | None = None
    init_c: ForeignNode | None = None
    init_h: ForeignNode | None = None
    forget_bias: ForeignNode | None = None


@dataclass(eq=False)
class ForeignNode:
    """
    One imported operation.

    Nodes compare by identity. ``inputs``/``outputs`` are kept symmetric by the
    surgery primitives in :mod:`tflower.foreign.surgery`.
    """

    idx: int
    name: str
    op: str
    inputs: list[ForeignNode] = field(default_factory=list)
    outputs: list[ForeignNode] = field(default_factory=list)
    defs: list[NodeRecord] = field(default_factory=list)
    no_materialize: bool = False
    bn_variant: int | None = None
    dead: bool = False
    cell: RecurrentCell | None = None
    target_node: Any = None
    target_tensor: Any = None

    @property
    def is_isolated(self) -> bool:
        return not self.inputs and not self.outputs

    def __repr__(self) -> str:
        return f"ForeignNode({self.idx}, {self.name!r}, {self.op!r})"


@dataclass
class ForeignGraph:
    nodes: list[ForeignNode] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def add_node(self, node: ForeignNode) -> None:
        self.nodes.append(node)

    def next_index(self) -> int:
        return max((n.idx for n in self.nodes), default=-1) + 1

    def find(self, name: str) -> ForeignNode | None:
        for node in self.nodes:
            if node.name == name and not node.dead:
                return node
        return None

    def live_nodes(self) -> list[ForeignNode]:
        """Snapshot of the non-dead nodes, safe to iterate while mutating."""
        return [n for n in self.nodes if not n.dead]

    def remove(self, node: ForeignNode) -> None:
        """Mark a node dead; it leaves the sequence at the next ``compact()``."""
        node.dead = True

    def compact(self) -> int:
        before = len(self.nodes)
        self.nodes = [n for n in self.nodes if not n.dead]
        return before - len(self.nodes)

    def edge_count(self) -> int:
        return sum(len(n.inputs) for n in self.nodes)

    def check_symmetry(self) -> list[str]:
        """Return a description of every edge whose two directions disagree."""
        problems: list[str] = []
        for node in self.nodes:
            for parent, count in Counter(id(p) for p in node.inputs).items():
                src = next(p for p in node.inputs if id(p) == parent)
                back = sum(1 for o in src.outputs if o is node)
                if back != count:
                    problems.append(
                        f"{src.name} -> {node.name}: {count} input ref(s), {back} output ref(s)"
                    )
            for child, count in Counter(id(c) for c in node.outputs).items():
                dst = next(c for c in node.outputs if id(c) == child)
                back = sum(1 for i in dst.inputs if i is node)
                if back != count:
                    problems.append(
                        f"{node.name} -> {dst.name}: {count} output ref(s), {back} input ref(s)"
                    )
        return problems

    def dump(self) -> str:
        lines = [f"total node number: {len(self.nodes)}"]
        for i, node in enumerate(self.nodes):
            lines.append(
                f"{i}\t{node.name} OP: {node.op} IN: {len(node.inputs)} "
                f"OUT: {len(node.outputs)} PB_DEFS: {len(node.defs)}"
            )
            for j, inp in enumerate(node.inputs):
                lines.append(f"\tI{j}: {inp.name}  {inp.op}")
            for j, out in enumerate(node.outputs):
                lines.append(f"\tO{j}: {out.name}  {out.op}")
        return "\n".join(lines)
