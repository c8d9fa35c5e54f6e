"""
Recurrent-cell extraction.

An unrolled ``tf.while_loop`` cell is recognised by its node names, and the
whole name scope is replaced by a single recurrent node whose slots point at
the cell's weights and initial states.
"""

from __future__ import annotations

from tflower.foreign.graph import CellKind, ForeignGraph, ForeignNode, RecurrentCell
from tflower.foreign.records import NodeRecord
from tflower.foreign.surgery import merge_child_node
from tflower.utils import get_logger

logger = get_logger(__name__)

# checked in this order: "basic_lstm_cell" also contains "lstm_cell"
_CELL_MARKERS: list[tuple[str, CellKind]] = [
    ("basic_lstm_cell", CellKind.BASIC_LSTM),
    ("lstm_cell", CellKind.LSTM),
    ("gru", CellKind.GRU),
]

_CELL_SCOPES = {
    CellKind.LSTM: ("lstm_cell", "LSTMCellZeroState"),
    CellKind.BASIC_LSTM: ("basic_lstm_cell", "BasicLSTMCellZeroState"),
    CellKind.GRU: ("gru_cell", "GRUCellZeroState"),
}


def find_rnn_scope(graph: ForeignGraph) -> tuple[str, CellKind] | None:
    """
    Return ``(scope, kind)`` for the first node whose name holds ``while``
    followed by a cell marker, or None.
    """
    for node in graph.live_nodes():
        name = node.name
        while_pos = name.find("while")
        if while_pos <= 0:
            continue
        kind = None
        for marker, marker_kind in _CELL_MARKERS:
            if name.find(marker, while_pos) >= 0:
                kind = marker_kind
                break
        if kind is None:
            continue

        rnn_layer = name[: while_pos - 1]
        up_pos = rnn_layer.rfind("/")
        if up_pos < 0:
            return rnn_layer + "/", kind
        return rnn_layer[: up_pos + 1], kind
    return None


def _rewire(nodes: list[ForeignNode], inside: set[int], cell_node: ForeignNode) -> None:
    """Point the first reference into the scope at cell_node, drop the rest."""
    rewired: list[ForeignNode] = []
    seen = False
    for node in nodes:
        if id(node) in inside:
            if not seen:
                rewired.append(cell_node)
                seen = True
            continue
        rewired.append(node)
    nodes[:] = rewired


def strip_rnn_scope(graph: ForeignGraph, scope: str, kind: CellKind) -> ForeignNode:
    """Replace every node under ``scope`` with one recurrent node."""
    absorbed = [n for n in graph.live_nodes() if n.name.startswith(scope)]
    inside = {id(n) for n in absorbed}

    rnn_inputs: dict[int, ForeignNode] = {}
    rnn_outputs: dict[int, ForeignNode] = {}
    for node in absorbed:
        for input_node in node.inputs:
            if id(input_node) not in inside:
                rnn_inputs[id(input_node)] = input_node
        for output_node in node.outputs:
            if id(output_node) not in inside:
                rnn_outputs[id(output_node)] = output_node
    boundary_in = sorted(rnn_inputs.values(), key=lambda n: n.idx)
    boundary_out = sorted(rnn_outputs.values(), key=lambda n: n.idx)

    op = "GRU" if kind is CellKind.GRU else "LSTM"
    name = scope + op.lower()
    cell_node = ForeignNode(
        idx=graph.next_index(),
        name=name,
        op=op,
        defs=[NodeRecord(name=name, op=op)],
        cell=RecurrentCell(kind=kind, absorbed=absorbed),
    )

    # splice into the sequence right after the last boundary input
    remaining = [n for n in graph.nodes if id(n) not in inside]
    insert_at = len(remaining)
    boundary_ids = {id(n) for n in boundary_in}
    for pos, node in enumerate(remaining):
        if id(node) in boundary_ids:
            insert_at = pos + 1
    remaining.insert(insert_at, cell_node)
    graph.nodes = remaining

    for input_node in boundary_in:
        _rewire(input_node.outputs, inside, cell_node)
        cell_node.inputs.append(input_node)
    for output_node in boundary_out:
        _rewire(output_node.inputs, inside, cell_node)
        cell_node.outputs.append(output_node)

    # the absorbed nodes keep only their edges among themselves
    for node in absorbed:
        node.inputs[:] = [n for n in node.inputs if id(n) in inside]
        node.outputs[:] = [n for n in node.outputs if id(n) in inside]

    for input_node in boundary_in:
        if input_node.op == "Identity" and input_node.inputs:
            merge_child_node(input_node.inputs[0], input_node)

    populate_cell_fields(cell_node)

    # cleanup nodes left without edges
    for node in graph.live_nodes():
        if node.is_isolated:
            graph.remove(node)
    graph.compact()

    logger.info(
        "extracted %s scope '%s': %d nodes absorbed, %d inputs, %d outputs",
        kind.value,
        scope,
        len(absorbed),
        len(cell_node.inputs),
        len(cell_node.outputs),
    )
    return cell_node


def populate_cell_fields(cell_node: ForeignNode) -> None:
    cell = cell_node.cell
    if cell is None:
        return
    cell_scope, zero_scope = _CELL_SCOPES[cell.kind]

    weight_slots = [
        ("projection", f"{cell_scope}/projection/kernel"),
        ("kernel", f"{cell_scope}/kernel"),
        ("bias", f"{cell_scope}/bias"),
        ("w_f_diag", f"{cell_scope}/w_f_diag"),
        ("w_i_diag", f"{cell_scope}/w_i_diag"),
        ("w_o_diag", f"{cell_scope}/w_o_diag"),
    ]
    if cell.kind is CellKind.GRU:
        weight_slots = [
            ("kernel", f"{cell_scope}/gates/kernel"),
            ("bias", f"{cell_scope}/gates/bias"),
        ]

    for node in list(cell_node.inputs) + cell.absorbed:
        if node.op != "Const":
            continue
        for slot, marker in weight_slots:
            if marker in node.name and getattr(cell, slot) is None:
                setattr(cell, slot, node)
                break

    if cell.kind is CellKind.GRU:
        state_slots = [("init_h", f"{zero_scope}/zeros")]
    else:
        state_slots = [
            ("init_h", f"{zero_scope}/zeros_1"),
            ("init_c", f"{zero_scope}/zeros"),
            ("forget_bias", f"{cell_scope}/add/y"),
        ]
    for node in cell.absorbed:
        for slot, suffix in state_slots:
            if node.name.endswith(suffix):
                setattr(cell, slot, node)
                break


def optimize_rnn(graph: ForeignGraph) -> list[ForeignNode]:
    """Extract recurrent scopes until none is left; returns the new cell nodes."""
    cells: list[ForeignNode] = []
    while True:
        found = find_rnn_scope(graph)
        if found is None:
            break
        scope, kind = found
        cells.append(strip_rnn_scope(graph, scope, kind))
    return cells
