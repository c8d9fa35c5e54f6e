from __future__ import annotations

import numpy as np
import pytest

from tflower.foreign import NodeRecord, make_const, make_node


def lstm_layer(
    scope: str = "rnn",
    *,
    input_size: int = 4,
    units: int = 4,
    forget_bias: float = 0.5,
    cell: str = "lstm_cell",
    zero_state: str = "LSTMCellZeroState",
    source: str = "input",
) -> list[NodeRecord]:
    """Records of a frozen single-layer dynamic_rnn fed by ``source``."""
    rng = np.random.default_rng(0)
    kernel = rng.standard_normal((input_size + units, 4 * units)).astype(np.float32)
    zs = f"{scope}/{zero_state}"
    return [
        make_const(f"{scope}/{cell}/kernel", kernel),
        make_const(f"{scope}/{cell}/bias", np.zeros(4 * units, dtype=np.float32)),
        make_const(f"{zs}/Const", np.array([1], dtype=np.int32)),
        make_const(f"{zs}/Const_1", np.array([units], dtype=np.int32)),
        make_const(f"{zs}/concat/axis", np.array(0, dtype=np.int32)),
        make_node(f"{zs}/concat", "ConcatV2", [f"{zs}/Const", f"{zs}/Const_1", f"{zs}/concat/axis"]),
        make_const(f"{zs}/zeros/Const", np.array(0.0, dtype=np.float32)),
        make_node(f"{zs}/zeros", "Fill", [f"{zs}/concat", f"{zs}/zeros/Const"]),
        make_const(f"{zs}/zeros_1/Const", np.array(0.0, dtype=np.float32)),
        make_node(f"{zs}/zeros_1", "Fill", [f"{zs}/concat", f"{zs}/zeros_1/Const"]),
        make_node(f"{scope}/while/Enter", "Enter", [source]),
        make_node(
            f"{scope}/while/{cell}/MatMul",
            "MatMul",
            [f"{scope}/while/Enter", f"{scope}/{cell}/kernel"],
        ),
        make_node(
            f"{scope}/while/{cell}/BiasAdd",
            "BiasAdd",
            [f"{scope}/while/{cell}/MatMul", f"{scope}/{cell}/bias"],
        ),
        make_const(f"{scope}/while/{cell}/add/y", np.array(forget_bias, dtype=np.float32)),
        make_node(
            f"{scope}/while/{cell}/add",
            "Add",
            [f"{scope}/while/{cell}/BiasAdd", f"{scope}/while/{cell}/add/y"],
        ),
        make_node(
            f"{scope}/while/Exit",
            "Exit",
            [f"{scope}/while/{cell}/add", f"{zs}/zeros", f"{zs}/zeros_1"],
        ),
    ]


@pytest.fixture
def lstm_records() -> list[NodeRecord]:
    return [
        make_node("input", "Placeholder", shape=[1, 10, 4]),
        *lstm_layer(),
        make_node("output", "Softmax", ["rnn/while/Exit"]),
    ]


@pytest.fixture
def make_lstm_layer():
    return lstm_layer
