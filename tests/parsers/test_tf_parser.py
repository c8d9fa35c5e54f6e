from __future__ import annotations

import numpy as np
import pytest

from tflower.errors import ConversionError, ResolutionError
from tflower.foreign import make_const, make_node
from tflower.ir import GraphValidator
from tflower.parsers.tensorflow import TFParser, load_records
from tflower.utils import ImportConfig


def classifier_records() -> list:
    return [
        make_node("input", "Placeholder", shape=[1, 8, 8, 1]),
        make_const("w", np.ones((3, 3, 1, 4), dtype=np.float32)),
        make_node("conv", "Conv2D", ["input", "w"], strides=[1, 1, 1, 1], padding="SAME"),
        make_const("b", np.zeros(4, dtype=np.float32)),
        make_node("bias", "BiasAdd", ["conv", "b"]),
        make_node("relu", "Relu", ["bias"]),
        make_const("axes", np.array([1, 2], dtype=np.int32)),
        make_node("pool", "Mean", ["relu", "axes"]),
        make_node("id", "Identity", ["pool"]),
        make_node("prob", "Softmax", ["id"]),
        make_node("top", "ArgMax", ["prob"]),
    ]


def test_parse_records_end_to_end() -> None:
    parser = TFParser(cfg=ImportConfig(check_edges=True))
    target = parser.parse(classifier_records(), name="classifier")

    assert target.name == "classifier"
    assert [n.name for n in target.nodes if n.op_type != "Const"] == [
        "input",
        "conv",
        "relu",
        "pool",
        "prob",
    ]
    assert target.inputs == ["input"]
    assert target.outputs == ["prob"]
    assert target.get_node("prob").inputs == ["pool"]
    assert target.metadata["source"] == "tensorflow"
    assert target.metadata["recurrent_cells"] == []


def test_prepare_returns_rewritten_foreign_graph() -> None:
    graph = TFParser(cfg=ImportConfig(check_edges=True)).prepare(classifier_records())
    assert [n.name for n in graph] == ["input", "w", "conv", "b", "relu", "pool", "prob"]


def test_parse_lstm_records(lstm_records) -> None:
    target = TFParser().parse(lstm_records)
    assert target.metadata["recurrent_cells"] == ["rnn/lstm"]
    assert target.get_node("rnn/lstm").op_type == "LSTM"
    GraphValidator(target).validate()


def test_unknown_reference_fails() -> None:
    records = [make_node("x", "Placeholder"), make_node("relu", "Relu", ["x:0", "^missing"])]
    with pytest.raises(ResolutionError) as exc:
        TFParser().parse(records)
    assert exc.value.reference == "^missing"
    assert exc.value.node_name == "relu"


def test_load_records_rejects_unknown_inputs(tmp_path) -> None:
    with pytest.raises(TypeError):
        load_records(42)
    with pytest.raises(TypeError):
        load_records(["not a record"])
    with pytest.raises(ConversionError) as exc:
        load_records(tmp_path / "missing.pb")
    assert exc.value.code == "ENOENT"


def test_load_records_enforces_size_limit(tmp_path) -> None:
    path = tmp_path / "model.pb"
    path.write_bytes(b"\x00" * 64)
    with pytest.raises(ConversionError) as exc:
        load_records(path, cfg=ImportConfig(max_model_bytes=16))
    assert exc.value.code == "ETOOLARGE"


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("TFLOWER_CHECK_EDGES", "yes")
    monkeypatch.setenv("TFLOWER_MAX_MODEL_BYTES", "1024")
    monkeypatch.setenv("TFLOWER_LOG_LEVEL", "debug")
    cfg = ImportConfig.from_env()
    assert cfg.check_edges is True
    assert cfg.debug_graph is False
    assert cfg.max_model_bytes == 1024
    assert cfg.log_level == "DEBUG"
