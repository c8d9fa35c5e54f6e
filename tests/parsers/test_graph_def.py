from __future__ import annotations

import numpy as np
import pytest

tf = pytest.importorskip("tensorflow")

from google.protobuf import text_format  # noqa: E402
from tensorflow.core.framework import graph_pb2  # noqa: E402

from tflower.errors import ConversionError  # noqa: E402
from tflower.parsers.tensorflow import TFParser, load_records  # noqa: E402

DT_FLOAT = 1


def _graph_def() -> graph_pb2.GraphDef:
    graph_def = graph_pb2.GraphDef()

    x = graph_def.node.add(name="x", op="Placeholder")
    x.attr["dtype"].type = DT_FLOAT
    for size in (1, 4, 4, 2):
        x.attr["shape"].shape.dim.add(size=size)

    weight = np.arange(6, dtype=np.float32).reshape(1, 1, 2, 3)
    w = graph_def.node.add(name="w", op="Const")
    w.attr["dtype"].type = DT_FLOAT
    w.attr["value"].tensor.CopyFrom(tf.make_tensor_proto(weight))

    conv = graph_def.node.add(name="conv", op="Conv2D", input=["x", "w"])
    conv.attr["T"].type = DT_FLOAT
    conv.attr["strides"].list.i.extend([1, 1, 1, 1])
    conv.attr["padding"].s = b"VALID"

    graph_def.node.add(name="relu", op="Relu", input=["conv:0"])
    return graph_def


def test_records_from_serialized_graph_def() -> None:
    records = load_records(_graph_def().SerializeToString())
    by_name = {r.name: r for r in records}

    assert [r.name for r in records] == ["x", "w", "conv", "relu"]
    assert by_name["x"].attrs["shape"] == [1, 4, 4, 2]
    assert by_name["conv"].attrs["strides"] == [1, 1, 1, 1]
    assert by_name["conv"].attrs["padding"] == "VALID"
    assert by_name["relu"].inputs == ["conv:0"]
    assert by_name["w"].attrs["value"].shape == [1, 1, 2, 3]


def test_parse_binary_file(tmp_path) -> None:
    path = tmp_path / "net.pb"
    path.write_bytes(_graph_def().SerializeToString())

    target = TFParser().parse(path)
    assert target.name == "net"
    assert target.get_tensor("x").shape == [1, 2, 4, 4]
    w = target.get_tensor("w")
    assert w.shape == [3, 2, 1, 1]
    expected = np.arange(6, dtype=np.float32).reshape(1, 1, 2, 3).transpose(3, 2, 0, 1)
    np.testing.assert_array_equal(w.data, expected)
    assert target.outputs == ["relu"]


def test_parse_text_file(tmp_path) -> None:
    path = tmp_path / "net.pbtxt"
    path.write_text(text_format.MessageToString(_graph_def()))

    target = TFParser().parse(path)
    assert target.get_node("conv").op.params.pad_h == 0
    assert target.get_node("relu").inputs == ["conv"]


def test_unparsable_text_file(tmp_path) -> None:
    path = tmp_path / "broken.pbtxt"
    path.write_text("node { name: ")
    with pytest.raises(ConversionError) as exc:
        load_records(path)
    assert exc.value.code == "EPARSE"


def test_graph_def_message_is_accepted() -> None:
    records = load_records(_graph_def())
    assert len(records) == 4
