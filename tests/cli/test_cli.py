from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from tflower.cli import main as cli
from tflower.foreign import make_node
from tflower.parsers import tensorflow as tf_parser

runner = CliRunner()


def _records():
    return [
        make_node("x", "Placeholder", shape=[1, 4, 4, 1]),
        make_node("id", "Identity", ["x"]),
        make_node("relu", "Relu", ["id"]),
        make_node("sm", "Softmax", ["relu"]),
    ]


@pytest.fixture
def fake_model(tmp_path, monkeypatch):
    path = tmp_path / "model.pb"
    path.write_bytes(b"")
    monkeypatch.setattr(tf_parser, "load_records", lambda model, cfg=None: _records())
    monkeypatch.setattr(cli, "load_records", lambda model, cfg=None: _records())
    return path


def test_convert_writes_summary(fake_model, tmp_path) -> None:
    out_dir = tmp_path / "out"
    result = runner.invoke(cli.app, ["convert", str(fake_model), "--output-dir", str(out_dir)])

    assert result.exit_code == 0, result.output
    summary = json.loads((out_dir / "model.json").read_text())
    assert summary["name"] == "model"
    assert summary["nodes"] == 3
    assert summary["op_types"] == {"InputOp": 1, "ReLu": 1, "Softmax": 1}
    assert summary["inputs"] == ["x"]
    assert summary["outputs"] == ["sm"]


def test_dump_raw_keeps_identity(fake_model) -> None:
    result = runner.invoke(cli.app, ["dump", str(fake_model), "--raw"])
    assert result.exit_code == 0, result.output
    assert "total node number: 4" in result.output
    assert "id OP: Identity" in result.output


def test_dump_after_rewrites(fake_model) -> None:
    result = runner.invoke(cli.app, ["dump", str(fake_model)])
    assert result.exit_code == 0, result.output
    assert "total node number: 3" in result.output
    assert "Identity" not in result.output


def test_convert_reports_error_code(tmp_path) -> None:
    result = runner.invoke(cli.app, ["convert", str(tmp_path / "missing.pb")])
    assert result.exit_code == 1
    assert "ENOENT" in result.output
