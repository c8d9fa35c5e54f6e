from __future__ import annotations

import json

import pytest

from tflower.flows.pipeline import download_from_s3, export_results


def test_export_results_writes_json(tmp_path) -> None:
    out = export_results.fn(str(tmp_path / "out"), {"source": "s3://b/k.pb", "graph": {"nodes": 3}})
    data = json.loads((tmp_path / "out" / "results.json").read_text())
    assert out.endswith("results.json")
    assert data["graph"]["nodes"] == 3


def test_download_rejects_non_s3_uri(monkeypatch) -> None:
    monkeypatch.setattr("tflower.flows.pipeline.get_run_logger", lambda: None)
    with pytest.raises(ValueError):
        download_from_s3.fn("https://example.com/model.pb")
