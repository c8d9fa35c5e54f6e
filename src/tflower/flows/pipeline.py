from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, cast

import boto3
from prefect import flow, get_run_logger, task

from tflower.ir import Graph, summarize
from tflower.parsers.tensorflow import TFParser


@task
def download_from_s3(s3_uri: str) -> Path:
    """
    Download a model from S3 to a temporary file. s3_uri like s3://bucket/key
    Requires AWS credentials in environment.
    """
    logger = get_run_logger()
    if not s3_uri.startswith("s3://"):
        raise ValueError("s3_uri must start with s3://")
    _, rest = s3_uri.split("s3://", 1)
    bucket, key = rest.split("/", 1)
    s3 = boto3.client("s3")
    # keep the suffix: it selects binary or text decoding
    suffix = Path(key).suffix or ".pb"
    tmp = Path(tempfile.mkstemp(prefix="tflower_model_", suffix=suffix)[1])
    s3.download_file(bucket, key, str(tmp))
    logger.info(f"Downloaded {s3_uri} to {tmp}")
    return tmp


@task
def parse_model(local_path: Path) -> Graph:
    logger = get_run_logger()
    logger.info(f"Parsing model at {local_path}")
    graph = TFParser().parse(local_path, name=local_path.stem)
    logger.info(f"Lowered {len(graph.nodes)} nodes, outputs: {graph.outputs}")
    return graph


@task
def export_results(output_dir: str, results: dict[str, Any]) -> str:
    out_path = Path(output_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    result_file = out_path / "results.json"
    result_file.write_text(json.dumps(results, indent=2, sort_keys=True))
    return str(result_file)


@flow(name="tflower-import")
def import_model_flow(s3_uri: str, output_dir: str) -> str:
    """
    Orchestrates the import:
    S3 → parse + rewrite + lower → export summary
    """
    path = download_from_s3(s3_uri)
    graph = parse_model(path)
    out = export_results(output_dir, {"source": s3_uri, "graph": summarize(graph)})
    return cast(str, out)
