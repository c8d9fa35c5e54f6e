from __future__ import annotations

import json
from pathlib import Path

import typer

from tflower.errors import ConversionError
from tflower.flows.pipeline import import_model_flow
from tflower.foreign.construct import construct_graph
from tflower.ir import ValidationError, summarize
from tflower.parsers.tensorflow import TFParser, load_records

app = typer.Typer(help="tflower: TensorFlow GraphDef importer")


def _fail(error: Exception) -> None:
    code = getattr(error, "code", "ERROR")
    typer.echo(f"error [{code}]: {error}", err=True)
    raise typer.Exit(code=1)


@app.command()
def convert(
    path: Path = typer.Argument(..., help="GraphDef file (.pb or .pbtxt)"),
    output_dir: Path = typer.Option(Path("./outputs"), help="Directory to write the summary"),
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Validate the lowered graph"),
) -> None:
    """
    Import a GraphDef and write a JSON summary of the lowered graph.
    """
    try:
        graph = TFParser().parse(path, validate=validate)
    except (ConversionError, ValidationError) as error:
        _fail(error)
        return
    output_dir.mkdir(parents=True, exist_ok=True)
    result_file = output_dir / f"{path.stem}.json"
    result_file.write_text(json.dumps(summarize(graph), indent=2, sort_keys=True))
    typer.echo(f"Converted {len(graph.nodes)} nodes; summary written to: {result_file}")


@app.command()
def dump(
    path: Path = typer.Argument(..., help="GraphDef file (.pb or .pbtxt)"),
    raw: bool = typer.Option(False, "--raw", help="Dump before recurrent extraction and rewrites"),
) -> None:
    """
    Print the foreign node table.
    """
    try:
        if raw:
            graph = construct_graph(load_records(path))
        else:
            graph = TFParser().prepare(path)
    except ConversionError as error:
        _fail(error)
        return
    typer.echo(graph.dump())


@app.command()
def run(s3_uri: str = typer.Argument(..., help="S3 URI to model, e.g. s3://bucket/key"),
        output_dir: str = typer.Option("./outputs", help="Directory to write results")) -> None:
    """
    Run the Prefect flow to import a model from S3.
    """
    result_path = import_model_flow(s3_uri=s3_uri, output_dir=output_dir)
    typer.echo(f"Results written to: {result_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
