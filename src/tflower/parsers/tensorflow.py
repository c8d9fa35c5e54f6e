from __future__ import annotations

from pathlib import Path
from typing import Any

from tflower.errors import ConversionError
from tflower.foreign.construct import construct_graph
from tflower.foreign.graph import ForeignGraph
from tflower.foreign.records import NodeRecord, TensorValue
from tflower.foreign.rnn import optimize_rnn
from tflower.ir.graph import Graph, GraphValidator
from tflower.lowering.lower import lower_graph
from tflower.lowering.registry import TranslatorRegistry
from tflower.lowering.translators import build_default_registry
from tflower.optimizer import Pipeline, build_default_pipeline
from tflower.parsers.base import Parser
from tflower.utils import ImportConfig, config as default_config, get_logger

logger = get_logger(__name__)

# tensorflow.DataType enum values
_DTYPE_MAP = {
    1: "float32",
    2: "float64",
    3: "int32",
    4: "uint8",
    5: "int16",
    6: "int8",
    9: "int64",
    10: "bool",
    17: "uint16",
    19: "float16",
    22: "uint32",
    23: "uint64",
}

_TEXT_SUFFIXES = {".pbtxt", ".txt", ".prototxt"}


def _dtype_name(dtype: int) -> str:
    return _DTYPE_MAP.get(int(dtype), f"DT_{int(dtype)}")


def _shape_dims(shape: Any) -> list[int] | None:
    if shape.unknown_rank:
        return None
    return [int(d.size) for d in shape.dim]


def _tensor_value(tensor: Any) -> TensorValue:
    shape = _shape_dims(tensor.tensor_shape) or []
    int_val = list(tensor.int_val) or list(tensor.int64_val) or [int(b) for b in tensor.bool_val]
    return TensorValue(
        dtype=_dtype_name(tensor.dtype),
        shape=shape,
        content=bytes(tensor.tensor_content),
        float_val=list(tensor.float_val) or list(tensor.double_val),
        int_val=int_val,
    )


def _list_value(value: Any) -> list[Any]:
    if value.i:
        return [int(x) for x in value.i]
    if value.f:
        return [float(x) for x in value.f]
    if value.s:
        return [s.decode("utf-8", errors="ignore") for s in value.s]
    if value.b:
        return [bool(x) for x in value.b]
    if value.type:
        return [_dtype_name(t) for t in value.type]
    if value.shape:
        return [_shape_dims(s) or [] for s in value.shape]
    if value.tensor:
        return [_tensor_value(t) for t in value.tensor]
    return []


def _attr_value(value: Any) -> Any:
    kind = value.WhichOneof("value")
    if kind == "s":
        return value.s.decode("utf-8", errors="ignore")
    if kind == "i":
        return int(value.i)
    if kind == "f":
        return float(value.f)
    if kind == "b":
        return bool(value.b)
    if kind == "type":
        return _dtype_name(value.type)
    if kind == "shape":
        return _shape_dims(value.shape)
    if kind == "tensor":
        return _tensor_value(value.tensor)
    if kind == "list":
        return _list_value(value.list)
    # func / placeholder attributes carry nothing the importer reads
    return None


def records_from_graph_def(graph_def: Any) -> list[NodeRecord]:
    """Decode every NodeDef of a GraphDef message into a NodeRecord."""
    records: list[NodeRecord] = []
    for node_def in graph_def.node:
        attrs: dict[str, Any] = {}
        for key, value in node_def.attr.items():
            decoded = _attr_value(value)
            if decoded is not None:
                attrs[key] = decoded
        records.append(
            NodeRecord(
                name=node_def.name,
                op=node_def.op,
                inputs=list(node_def.input),
                attrs=attrs,
            )
        )
    return records


def _graph_def_class() -> Any:
    try:
        from tensorflow.core.framework import graph_pb2
    except ImportError as error:
        raise ConversionError(
            "decoding a GraphDef needs tensorflow; install tflower[tensorflow]",
            code="EDEPENDENCY",
        ) from error
    return graph_pb2.GraphDef


def _parse_graph_def(data: bytes, *, text: bool, source: str) -> Any:
    graph_def = _graph_def_class()()
    from google.protobuf import text_format
    from google.protobuf.message import DecodeError

    try:
        if text:
            text_format.Parse(data.decode("utf-8"), graph_def)
        else:
            graph_def.ParseFromString(data)
    except (DecodeError, text_format.ParseError, UnicodeDecodeError) as error:
        logger.error("parse file: %s failed", source)
        raise ConversionError(f"cannot parse GraphDef from {source}: {error}", code="EPARSE") from error
    return graph_def


def load_records(model: Any, *, cfg: ImportConfig | None = None) -> list[NodeRecord]:
    """
    Accepts a path to a binary (``.pb``) or text (``.pbtxt``) GraphDef,
    serialized bytes, a GraphDef message, or NodeRecords.
    """
    cfg = cfg or default_config
    if isinstance(model, (list, tuple)):
        if not all(isinstance(r, NodeRecord) for r in model):
            raise TypeError("record lists must contain NodeRecord items")
        return list(model)
    if isinstance(model, (bytes, bytearray)):
        return records_from_graph_def(_parse_graph_def(bytes(model), text=False, source="<bytes>"))
    if isinstance(model, (str, Path)):
        path = Path(model)
        if not path.is_file():
            raise ConversionError(f"model file not found: {path}", code="ENOENT")
        size = path.stat().st_size
        if size > cfg.max_model_bytes:
            raise ConversionError(
                f"model file {path} is {size} bytes, limit is {cfg.max_model_bytes}",
                code="ETOOLARGE",
            )
        text = path.suffix.lower() in _TEXT_SUFFIXES
        return records_from_graph_def(
            _parse_graph_def(path.read_bytes(), text=text, source=str(path))
        )
    if hasattr(model, "node"):
        return records_from_graph_def(model)
    raise TypeError("Unsupported model type for TensorFlow parser")


class TFParser(Parser):
    """Parse a TensorFlow GraphDef into the target IR."""

    def __init__(
        self,
        *,
        pipeline: Pipeline | None = None,
        registry: TranslatorRegistry | None = None,
        cfg: ImportConfig | None = None,
    ) -> None:
        self.cfg = cfg or default_config
        self.pipeline = pipeline or build_default_pipeline(check_edges=self.cfg.check_edges)
        self.registry = registry or build_default_registry()

    def prepare(self, model: Any) -> ForeignGraph:
        """Build the foreign graph and run recurrent extraction and rewrites."""
        records = load_records(model, cfg=self.cfg)
        graph = construct_graph(records)
        cells = optimize_rnn(graph)
        graph.metadata["recurrent_cells"] = [c.name for c in cells]
        self.pipeline.run(graph)
        return graph

    def parse(self, model: Any, *, validate: bool = True, name: str | None = None) -> Graph:
        if name is None:
            name = Path(model).stem if isinstance(model, (str, Path)) else ""
        graph = self.prepare(model)

        if self.cfg.debug_graph:
            logger.info("foreign graph before lowering:\n%s", graph.dump())

        target = lower_graph(graph, self.registry, name=name)
        target.metadata.update(
            source="tensorflow",
            foreign_nodes=len(graph),
            recurrent_cells=list(graph.metadata["recurrent_cells"]),
        )
        if validate:
            GraphValidator(target).validate()
        return target
