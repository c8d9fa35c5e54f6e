"""
Per-op translators. Each one wires the input tensors of an already created
target node and attaches the operator with its parameters.
"""

from __future__ import annotations

import numpy as np

from tflower.errors import AttributeDecodeError, PatternMismatchError
from tflower.foreign.graph import ForeignNode
from tflower.foreign.records import (
    NodeRecord,
    decode_tensor,
    get_bool,
    get_float,
    get_ints,
    get_shapes,
    get_string,
    get_tensor,
)
from tflower.ir.graph import Tensor
from tflower.ir.params import (
    BatchNormParam,
    ConcatParam,
    ConvParam,
    EltType,
    EltwiseParam,
    FCParam,
    GemmParam,
    GenericParam,
    LSTMParam,
    PoolAlg,
    PoolParam,
    ReluParam,
    ReshapeParam,
    ResizeParam,
    SoftmaxParam,
)
from tflower.lowering.materialize import LoweringContext, create_preset_const
from tflower.lowering.registry import TranslatorRegistry

GENERIC_OPS = ("DecodeWav", "AudioSpectrogram", "Mfcc")

_NHWC_AXIS_TO_NCHW = [0, 2, 3, 1]

_ELTWISE = {
    "Add": (EltType.SUM, 2),
    "AddN": (EltType.SUM, 2),
    "Mul": (EltType.PROD, 2),
    "Sub": (EltType.SUB, 2),
    "Minimum": (EltType.MIN_SCALAR, 2),
    "Rsqrt": (EltType.RSQRT, 1),
}


def _input(node: ForeignNode, pos: int) -> ForeignNode:
    if len(node.inputs) <= pos:
        raise PatternMismatchError(
            f"{node.op} node '{node.name}' expects at least {pos + 1} input(s)",
            node_name=node.name,
        )
    return node.inputs[pos]


def _connect(ctx: LoweringContext, node: ForeignNode, *inputs: ForeignNode) -> None:
    for input_node in inputs:
        ctx.builder.add_node_input_tensor(node.target_node, ctx.tensor(input_node))


def _set_op(ctx: LoweringContext, node: ForeignNode, op_type: str, params=None) -> None:
    op = ctx.builder.create_operator(op_type)
    if params is not None:
        ctx.builder.set_operator_params(op, params)
    ctx.builder.set_node_op(node.target_node, op)


def _const_values(record: NodeRecord, node_name: str) -> np.ndarray:
    return decode_tensor(get_tensor(record), node_name=node_name).reshape(-1)


def _captured_record(node: ForeignNode) -> NodeRecord:
    if len(node.defs) < 2:
        raise AttributeDecodeError(
            f"{node.op} node '{node.name}' has no captured operand record",
            node_name=node.name,
        )
    return node.defs[-1]


def _padding(record: NodeRecord) -> int | None:
    padding = get_string(record, "padding", None)
    if padding == "VALID":
        return 0
    if padding == "SAME":
        return -1
    return None


def translate_conv(node: ForeignNode, ctx: LoweringContext) -> None:
    data, weight = _input(node, 0), _input(node, 1)
    _connect(ctx, node, data, weight)
    if len(node.inputs) > 2:
        _connect(ctx, node, node.inputs[2])

    record = node.defs[0]
    param = ConvParam()
    dilations = get_ints(record, "dilations", None)
    if dilations:
        param.dilation_h, param.dilation_w = dilations[1], dilations[2]
    pad = _padding(record)
    if pad is not None:
        param.pad_h = param.pad_w = pad
    strides = get_ints(record, "strides", None)
    if strides:
        param.stride_h, param.stride_w = strides[1], strides[2]

    # TensorFlow keeps kernel geometry only on the weights: [h, w, in, out]
    shape = get_tensor(weight.defs[0]).shape
    if len(shape) == 4:
        kernel_h, kernel_w, in_channel, out_channel = shape
    elif len(shape) == 3:
        kernel_h = 1
        kernel_w, in_channel, out_channel = shape
    else:
        raise AttributeDecodeError(
            f"weight '{weight.name}' of '{node.name}' has rank {len(shape)}",
            node_name=node.name,
        )
    raw_shape = (kernel_h, kernel_w, in_channel, out_channel)

    group = 1
    if node.op == "DepthwiseConv2dNative":
        group = in_channel
        out_channel = in_channel * out_channel
        in_channel = 1

    param.kernel_h = kernel_h
    param.kernel_w = kernel_w
    param.output_channel = out_channel
    param.group = group

    builder = ctx.builder
    weight_tensor: Tensor = ctx.tensor(weight)
    dims = [out_channel, in_channel, kernel_h, kernel_w]
    if not weight_tensor.metadata.get("oihw"):
        src = builder.get_const_buffer(weight_tensor)
        if src is None:
            raise PatternMismatchError(
                f"weight '{weight.name}' of '{node.name}' is not constant",
                node_name=node.name,
            )
        oihw = np.ascontiguousarray(src.reshape(raw_shape).transpose(3, 2, 0, 1))
        builder.set_const_buffer(weight_tensor, oihw.reshape(dims))
        weight_tensor.metadata["oihw"] = True
    builder.set_tensor_dims(weight_tensor, dims)
    builder.set_tensor_layout(weight_tensor, "NCHW")

    # a fused Pad leaves its paddings record last: [[0,0],[t,b],[l,r],[0,0]]
    if len(node.defs) > 1:
        last = node.defs[-1]
        value = get_tensor(last, "value", None) if last.op == "Const" else None
        if value is not None and value.shape == [4, 2]:
            pads = [int(v) for v in decode_tensor(value, node_name=node.name).reshape(-1)]
            param.pads = [pads[2], pads[4], pads[3], pads[5]]

    _set_op(ctx, node, "Convolution", param)


def translate_pool(node: ForeignNode, ctx: LoweringContext) -> None:
    _connect(ctx, node, _input(node, 0))

    record = node.defs[0]
    param = PoolParam()
    ksize = get_ints(record, "ksize", None)
    if ksize:
        param.kernel_h, param.kernel_w = ksize[1], ksize[2]
    strides = get_ints(record, "strides", None)
    if strides:
        param.stride_h, param.stride_w = strides[1], strides[2]
    pad = _padding(record)
    if pad is not None:
        param.pad_h = param.pad_w = pad
    param.alg = PoolAlg.AVG if node.op == "AvgPool" else PoolAlg.MAX

    param.kernel_shape = [param.kernel_h, param.kernel_w]
    param.pads = [param.pad_h, param.pad_w, param.pad_h, param.pad_w]
    param.strides = [param.stride_h, param.stride_w]

    _set_op(ctx, node, "Pooling", param)


def translate_batch_norm(node: ForeignNode, ctx: LoweringContext) -> None:
    if len(node.inputs) < 5:
        raise PatternMismatchError(
            f"FusedBatchNorm '{node.name}' needs 5 inputs, has {len(node.inputs)}",
            node_name=node.name,
        )
    # x, gamma, beta, mean, var
    _connect(ctx, node, *node.inputs[:5])
    param = BatchNormParam()
    param.eps = get_float(node.defs[0], "epsilon", param.eps)
    _set_op(ctx, node, "BatchNormalization", param)


def translate_composed_bn(node: ForeignNode, ctx: LoweringContext) -> None:
    expected = 6 if node.bn_variant == 1 else 5
    if len(node.inputs) != expected:
        raise PatternMismatchError(
            f"ComposedBN '{node.name}' has {len(node.inputs)} inputs, expected {expected}",
            node_name=node.name,
        )
    inputs = iter(node.inputs)
    x = next(inputs)
    _connect(ctx, node, x)
    if node.bn_variant == 1:
        _connect(ctx, node, next(inputs))
    else:
        var_dims = ctx.builder.get_tensor_dims(ctx.tensor(node.inputs[1]))
        gamma = create_preset_const(
            ctx.builder, node.name.replace("/bn.fused", "/gamma", 1), var_dims, 1.0
        )
        ctx.builder.add_node_input_tensor(node.target_node, gamma)

    var, add_y, beta, mean = inputs
    _connect(ctx, node, beta, mean, var)

    # add/y is the epsilon
    param = BatchNormParam(eps=float(_const_values(add_y.defs[0], add_y.name)[0]))
    _set_op(ctx, node, "BatchNormalization", param)


def translate_softmax(node: ForeignNode, ctx: LoweringContext) -> None:
    _connect(ctx, node, _input(node, 0))
    _set_op(ctx, node, "Softmax", SoftmaxParam())
    ctx.builder.add_graph_output_node(node.target_node)


def translate_relu(node: ForeignNode, ctx: LoweringContext) -> None:
    _connect(ctx, node, _input(node, 0))
    _set_op(ctx, node, "ReLu", ReluParam(negative_slope=0.0))


def translate_relu6(node: ForeignNode, ctx: LoweringContext) -> None:
    _connect(ctx, node, _input(node, 0))
    _set_op(ctx, node, "ReLu6")


def translate_resize(node: ForeignNode, ctx: LoweringContext) -> None:
    _connect(ctx, node, _input(node, 0))
    _set_op(ctx, node, "Resize", ResizeParam(scale_h=2.0, scale_w=2.0, type=0))


def translate_concat(node: ForeignNode, ctx: LoweringContext) -> None:
    _connect(ctx, node, *node.inputs)

    axis = int(_const_values(_captured_record(node), node.name)[0])
    if axis < 0:
        axis += len(_NHWC_AXIS_TO_NCHW)
    if not 0 <= axis < len(_NHWC_AXIS_TO_NCHW):
        raise AttributeDecodeError(
            f"concat axis {axis} of '{node.name}' out of range", node_name=node.name
        )
    _set_op(ctx, node, "Concat", ConcatParam(axis=_NHWC_AXIS_TO_NCHW[axis]))


def translate_eltwise(node: ForeignNode, ctx: LoweringContext) -> None:
    if node.op not in _ELTWISE:
        raise PatternMismatchError(
            f"unsupported eltwise op {node.op}", node_name=node.name
        )
    elt_type, arity = _ELTWISE[node.op]
    if len(node.inputs) != arity:
        raise PatternMismatchError(
            f"{node.op} '{node.name}' needs {arity} input(s), has {len(node.inputs)}",
            node_name=node.name,
        )
    _connect(ctx, node, *node.inputs)
    _set_op(ctx, node, "Eltwise", EltwiseParam(type=elt_type))


def translate_mean(node: ForeignNode, ctx: LoweringContext) -> None:
    axes = [int(a) for a in _const_values(_captured_record(node), node.name)]
    if axes != [1, 2]:
        raise AttributeDecodeError(
            f"Mean '{node.name}' over axes {axes} is not a global pooling",
            node_name=node.name,
        )
    _connect(ctx, node, _input(node, 0))
    _set_op(ctx, node, "Pooling", PoolParam(alg=PoolAlg.AVG, global_pool=True))


def translate_fifo_queue(node: ForeignNode, ctx: LoweringContext) -> None:
    shapes = get_shapes(node.defs[0], "shapes", [])
    if shapes:
        ctx.builder.set_tensor_dims(node.target_tensor, shapes[0])
    _set_op(ctx, node, "InputOp")
    ctx.builder.add_graph_input_node(node.target_node)


def translate_reshape(node: ForeignNode, ctx: LoweringContext) -> None:
    data, shape = _input(node, 0), _input(node, 1)
    _connect(ctx, node, data, shape)

    target = ctx.builder.get_const_buffer(ctx.tensor(shape))
    if target is None:
        raise PatternMismatchError(
            f"shape operand of Reshape '{node.name}' is not constant",
            node_name=node.name,
        )
    dims = [int(d) for d in target.reshape(-1)]
    if len(dims) == 4:
        dims = [dims[0], dims[3], dims[1], dims[2]]
    elif len(dims) not in (2, 3):
        raise AttributeDecodeError(
            f"Reshape '{node.name}' to rank {len(dims)} is not supported",
            node_name=node.name,
        )
    ctx.builder.set_tensor_dims(node.target_tensor, dims)
    _set_op(ctx, node, "Reshape", ReshapeParam(dims=dims))


def translate_matmul(node: ForeignNode, ctx: LoweringContext) -> None:
    data, weight = _input(node, 0), _input(node, 1)
    if data.op == "Const":
        data, weight = weight, data
    _connect(ctx, node, data, weight)

    record = node.defs[0]
    param = GemmParam(
        trans_a=get_bool(record, "transpose_a", False),
        trans_b=get_bool(record, "transpose_b", False),
    )

    builder = ctx.builder
    weight_tensor = ctx.tensor(weight)
    builder.set_tensor_layout(weight_tensor, "HW")
    if len(node.inputs) > 2:
        bias = node.inputs[2]
        _connect(ctx, node, bias)
        builder.set_tensor_layout(ctx.tensor(bias), "W")

    if param.trans_a:
        _set_op(ctx, node, "Gemm", param)
        return

    if not param.trans_b:
        data_buf = builder.get_const_buffer(weight_tensor)
        if data_buf is None:
            raise PatternMismatchError(
                f"weight '{weight.name}' of '{node.name}' is not constant",
                node_name=node.name,
            )
        k, n = builder.get_tensor_dims(weight_tensor)
        builder.set_const_buffer(
            weight_tensor, np.ascontiguousarray(data_buf.reshape(k, n).T)
        )
        builder.set_tensor_dims(weight_tensor, [n, k])

    num_output = builder.get_tensor_dims(weight_tensor)[0]
    _set_op(ctx, node, "FullyConnected", FCParam(num_output=num_output))


def translate_generic(node: ForeignNode, ctx: LoweringContext) -> None:
    param = GenericParam(
        op_name=node.op,
        max_input_num=len(node.inputs),
        max_output_num=len(node.outputs),
    )
    _set_op(ctx, node, "Generic", param)
    _connect(ctx, node, *node.inputs)


def _init_state(
    ctx: LoweringContext, node: ForeignNode, init_node: ForeignNode, suffix: str
) -> Tensor:
    if init_node.op == "Const":
        data = decode_tensor(get_tensor(init_node.defs[0]), node_name=init_node.name)
        dims = list(data.shape)
        fill_value = float(data.reshape(-1)[0]) if data.size else 0.0
    else:
        # Fill(dims=concat(batch, units), value)
        if len(init_node.inputs) < 2:
            raise PatternMismatchError(
                f"initial state '{init_node.name}' has {len(init_node.inputs)} input(s)",
                node_name=node.name,
            )
        value_node, concat = init_node.inputs[0], init_node.inputs[1]
        if value_node.op != "Const":
            value_node, concat = concat, value_node
        fill_value = float(_const_values(value_node.defs[0], value_node.name)[0])
        if len(concat.inputs) < 2 or any(n.op != "Const" for n in concat.inputs[:2]):
            raise PatternMismatchError(
                f"initial state '{init_node.name}' has no constant dims",
                node_name=node.name,
            )
        dims = [int(_const_values(n.defs[0], n.name)[0]) for n in concat.inputs[:2]]

    return create_preset_const(ctx.builder, f"{node.name}/{suffix}", dims, fill_value)


def translate_lstm(node: ForeignNode, ctx: LoweringContext) -> None:
    cell = node.cell
    if cell is None or cell.kernel is None:
        raise PatternMismatchError(
            f"LSTM '{node.name}' has no kernel", node_name=node.name
        )
    slots = [
        cell.kernel,
        cell.bias,
        cell.w_f_diag,
        cell.w_i_diag,
        cell.w_o_diag,
        cell.projection,
    ]
    slot_ids = {id(n) for n in slots if n is not None}
    data = next((n for n in node.inputs if id(n) not in slot_ids), None)
    if data is None:
        raise PatternMismatchError(
            f"LSTM '{node.name}' has no data input", node_name=node.name
        )

    builder = ctx.builder
    param = LSTMParam()
    _connect(ctx, node, data, cell.kernel)

    if cell.bias is not None:
        param.has_bias = True
        _connect(ctx, node, cell.bias)
    if cell.w_f_diag is not None:
        param.has_peephole = True
        _connect(ctx, node, cell.w_f_diag)
    if cell.w_i_diag is not None:
        _connect(ctx, node, cell.w_i_diag)
    if cell.w_o_diag is not None:
        _connect(ctx, node, cell.w_o_diag)
    if cell.projection is not None:
        param.has_projection = True
        _connect(ctx, node, cell.projection)

    if cell.init_h is not None:
        param.has_init_state = True
        if cell.init_c is not None:
            init_c = _init_state(ctx, node, cell.init_c, "init_c")
            builder.add_node_input_tensor(node.target_node, init_c)
        init_h = _init_state(ctx, node, cell.init_h, "init_h")
        builder.add_node_input_tensor(node.target_node, init_h)

    if cell.forget_bias is not None:
        values = _const_values(cell.forget_bias.defs[0], cell.forget_bias.name)
        param.forget_bias = float(values[0])
    else:
        # TensorFlow's default
        param.forget_bias = 1.0

    kernel_dims = builder.get_tensor_dims(ctx.tensor(cell.kernel))
    param.cell_size = kernel_dims[1] // 4
    if cell.projection is not None:
        param.hidden_size = builder.get_tensor_dims(ctx.tensor(cell.projection))[1]
    else:
        param.hidden_size = param.cell_size
    param.input_size = kernel_dims[0] - param.hidden_size

    _set_op(ctx, node, "LSTM", param)


def build_default_registry() -> TranslatorRegistry:
    registry = TranslatorRegistry()
    registry.register("AvgPool", translate_pool)
    registry.register("MaxPool", translate_pool)
    registry.register("Conv2D", translate_conv)
    registry.register("DepthwiseConv2dNative", translate_conv)
    registry.register("FusedBatchNorm", translate_batch_norm)
    registry.register("Relu6", translate_relu6)
    registry.register("Relu", translate_relu)
    registry.register("Softmax", translate_softmax)
    registry.register("ConcatV2", translate_concat)
    for op_type in _ELTWISE:
        registry.register(op_type, translate_eltwise)
    registry.register("ResizeNearestNeighbor", translate_resize)
    registry.register("ComposedBN", translate_composed_bn)
    registry.register("Reshape", translate_reshape)
    registry.register("MatMul", translate_matmul)
    registry.register("FIFOQueueV2", translate_fifo_queue)
    registry.register("Mean", translate_mean)
    registry.register("LSTM", translate_lstm)
    registry.register_generic(GENERIC_OPS, translate_generic)
    return registry
