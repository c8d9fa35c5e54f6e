"""Foreign-graph rewrite passes and the default pipeline."""

from .fusion import BiasAddFusionPass, ComposedBNPass, PadMeanPass, ReluMinimumPass
from .passes import Pass, Pipeline
from .passes_impl import (
    ArgMaxRemovalPass,
    ClassificationHeadPass,
    ConcatAxisPass,
    DanglingSourcePrunePass,
    ExpandDimsPass,
    InputReshapePass,
    IsolatedNodePrunePass,
    QueueDequeuePass,
    ResizeHelperPass,
    ShapeSlicePass,
    SqueezeIdentityPass,
    TrailingSqueezePass,
)


def build_default_pipeline(*, check_edges: bool | None = None) -> Pipeline:
    passes: list[Pass] = [
        ClassificationHeadPass(),
        SqueezeIdentityPass(),
        ConcatAxisPass(),
        QueueDequeuePass(),
        ExpandDimsPass(),
        BiasAddFusionPass(),
        ComposedBNPass(),
        ResizeHelperPass(),
        ReluMinimumPass(),
        InputReshapePass(),
        ShapeSlicePass(),
        PadMeanPass(),
        # terminal trims
        ArgMaxRemovalPass(),
        TrailingSqueezePass(),
        IsolatedNodePrunePass(),
        DanglingSourcePrunePass(),
    ]
    return Pipeline(passes, check_edges=check_edges)


__all__ = [
    "ArgMaxRemovalPass",
    "BiasAddFusionPass",
    "ClassificationHeadPass",
    "ComposedBNPass",
    "ConcatAxisPass",
    "DanglingSourcePrunePass",
    "ExpandDimsPass",
    "InputReshapePass",
    "IsolatedNodePrunePass",
    "PadMeanPass",
    "Pass",
    "Pipeline",
    "QueueDequeuePass",
    "ReluMinimumPass",
    "ResizeHelperPass",
    "ShapeSlicePass",
    "SqueezeIdentityPass",
    "TrailingSqueezePass",
    "build_default_pipeline",
]
