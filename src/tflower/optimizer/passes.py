from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from tflower.errors import PatternMismatchError
from tflower.foreign.graph import ForeignGraph, ForeignNode
from tflower.utils import config, get_logger

logger = get_logger(__name__)


class Pass(ABC):
    """
    Base class for foreign-graph rewrite passes.

    ``match`` is a generator: the pipeline applies each candidate before the
    next one is produced, so matching always sees the effects of earlier
    rewrites in the same sweep.
    """

    name: str = ""
    first_match_only: bool = False

    @abstractmethod
    def match(self, graph: ForeignGraph) -> Iterable[ForeignNode]:
        raise NotImplementedError

    @abstractmethod
    def apply(self, graph: ForeignGraph, candidate: ForeignNode) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def scan(graph: ForeignGraph, *ops: str) -> Iterable[ForeignNode]:
    """Yield live nodes with one of ``ops`` in sequence order."""
    for node in graph.nodes:
        if node.dead:
            continue
        if not ops or node.op in ops:
            yield node


class Pipeline:
    """An ordered sequence of passes, each run as one sweep."""

    def __init__(self, passes: list[Pass], *, check_edges: bool | None = None) -> None:
        self._passes = passes
        self.check_edges = config.check_edges if check_edges is None else check_edges

    @property
    def passes(self) -> list[Pass]:
        return list(self._passes)

    def run(self, graph: ForeignGraph) -> ForeignGraph:
        for p in self._passes:
            applied = 0
            for candidate in p.match(graph):
                p.apply(graph, candidate)
                applied += 1
                if p.first_match_only:
                    break
            removed = graph.compact()
            logger.debug(
                "%s: %d rewrite(s), %d node(s) removed",
                p.name or type(p).__name__,
                applied,
                removed,
            )
            if self.check_edges:
                problems = graph.check_symmetry()
                if problems:
                    logger.error("edge asymmetry after %s: %s", p, problems[0])
                    raise PatternMismatchError(
                        f"edge asymmetry after {p.name or type(p).__name__}: "
                        + "; ".join(problems)
                    )
        logger.info("optimized foreign graph: %d nodes", len(graph))
        return graph
