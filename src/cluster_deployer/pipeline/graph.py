"""Step transition table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .models import TransitionEdge
from .step import Step


class GraphError(ValueError):
    """Raised for malformed pipeline graphs (unknown keys, cycles)."""

    pass


@dataclass
class PipelineNode:
    step: Step
    edge: TransitionEdge


class PipelineGraph:
    """Steps keyed by stable names plus their success/failure edges.

    Build it with :meth:`add`, then :meth:`validate` before running; the
    executor validates again on every run.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, PipelineNode] = {}

    def add(
        self,
        step: Step,
        *,
        on_success: Optional[str] = None,
        on_failure: Optional[str] = None,
        key: Optional[str] = None,
    ) -> "PipelineGraph":
        node_key = key or step.key
        if not node_key:
            raise GraphError(f"Step {step!r} has no key")
        if node_key in self._nodes:
            raise GraphError(f"Duplicate step key '{node_key}'")
        edge = TransitionEdge(step=node_key, on_success=on_success, on_failure=on_failure)
        self._nodes[node_key] = PipelineNode(step=step, edge=edge)
        return self

    def __contains__(self, key: str) -> bool:
        return key in self._nodes

    def __getitem__(self, key: str) -> PipelineNode:
        try:
            return self._nodes[key]
        except KeyError:
            raise GraphError(f"Unknown step key '{key}'") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def edges(self) -> List[TransitionEdge]:
        return [node.edge for node in self._nodes.values()]

    def validate(self, start: Optional[str] = None) -> None:
        """Reject dangling edges and cycles."""
        if start is not None and start not in self._nodes:
            raise GraphError(f"Unknown start step '{start}'")

        for edge in self.edges():
            for target in (edge.on_success, edge.on_failure):
                if target is not None and target not in self._nodes:
                    raise GraphError(f"Step '{edge.step}' points to unknown step '{target}'")

        # depth-first search with three colours
        visiting, done = set(), set()

        def visit(key: str, path: List[str]) -> None:
            if key in done:
                return
            if key in visiting:
                cycle = " -> ".join(path[path.index(key):] + [key])
                raise GraphError(f"Pipeline graph contains a cycle: {cycle}")
            visiting.add(key)
            edge = self._nodes[key].edge
            for target in (edge.on_success, edge.on_failure):
                if target is not None:
                    visit(target, path + [key])
            visiting.discard(key)
            done.add(key)

        for key in self._nodes:
            visit(key, [])
