from __future__ import annotations

from collections import Counter
from typing import Dict, List

from .schemas import GraphSnapshot, SmoothOption, VisEdge, VisNode


IN = "IN"
OUT = "OUT"

STRAIGHT = SmoothOption(enabled=False, type="diagonalCross")
CURVED = SmoothOption(type="curvedCW", roundness=0.1)


class NeighbourIndex:
    """Per-node IN/OUT adjacency, one entry per resolved edge.

    Lists keep every registration (parallel edges repeat a neighbour); the
    counters back the membership checks of the smoothing pass.
    """

    def __init__(self) -> None:
        self._lists: Dict[int, Dict[str, List[int]]] = {}
        self._counts: Dict[int, Dict[str, Counter]] = {}

    def add(self, source: int, neighbour: int, direction: str = IN) -> None:
        if direction not in (IN, OUT):
            raise ValueError(f"unknown direction: {direction!r}")
        self._lists.setdefault(source, {}).setdefault(direction, []).append(neighbour)
        self._counts.setdefault(source, {}).setdefault(direction, Counter())[neighbour] += 1

    def neighbours(self, node_id: int, direction: str) -> List[int]:
        return list(self._lists.get(node_id, {}).get(direction, []))

    def has(self, node_id: int, direction: str, neighbour: int) -> bool:
        counts = self._counts.get(node_id, {}).get(direction)
        return bool(counts and counts[neighbour])

    def clear(self) -> None:
        self._lists.clear()
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._lists)


class DatasetStore:
    """Nodes and edges keyed by id; a later upsert for an id replaces the entry."""

    def __init__(self) -> None:
        self._nodes: Dict[int, VisNode] = {}
        self._edges: Dict[int, VisEdge] = {}
        self.neighbours = NeighbourIndex()

    @property
    def nodes(self) -> Dict[int, VisNode]:
        return self._nodes

    @property
    def edges(self) -> Dict[int, VisEdge]:
        return self._edges

    def upsert_node(self, node: VisNode) -> None:
        self._nodes[node.id] = node

    def upsert_edge(self, edge: VisEdge) -> None:
        self._edges[edge.id] = edge

    def set_node_value(self, node_id: int, value: float) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        self._nodes[node_id] = node.model_copy(update={"value": value})
        return True

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=[n.model_copy(deep=True) for n in self._nodes.values()],
            edges=[e.model_copy(deep=True) for e in self._edges.values()],
        )

    def reset(self) -> None:
        self._nodes = {}
        self._edges = {}
        self.neighbours.clear()


def compute_edge_roundness(store: DatasetStore) -> None:
    """Curve an edge when an edge in the opposite direction shares its endpoints.

    Same-direction duplicates are not detected and stay straight.
    """
    index = store.neighbours
    for edge_id, edge in list(store.edges.items()):
        anti_parallel = index.has(edge.from_, IN, edge.to) or index.has(edge.to, OUT, edge.from_)
        smooth = CURVED if anti_parallel else STRAIGHT
        store.edges[edge_id] = edge.model_copy(update={"smooth": smooth.model_copy()})
