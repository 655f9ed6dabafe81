"""Query-result values as explicit record types.

The driver hands back ``neo4j.graph`` objects; ``from_driver_value`` turns
them into the frozen dataclasses below at the transport boundary and
``classify`` tags each value so the dispatcher can match on ``RecordKind``
instead of probing attributes.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Tuple

from neo4j import graph


@dataclass(frozen=True)
class GraphNode:
    id: int
    labels: Tuple[str, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.labels[0] if self.labels else ""


@dataclass(frozen=True)
class GraphRelationship:
    id: int
    type: str
    start: int
    end: int
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PathSegment:
    start: GraphNode
    relationship: GraphRelationship
    end: GraphNode


@dataclass(frozen=True)
class GraphPath:
    start: GraphNode
    end: GraphNode
    segments: Tuple[PathSegment, ...] = ()


class RecordKind(str, Enum):
    NODE = "node"
    RELATIONSHIP = "relationship"
    PATH = "path"
    COLLECTION = "collection"
    UNKNOWN = "unknown"


class Classified(NamedTuple):
    kind: RecordKind
    value: Any


def classify(value: Any) -> Classified:
    if isinstance(value, GraphNode):
        return Classified(RecordKind.NODE, value)
    if isinstance(value, GraphRelationship):
        return Classified(RecordKind.RELATIONSHIP, value)
    if isinstance(value, GraphPath):
        return Classified(RecordKind.PATH, value)
    if isinstance(value, (list, tuple)):
        return Classified(RecordKind.COLLECTION, value)
    return Classified(RecordKind.UNKNOWN, value)


def _entity_id(entity: Any) -> int:
    # legacy integer id, deprecated on 5.x in favour of the opaque element_id;
    # the driver warns on every access
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DeprecationWarning)
        return int(entity.id)


def _convert_node(n: graph.Node) -> GraphNode:
    # driver labels are a frozenset, sort them so the primary label is stable
    return GraphNode(id=_entity_id(n), labels=tuple(sorted(n.labels)), properties=dict(n))


def _convert_relationship(r: graph.Relationship) -> GraphRelationship:
    return GraphRelationship(
        id=_entity_id(r),
        type=r.type,
        start=_entity_id(r.start_node),
        end=_entity_id(r.end_node),
        properties=dict(r),
    )


def _convert_path(p: graph.Path) -> GraphPath:
    nodes = [_convert_node(n) for n in p.nodes]
    rels = [_convert_relationship(r) for r in p.relationships]
    segments = tuple(PathSegment(nodes[i], rel, nodes[i + 1]) for i, rel in enumerate(rels))
    return GraphPath(start=nodes[0], end=nodes[-1], segments=segments)


def from_driver_value(value: Any) -> Any:
    if isinstance(value, graph.Node):
        return _convert_node(value)
    if isinstance(value, graph.Relationship):
        return _convert_relationship(value)
    if isinstance(value, graph.Path):
        return _convert_path(value)
    if isinstance(value, (list, tuple)):
        return [from_driver_value(v) for v in value]
    return value


def from_driver_record(values: List[Any]) -> List[Any]:
    return [from_driver_value(v) for v in values]
