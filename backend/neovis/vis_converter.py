from __future__ import annotations

import math
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

from .dataset import IN, OUT, NeighbourIndex
from .records import GraphNode, GraphRelationship
from .schemas import LabelMapping, RelationshipMapping, VisEdge, VisNode


DEFAULT_SIZE = 1.0
DEFAULT_SHAPE = "dot"
MAX_SAFE_INTEGER = 2 ** 53 - 1

_NO_LABEL_MAPPING = LabelMapping()
_NO_REL_MAPPING = RelationshipMapping()


class NodeBuild(NamedTuple):
    node: VisNode
    # set when the size comes from a secondary query keyed by node id
    size_cypher: Optional[str] = None


def _display(value: Any) -> str:
    # same text a browser would produce when concatenating the value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join("" if v is None else _display(v) for v in value)
    return str(value)


def tooltip(properties: Mapping[str, Any]) -> str:
    return "".join(f"<strong>{key}:</strong> {_display(value)}<br>" for key, value in properties.items())


def numeric_or_default(value: Any, default: float = DEFAULT_SIZE) -> Union[int, float]:
    """Plain numbers pass, integers beyond the safe range and everything else give ``default``."""
    if not value or isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, int) and abs(value) > MAX_SAFE_INTEGER:
        return default
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> int:
    # only graph integers carry a community id; floats and strings do not convert
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"cannot use {type(value).__name__} as a community id")
    return value


def _resolve_group(properties: Mapping[str, Any], community: Optional[str], label: str) -> Union[int, float, str]:
    if not community:
        return label
    raw = properties.get(community)
    if not raw:
        return 0
    try:
        return _to_number(raw) or label or 0
    except TypeError:
        return 0


def build_node(n: GraphNode, labels: Mapping[str, LabelMapping]) -> NodeBuild:
    label = n.label
    mapping = labels.get(label) or _NO_LABEL_MAPPING
    props = n.properties

    node: Dict[str, Any] = {"id": n.id}

    # with sizeCypher the value stays unset until the lookup settles
    size_cypher = mapping.size_cypher or None
    if not size_cypher:
        if _is_number(mapping.size):
            node["value"] = mapping.size
        elif mapping.size:
            node["value"] = numeric_or_default(props.get(mapping.size))
        else:
            node["value"] = DEFAULT_SIZE

    caption = props.get(mapping.caption) if mapping.caption else None
    node["label"] = _display(caption) if caption else ""
    node["group"] = _resolve_group(props, mapping.community, label)
    node["shape"] = mapping.shape or DEFAULT_SHAPE
    node["title"] = tooltip(props)

    return NodeBuild(VisNode(**node), size_cypher)


def build_edge(r: GraphRelationship, relationships: Mapping[str, RelationshipMapping], neighbours: NeighbourIndex) -> VisEdge:
    mapping = relationships.get(r.type) or _NO_REL_MAPPING
    props = r.properties

    neighbours.add(r.start, r.end, OUT)
    neighbours.add(r.end, r.start, IN)

    title = tooltip(props)

    thickness = mapping.thickness
    if _is_number(thickness):
        value = thickness
    elif thickness:
        value = numeric_or_default(props.get(thickness))
    else:
        value = DEFAULT_SIZE

    caption = mapping.caption
    if isinstance(caption, bool):
        if caption:
            label = r.type
        else:
            label = ""
            title += tooltip({"name": r.type})
    elif caption:
        raw = props.get(caption)
        label = _display(raw) if raw else ""
    else:
        label = r.type

    return VisEdge(id=r.id, from_=r.start, to=r.end, label=label, value=value, title=title)
