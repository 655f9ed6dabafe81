from .neovis import NeoVis, RenderState
from .schemas import LabelMapping, NeoVisConfig, RelationshipMapping, VisEdge, VisNode

__all__ = [
    "NeoVis",
    "RenderState",
    "NeoVisConfig",
    "LabelMapping",
    "RelationshipMapping",
    "VisNode",
    "VisEdge",
]
