from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Protocol

logger = logging.getLogger(__name__)

VisData = Dict[str, List[Dict[str, Any]]]


class Renderer(Protocol):
    def set_data(self, data: VisData) -> None:
        ...

    def stop_simulation(self) -> None:
        ...


RendererFactory = Callable[[str, VisData, Dict[str, Any]], Renderer]


def build_options(arrows: bool = False, hierarchical: bool = False, hierarchical_sort_method: str = "hubsize") -> Dict[str, Any]:
    """vis-network options for a force-directed graph."""
    return {
        "nodes": {
            "font": {"size": 26, "strokeWidth": 7},
            "scaling": {"label": {"enabled": True}},
        },
        "edges": {
            "arrows": {"to": {"enabled": bool(arrows)}},
            "length": 200,
        },
        "layout": {
            "improvedLayout": False,
            "hierarchical": {
                "enabled": bool(hierarchical),
                "sortMethod": hierarchical_sort_method or "hubsize",
            },
        },
        "physics": {
            "adaptiveTimestep": True,
            "barnesHut": {
                "gravitationalConstant": -8000,
                "springConstant": 0.04,
                "springLength": 95,
            },
            "stabilization": {"iterations": 970, "fit": True},
        },
    }


class VisNetwork:
    """Server-side stand-in for a vis.Network bound to a page container.

    Holds what the browser needs to draw (dataset and options) and whether
    the physics simulation should still be running.
    """

    def __init__(self, container_id: str, data: VisData, options: Dict[str, Any]) -> None:
        self.container_id = container_id
        self.options = options
        self.data: VisData = {"nodes": [], "edges": []}
        self.physics_running = False
        self.set_data(data)

    def set_data(self, data: VisData) -> None:
        self.data = {"nodes": list(data.get("nodes", [])), "edges": list(data.get("edges", []))}
        self.physics_running = bool(self.data["nodes"])
        logger.debug("network %s bound to %d nodes, %d edges", self.container_id, len(self.data["nodes"]), len(self.data["edges"]))

    def stop_simulation(self) -> None:
        self.physics_running = False
