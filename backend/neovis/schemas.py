from typing import Any, Callable, Dict, Optional, List, Union
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr


class LabelMapping(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    caption: Optional[str] = None
    # a number applies to every node of the label, a string names a property
    size: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    size_cypher: Optional[str] = Field(default=None, alias="sizeCypher")
    community: Optional[str] = None
    shape: Optional[str] = None


class RelationshipMapping(BaseModel):
    model_config = ConfigDict(frozen=True)

    thickness: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    caption: Optional[Union[StrictBool, StrictStr]] = None


class SmoothOption(BaseModel):
    enabled: Optional[bool] = None
    type: str
    roundness: Optional[float] = None


class VisNode(BaseModel):
    id: int
    label: str = ""
    # absent until a sizeCypher lookup settles
    value: Optional[float] = None
    group: Union[int, float, str] = 0
    shape: str = "dot"
    title: str = ""


class VisEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    from_: int = Field(alias="from")
    to: int
    label: str = ""
    value: float = 1.0
    title: str = ""
    smooth: Optional[SmoothOption] = None


def dump_vis(item: BaseModel) -> Dict[str, Any]:
    return item.model_dump(by_alias=True, exclude_none=True)


class GraphSnapshot(BaseModel):
    nodes: List[VisNode] = Field(default_factory=list)
    edges: List[VisEdge] = Field(default_factory=list)

    def to_vis(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "nodes": [dump_vis(n) for n in self.nodes],
            "edges": [dump_vis(e) for e in self.edges],
        }


class NeoVisConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    container_id: str = "viz"
    server_url: Optional[str] = None
    server_user: Optional[str] = None
    server_password: Optional[str] = None
    encrypted: Optional[bool] = None
    trust: Optional[str] = None
    initial_cypher: Optional[str] = None
    labels: Dict[str, LabelMapping] = Field(default_factory=dict)
    relationships: Dict[str, RelationshipMapping] = Field(default_factory=dict)
    arrows: bool = False
    hierarchical: bool = False
    hierarchical_sort_method: str = "hubsize"
    on_graph_fetched: Optional[Callable[[Any], Any]] = Field(default=None, alias="onGraphFetched", exclude=True)


class CypherRequest(BaseModel):
    cql: str


class GraphPayload(BaseModel):
    state: str
    query: str
    data: Dict[str, List[Dict[str, Any]]]
    options: Dict[str, Any]
    meta: Dict[str, Any]
