import asyncio
from typing import Any, Dict, List, Optional

from neovis.neo4j_client import RecordEvent, StreamCompleted, StreamFailed
from neovis.network import VisNetwork
from neovis.records import GraphNode, GraphRelationship


def node(id_: int, *labels: str, **properties: Any) -> GraphNode:
    return GraphNode(id=id_, labels=tuple(labels), properties=properties)


def rel(id_: int, type_: str, start: int, end: int, **properties: Any) -> GraphRelationship:
    return GraphRelationship(id=id_, type=type_, start=start, end=end, properties=properties)


class FakeTransport:
    """Replays canned records; each stream() call consumes the next script."""

    def __init__(self, *scripts: List[Any], sizes: Optional[Dict[int, Any]] = None) -> None:
        self.scripts = list(scripts)
        self.sizes = sizes or {}
        self.queries: List[tuple] = []
        self.lookups: List[tuple] = []
        self.closed = False

    async def stream(self, cql: str, params: Optional[Dict[str, Any]] = None):
        self.queries.append((cql, params))
        script = self.scripts.pop(0) if self.scripts else []
        count = 0
        for item in script:
            if isinstance(item, BaseException):
                yield StreamFailed(item)
                return
            count += 1
            yield RecordEvent(list(item))
        yield StreamCompleted(record_count=count)

    async def fetch_values(self, cql: str, params: Optional[Dict[str, Any]] = None) -> List[List[Any]]:
        self.lookups.append((cql, params))
        size = self.sizes.get(params["id"])
        if isinstance(size, BaseException):
            raise size
        return [] if size is None else [[size]]

    async def close(self) -> None:
        self.closed = True


class RecordingNetwork(VisNetwork):
    instances: List["RecordingNetwork"] = []

    def __init__(self, container_id, data, options) -> None:
        super().__init__(container_id, data, options)
        self.stop_calls = 0
        RecordingNetwork.instances.append(self)

    def stop_simulation(self) -> None:
        self.stop_calls += 1
        super().stop_simulation()




class GatedTransport(FakeTransport):
    """Streams one record, then waits on ``gate`` before the rest; size lookups wait too."""

    def __init__(self, *scripts: List[Any], sizes: Optional[Dict[int, Any]] = None) -> None:
        super().__init__(*scripts, sizes=sizes)
        self.gate = asyncio.Event()

    async def stream(self, cql: str, params: Optional[Dict[str, Any]] = None):
        self.queries.append((cql, params))
        script = self.scripts.pop(0) if self.scripts else []
        for index, item in enumerate(script):
            if index == 1:
                await self.gate.wait()
            yield RecordEvent(list(item))
        yield StreamCompleted(record_count=len(script))

    async def fetch_values(self, cql: str, params: Optional[Dict[str, Any]] = None) -> List[List[Any]]:
        await self.gate.wait()
        return await super().fetch_values(cql, params)
