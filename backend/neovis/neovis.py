"""Render orchestration: query → dataset → network.

One ``NeoVis`` drives one visualization. Each render cycle resets the
dataset, streams the configured query through the record dispatcher,
settles any ``sizeCypher`` lookups, curves anti-parallel edges and binds the
result to a fresh network handle.

Size lookups are tracked per cycle and awaited before the snapshot is
taken, so the bound dataset never changes after binding. Starting a new
cycle or clearing the network cancels those lookups and drops any render
still in flight before it binds.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .config import settings
from .dataset import DatasetStore, compute_edge_roundness
from .neo4j_client import Neo4jClient, QueryTransport, RecordEvent, StreamCompleted, StreamEvent, StreamFailed
from .network import Renderer, RendererFactory, VisData, VisNetwork, build_options
from .records import GraphNode, GraphRelationship, RecordKind, classify
from .schemas import GraphSnapshot, NeoVisConfig
from .vis_converter import DEFAULT_SIZE, build_edge, build_node

logger = logging.getLogger(__name__)


class RenderState(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    RENDERED = "rendered"
    ERRORED = "errored"


def _empty_data() -> VisData:
    return {"nodes": [], "edges": []}


def _first_number(rows: List[List[Any]]) -> Optional[float]:
    for row in rows:
        for v in row:
            if isinstance(v, (int, float)) and not isinstance(v, bool):
                return float(v)
    return None


class NeoVis:
    def __init__(
        self,
        config: Union[NeoVisConfig, Dict[str, Any], None] = None,
        transport: Optional[QueryTransport] = None,
        renderer_factory: Optional[RendererFactory] = None,
    ) -> None:
        if not isinstance(config, NeoVisConfig):
            config = NeoVisConfig.model_validate(config or {})
        self._config = config
        self._transport: QueryTransport = transport or Neo4jClient(
            uri=config.server_url,
            user=config.server_user,
            password=config.server_password,
            encrypted=config.encrypted,
            trust=config.trust,
        )
        self._renderer_factory: RendererFactory = renderer_factory or VisNetwork
        self._query = config.initial_cypher or settings.INITIAL_CYPHER
        self._store = DatasetStore()
        self._size_lookups: Dict[int, asyncio.Task] = {}
        self._data: VisData = {}
        self._options: Dict[str, Any] = {}
        self._network: Optional[Renderer] = None
        self._finished_fetching_graph_cb = config.on_graph_fetched
        self._state = RenderState.IDLE
        self._cycle = 0
        self._lock = asyncio.Lock()

    # accessors

    @property
    def state(self) -> RenderState:
        return self._state

    @property
    def query(self) -> str:
        return self._query

    @property
    def config(self) -> NeoVisConfig:
        return self._config

    @property
    def options(self) -> Dict[str, Any]:
        return self._options

    @property
    def store(self) -> DatasetStore:
        return self._store

    def get_driver(self) -> QueryTransport:
        return self._transport

    def get_network(self) -> Optional[Renderer]:
        return self._network

    def get_dataset(self) -> VisData:
        return self._data

    def snapshot(self) -> GraphSnapshot:
        return self._store.snapshot()

    def set_on_graph_fetched_callback(self, cb: Optional[Callable[[Any], Any]]) -> None:
        self._finished_fetching_graph_cb = cb

    def _set_state(self, state: RenderState) -> None:
        if state is not self._state:
            logger.debug("render state %s -> %s", self._state.value, state.value)
        self._state = state

    # record dispatch

    def _add_node(self, n: GraphNode) -> None:
        try:
            built = build_node(n, self._config.labels)
            self._store.upsert_node(built.node)
        except Exception:  # noqa: BLE001
            logger.exception("skipping node %s", getattr(n, "id", n))
            return
        if built.size_cypher and n.id not in self._size_lookups:
            self._size_lookups[n.id] = asyncio.create_task(self._lookup_size(n.id, built.size_cypher))

    def _add_edge(self, r: GraphRelationship) -> None:
        try:
            self._store.upsert_edge(build_edge(r, self._config.relationships, self._store.neighbours))
        except Exception:  # noqa: BLE001
            logger.exception("skipping relationship %s", getattr(r, "id", r))

    def _handle_value(self, value: Any) -> None:
        kind, item = classify(value)
        if kind is RecordKind.NODE:
            self._add_node(item)
        elif kind is RecordKind.RELATIONSHIP:
            self._add_edge(item)
        elif kind is RecordKind.PATH:
            self._add_node(item.start)
            self._add_node(item.end)
            for segment in item.segments:
                self._add_node(segment.start)
                self._add_node(segment.end)
                self._add_edge(segment.relationship)
        elif kind is RecordKind.COLLECTION:
            for element in item:
                element_kind = classify(element).kind
                if element_kind is RecordKind.NODE:
                    self._add_node(element)
                elif element_kind is RecordKind.RELATIONSHIP:
                    self._add_edge(element)

    def ingest(self, values: List[Any]) -> None:
        for value in values:
            self._handle_value(value)

    # size lookups

    async def _lookup_size(self, node_id: int, cypher: str) -> float:
        try:
            rows = await self._transport.fetch_values(cypher, {"id": node_id})
        except Exception as e:  # noqa: BLE001
            logger.warning("size lookup for node %s failed, using %s: %s", node_id, DEFAULT_SIZE, e)
            return DEFAULT_SIZE
        value = _first_number(rows)
        if value is None:
            logger.warning("size lookup for node %s returned no number, using %s", node_id, DEFAULT_SIZE)
            return DEFAULT_SIZE
        return value

    async def _settle_size_lookups(self, cycle: int) -> None:
        lookups = dict(self._size_lookups)
        if not lookups:
            return
        # cancelled lookups come back as exceptions when a reset lands meanwhile
        values = await asyncio.gather(*lookups.values(), return_exceptions=True)
        if cycle != self._cycle:
            return
        self._size_lookups = {}
        for node_id, value in zip(lookups.keys(), values):
            self._store.set_node_value(node_id, value)

    def _cancel_size_lookups(self) -> None:
        for task in self._size_lookups.values():
            task.cancel()
        self._size_lookups = {}

    # lifecycle

    def _reset(self) -> None:
        self._cycle += 1
        self._cancel_size_lookups()
        self._store.reset()

    def _superseded(self, cycle: int) -> bool:
        if cycle == self._cycle:
            return False
        logger.info("render cycle %d dropped after a reset", cycle)
        return True

    async def render(self) -> RenderState:
        async with self._lock:
            self._reset()
            cycle = self._cycle
            self._set_state(RenderState.QUERYING)
            terminal: Optional[StreamEvent] = None
            stream = self._transport.stream(self._query, {"limit": settings.QUERY_LIMIT})
            try:
                async for event in stream:
                    if self._superseded(cycle):
                        return self._state
                    if isinstance(event, RecordEvent):
                        self._set_state(RenderState.STREAMING)
                        self.ingest(event.values)
                    else:
                        terminal = event
            except Exception:
                logger.exception("query failed")
                self._set_state(RenderState.ERRORED)
                raise
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()

            if self._superseded(cycle):
                return self._state
            if isinstance(terminal, StreamCompleted):
                await self._finalize(cycle)
            elif isinstance(terminal, StreamFailed):
                logger.error("query failed: %s", terminal.error)
                self._set_state(RenderState.ERRORED)
            else:
                logger.error("query stream ended without completion")
                self._set_state(RenderState.ERRORED)
            return self._state

    async def _finalize(self, cycle: int) -> None:
        self._set_state(RenderState.FINALIZING)
        await self._settle_size_lookups(cycle)
        if self._superseded(cycle):
            return
        compute_edge_roundness(self._store)

        self._data = self._store.snapshot().to_vis()
        self._options = build_options(
            arrows=self._config.arrows,
            hierarchical=self._config.hierarchical,
            hierarchical_sort_method=self._config.hierarchical_sort_method,
        )
        network = self._renderer_factory(self._config.container_id, self._data, self._options)
        self._network = network
        asyncio.get_running_loop().call_later(settings.STOP_SIMULATION_DELAY_S, network.stop_simulation)
        self._set_state(RenderState.RENDERED)
        logger.info("rendered %d nodes, %d edges", len(self._data["nodes"]), len(self._data["edges"]))

        cb = self._finished_fetching_graph_cb
        if callable(cb):
            result = cb(network)
            if inspect.isawaitable(result):
                await result

    def clear_network(self) -> None:
        """Empty the dataset and the bound network.

        Must be called on the event loop. A render still in flight is dropped
        at its next suspension point and binds nothing.
        """
        self._reset()
        self._data = _empty_data()
        if self._network is not None:
            self._network.set_data(_empty_data())
        self._set_state(RenderState.IDLE)

    async def reload(self) -> RenderState:
        self.clear_network()
        return await self.render()

    async def render_with_cypher(self, query: str) -> RenderState:
        self.clear_network()
        self._query = query
        return await self.render()

    def stabilize(self) -> None:
        if self._network is None:
            logger.warning("stabilize called before anything was rendered")
            return
        self._network.stop_simulation()

    def reinit(self, config: Union[NeoVisConfig, Dict[str, Any]]) -> None:
        """Swap mappings, display options and query; the connection is kept."""
        if not isinstance(config, NeoVisConfig):
            config = NeoVisConfig.model_validate(config)
        self._config = config
        self._query = config.initial_cypher or self._query
        if config.on_graph_fetched is not None:
            self._finished_fetching_graph_cb = config.on_graph_fetched
        self.clear_network()

    async def close(self) -> None:
        self._cancel_size_lookups()
        await self._transport.close()
