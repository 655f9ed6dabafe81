import asyncio
import logging

import pytest

from neovis.config import settings
from neovis.neo4j_client import RecordEvent
from neovis.neovis import NeoVis, RenderState
from neovis.records import GraphPath, PathSegment

from fakes import FakeTransport, GatedTransport, RecordingNetwork, node, rel

SIZE_CYPHER = "MATCH (n)-[r]-() WHERE id(n) = $id RETURN count(r)"


class Exploding:
    def __str__(self) -> str:
        raise RuntimeError("unprintable")


def _viz(*scripts, config=None, sizes=None):
    transport = FakeTransport(*scripts, sizes=sizes)
    viz = NeoVis(config or {}, transport=transport, renderer_factory=RecordingNetwork)
    return viz, transport


def _alice_bob():
    return [
        [node(1, "Person", name="Alice")],
        [node(2, "Person", name="Bob")],
        [rel(10, "KNOWS", 1, 2)],
        [rel(11, "KNOWS", 2, 1)],
    ]


def test_end_to_end_two_people_who_know_each_other():
    viz, transport = _viz(_alice_bob())
    assert asyncio.run(viz.render()) is RenderState.RENDERED

    data = viz.get_dataset()
    assert len(data["nodes"]) == 2
    for n in data["nodes"]:
        assert (n["group"], n["shape"], n["value"]) == ("Person", "dot", 1.0)
    assert len(data["edges"]) == 2
    for e in data["edges"]:
        assert e["label"] == "KNOWS"
        assert e["smooth"] == {"type": "curvedCW", "roundness": 0.1}
    assert {(e["from"], e["to"]) for e in data["edges"]} == {(1, 2), (2, 1)}
    assert transport.queries == [(settings.INITIAL_CYPHER, {"limit": settings.QUERY_LIMIT})]


def test_binds_network_with_options():
    viz, _ = _viz(_alice_bob(), config={"container_id": "graph", "arrows": True, "hierarchical": True})
    asyncio.run(viz.render())
    network = viz.get_network()
    assert network is RecordingNetwork.instances[-1]
    assert network.container_id == "graph"
    assert network.data == viz.get_dataset()
    assert network.options["edges"]["arrows"]["to"]["enabled"] is True
    assert network.options["layout"]["hierarchical"] == {"enabled": True, "sortMethod": "hubsize"}
    assert network.options["physics"]["stabilization"] == {"iterations": 970, "fit": True}


def test_path_adds_every_node_and_relationship():
    a, b, c = node(1, "Person"), node(2, "Person"), node(3, "City")
    path = GraphPath(
        start=a,
        end=c,
        segments=(
            PathSegment(a, rel(10, "KNOWS", 1, 2), b),
            PathSegment(b, rel(11, "LIVES_IN", 2, 3), c),
        ),
    )
    viz, _ = _viz([[path]])
    asyncio.run(viz.render())
    snap = viz.snapshot()
    assert sorted(n.id for n in snap.nodes) == [1, 2, 3]
    assert sorted(e.id for e in snap.edges) == [10, 11]
    # each segment registers its relationship once
    assert viz.store.neighbours.neighbours(2, "IN") == [1]


def test_collection_skips_non_graph_elements():
    viz, _ = _viz([[[node(1, "Person"), "text", 3, [node(2, "Person")], rel(10, "KNOWS", 1, 2)], {"k": "v"}]])
    asyncio.run(viz.render())
    snap = viz.snapshot()
    assert [n.id for n in snap.nodes] == [1]
    assert [e.id for e in snap.edges] == [10]


def test_failed_record_is_skipped():
    viz, _ = _viz([[node(1, "Person", name=Exploding())], [node(2, "Person", name="Bob")]])
    assert asyncio.run(viz.render()) is RenderState.RENDERED
    assert [n["id"] for n in viz.get_dataset()["nodes"]] == [2]


def test_transport_failure_errors_without_binding():
    viz, _ = _viz([[node(1, "Person")], RuntimeError("connection refused")])
    assert asyncio.run(viz.render()) is RenderState.ERRORED
    assert viz.get_network() is None
    assert viz.get_dataset() == {}
    # partial state stays in the store
    assert [n.id for n in viz.snapshot().nodes] == [1]


def test_size_cypher_settles_before_binding():
    config = {"labels": {"Person": {"size": 5, "sizeCypher": SIZE_CYPHER}}}
    viz, transport = _viz([[node(1, "Person")], [node(2, "Person")], [node(1, "Person")]], config=config, sizes={1: 7, 2: 3.5})
    asyncio.run(viz.render())
    values = {n["id"]: n["value"] for n in viz.get_dataset()["nodes"]}
    assert values == {1: 7.0, 2: 3.5}
    assert sorted(p["id"] for _, p in transport.lookups) == [1, 2]
    assert all(q == SIZE_CYPHER for q, _ in transport.lookups)


def test_size_cypher_failure_falls_back():
    config = {"labels": {"Person": {"sizeCypher": SIZE_CYPHER}}}
    viz, _ = _viz([[node(1, "Person")], [node(2, "Person")]], config=config, sizes={1: RuntimeError("boom")})
    asyncio.run(viz.render())
    values = {n["id"]: n["value"] for n in viz.get_dataset()["nodes"]}
    assert values == {1: 1.0, 2: 1.0}


def test_callback_receives_network():
    seen = []
    viz, _ = _viz(_alice_bob(), config={"onGraphFetched": seen.append})
    asyncio.run(viz.render())
    assert seen == [viz.get_network()]


def test_async_callback_is_awaited():
    seen = []

    async def on_fetched(network):
        seen.append(network)

    viz, _ = _viz(_alice_bob())
    viz.set_on_graph_fetched_callback(on_fetched)
    asyncio.run(viz.render())
    assert seen == [viz.get_network()]


def test_simulation_stops_after_delay():
    settings.STOP_SIMULATION_DELAY_S = 0

    async def scenario():
        await viz.render()
        assert viz.get_network().physics_running is True
        await asyncio.sleep(0.05)

    viz, _ = _viz(_alice_bob())
    asyncio.run(scenario())
    assert viz.get_network().stop_calls == 1
    assert viz.get_network().physics_running is False


def test_clear_network_empties_everything():
    viz, _ = _viz(_alice_bob())
    asyncio.run(viz.render())
    network = viz.get_network()
    viz.clear_network()
    snap = viz.snapshot()
    assert snap.nodes == [] and snap.edges == []
    assert viz.get_dataset() == {"nodes": [], "edges": []}
    assert network.data == {"nodes": [], "edges": []}
    assert viz.state is RenderState.IDLE


def test_clear_network_before_render():
    viz, _ = _viz()
    viz.clear_network()
    snap = viz.snapshot()
    assert snap.nodes == [] and snap.edges == []


def test_reload_reruns_same_query():
    viz, transport = _viz([[node(1, "Person")]], [[node(2, "Person")]])
    asyncio.run(viz.render())
    asyncio.run(viz.reload())
    assert [n["id"] for n in viz.get_dataset()["nodes"]] == [2]
    assert transport.queries[0] == transport.queries[1]


def test_render_with_cypher_switches_query():
    viz, transport = _viz([[node(1, "Person")]], [[rel(10, "KNOWS", 1, 2)]])
    asyncio.run(viz.render())
    asyncio.run(viz.render_with_cypher("MATCH p=()-->() RETURN p"))
    assert viz.query == "MATCH p=()-->() RETURN p"
    assert transport.queries[-1][0] == "MATCH p=()-->() RETURN p"
    data = viz.get_dataset()
    assert data["nodes"] == []
    assert [e["id"] for e in data["edges"]] == [10]


def test_stabilize_stops_simulation():
    viz, _ = _viz(_alice_bob())
    viz.stabilize()
    asyncio.run(viz.render())
    viz.stabilize()
    assert viz.get_network().physics_running is False


def test_reinit_swaps_mappings_and_query():
    viz, transport = _viz([[node(1, "Person", name="Alice")]], [[node(1, "Person", name="Alice")]])
    asyncio.run(viz.render())
    assert viz.get_dataset()["nodes"][0]["label"] == ""
    viz.reinit({"initial_cypher": "MATCH (n:Person) RETURN n", "labels": {"Person": {"caption": "name"}}})
    assert viz.get_dataset() == {"nodes": [], "edges": []}
    asyncio.run(viz.render())
    assert viz.get_dataset()["nodes"][0]["label"] == "Alice"
    assert transport.queries[-1][0] == "MATCH (n:Person) RETURN n"


def test_close_closes_transport():
    viz, transport = _viz()
    asyncio.run(viz.close())
    assert transport.closed


@pytest.mark.parametrize("config", [{"labels": {"Person": {"size": True}}}, {"relationships": {"KNOWS": {"caption": 3}}}])
def test_rejects_badly_typed_mappings(config):
    with pytest.raises(ValueError):
        NeoVis(config, transport=FakeTransport())


def test_clear_while_streaming_drops_the_cycle():
    transport = GatedTransport([[node(1, "Person")], [node(2, "Person")]])
    viz = NeoVis({}, transport=transport, renderer_factory=RecordingNetwork)

    async def scenario():
        task = asyncio.create_task(viz.render())
        await asyncio.sleep(0.01)
        assert viz.state is RenderState.STREAMING
        viz.clear_network()
        transport.gate.set()
        return await task

    assert asyncio.run(scenario()) is RenderState.IDLE
    assert viz.get_network() is None
    assert viz.get_dataset() == {"nodes": [], "edges": []}
    assert viz.snapshot().nodes == []


def test_clear_while_sizes_pending_binds_nothing():
    config = {"labels": {"Person": {"sizeCypher": SIZE_CYPHER}}}
    transport = GatedTransport([[node(1, "Person")]], sizes={1: 5})
    viz = NeoVis(config, transport=transport, renderer_factory=RecordingNetwork)

    async def scenario():
        task = asyncio.create_task(viz.render())
        await asyncio.sleep(0.01)
        assert viz.state is RenderState.FINALIZING
        viz.clear_network()
        return await task

    assert asyncio.run(scenario()) is RenderState.IDLE
    assert viz.get_network() is None
    assert RecordingNetwork.instances == []
    assert viz.snapshot().nodes == []


class BrokenTransport(FakeTransport):
    async def stream(self, cql, params=None):
        yield RecordEvent([node(1, "Person")])
        raise ValueError("unexpected payload")


def test_unexpected_stream_error_is_logged_and_raised(caplog):
    viz = NeoVis({}, transport=BrokenTransport(), renderer_factory=RecordingNetwork)
    with caplog.at_level(logging.ERROR, logger="neovis.neovis"):
        with pytest.raises(ValueError):
            asyncio.run(viz.render())
    assert viz.state is RenderState.ERRORED
    assert "query failed" in caplog.text
    assert "unexpected payload" in caplog.text
