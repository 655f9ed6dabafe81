from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .neovis import NeoVis, RenderState
from .schemas import CypherRequest, GraphPayload, NeoVisConfig


logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

_viz: NeoVis | None = None


async def get_viz() -> NeoVis:
    global _viz
    if _viz is None:
        _viz = NeoVis(NeoVisConfig.model_validate(settings.VISUALIZATION))
    return _viz


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    global _viz
    yield
    if _viz is not None:
        await _viz.close()
        _viz = None


app = FastAPI(title="Cypher → vis-network", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _payload(viz: NeoVis) -> GraphPayload:
    data = viz.get_dataset() or {"nodes": [], "edges": []}
    network = viz.get_network()
    return GraphPayload(
        state=viz.state.value,
        query=viz.query,
        data=data,
        options=viz.options,
        meta={
            "nodeCount": len(data.get("nodes", [])),
            "edgeCount": len(data.get("edges", [])),
            "physicsRunning": bool(getattr(network, "physics_running", False)),
        },
    )


def _rendered(viz: NeoVis, state: RenderState) -> GraphPayload:
    if state is RenderState.ERRORED:
        logger.warning("render cycle failed for query: %s", viz.query)
        raise HTTPException(status_code=502, detail={"error": "query failed, see server log", "cql": viz.query})
    return _payload(viz)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/graph", response_model=GraphPayload)
async def graph(viz: NeoVis = Depends(get_viz)) -> GraphPayload:
    return _payload(viz)


@app.post("/render", response_model=GraphPayload)
async def render(viz: NeoVis = Depends(get_viz)) -> GraphPayload:
    return _rendered(viz, await viz.render())


@app.post("/reload", response_model=GraphPayload)
async def reload(viz: NeoVis = Depends(get_viz)) -> GraphPayload:
    return _rendered(viz, await viz.reload())


@app.post("/cypher", response_model=GraphPayload)
async def cypher(payload: CypherRequest, viz: NeoVis = Depends(get_viz)) -> GraphPayload:
    if not payload.cql.strip():
        raise HTTPException(status_code=400, detail="cql must not be empty")
    return _rendered(viz, await viz.render_with_cypher(payload.cql))


@app.post("/stabilize", response_model=GraphPayload)
async def stabilize(viz: NeoVis = Depends(get_viz)) -> GraphPayload:
    viz.stabilize()
    return _payload(viz)


@app.post("/clear", response_model=GraphPayload)
async def clear(viz: NeoVis = Depends(get_viz)) -> GraphPayload:
    viz.clear_network()
    return _payload(viz)
