import os
import json


def _as_bool(v: object, default: bool = False) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return default


def _as_int(v: object, default: int) -> int:
    try:
        return int(v)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _as_float(v: object, default: float) -> float:
    try:
        return float(v)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _load_config(path: str | None = None) -> dict:
    path = path or os.path.join(os.getcwd(), "config.json")
    try:
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
    except (OSError, ValueError):
        pass
    return {}


class Settings:
    def __init__(self, path: str | None = None) -> None:
        cfg = _load_config(path)

        # Neo4j connection
        self.NEO4J_URI: str = str(cfg.get("NEO4J_URI", "bolt://localhost:7687"))
        self.NEO4J_USER: str = str(cfg.get("NEO4J_USER", "neo4j"))
        self.NEO4J_PASSWORD: str = str(cfg.get("NEO4J_PASSWORD", "neo4j"))
        # empty means the server's default database
        self.NEO4J_DATABASE: str = str(cfg.get("NEO4J_DATABASE", "") or "")
        self.NEO4J_ENCRYPTED: bool = _as_bool(cfg.get("NEO4J_ENCRYPTED", False), default=False)
        self.NEO4J_TRUST: str = str(cfg.get("NEO4J_TRUST", "TRUST_ALL_CERTIFICATES"))

        # query
        self.INITIAL_CYPHER: str = str(cfg.get("INITIAL_CYPHER", "MATCH (n) RETURN n LIMIT 25"))
        self.QUERY_LIMIT: int = _as_int(cfg.get("QUERY_LIMIT", 30), default=30)
        self.QUERY_TIMEOUT_MS: int = _as_int(cfg.get("QUERY_TIMEOUT_MS", 5000), default=5000)

        # rendering
        self.STOP_SIMULATION_DELAY_S: float = _as_float(cfg.get("STOP_SIMULATION_DELAY_S", 10), default=10.0)
        visualization = cfg.get("VISUALIZATION")
        self.VISUALIZATION: dict = visualization if isinstance(visualization, dict) else {}

        self.LOG_LEVEL: str = str(cfg.get("LOG_LEVEL", "INFO")).upper()


settings = Settings()
