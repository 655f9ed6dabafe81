from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Union
from urllib.parse import urlparse

from neo4j import AsyncGraphDatabase, Query, TrustAll, TrustSystemCAs
from neo4j.exceptions import DriverError, Neo4jError

from .config import settings
from .records import from_driver_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordEvent:
    values: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class StreamCompleted:
    record_count: int = 0


@dataclass(frozen=True)
class StreamFailed:
    error: BaseException


StreamEvent = Union[RecordEvent, StreamCompleted, StreamFailed]


class QueryTransport(Protocol):
    def stream(self, cql: str, params: Optional[Dict[str, Any]] = None) -> AsyncIterator[StreamEvent]:
        """Yield one RecordEvent per record, then exactly one StreamCompleted or StreamFailed."""
        ...

    async def fetch_values(self, cql: str, params: Optional[Dict[str, Any]] = None) -> List[List[Any]]:
        ...

    async def close(self) -> None:
        ...


_TRUST_STRATEGIES = {
    "TRUST_ALL_CERTIFICATES": TrustAll,
    "TRUST_SYSTEM_CA_SIGNED_CERTIFICATES": TrustSystemCAs,
}


def _security_config(uri: str, encrypted: bool, trust: str) -> Dict[str, Any]:
    # +s / +ssc schemes carry their own security settings and reject these keys
    if "+" in urlparse(uri).scheme:
        return {}
    if not encrypted:
        return {"encrypted": False}
    strategy = _TRUST_STRATEGIES.get(trust.upper())
    if strategy is None:
        raise ValueError(f"unsupported trust strategy: {trust}")
    return {"encrypted": True, "trusted_certificates": strategy()}


class Neo4jClient:
    def __init__(
        self,
        uri: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        encrypted: Optional[bool] = None,
        trust: Optional[str] = None,
        database: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        uri = uri or settings.NEO4J_URI
        encrypted = settings.NEO4J_ENCRYPTED if encrypted is None else encrypted
        self._database = database if database is not None else settings.NEO4J_DATABASE
        self._timeout_ms = settings.QUERY_TIMEOUT_MS if timeout_ms is None else timeout_ms
        self._driver = AsyncGraphDatabase.driver(
            uri,
            auth=(user or settings.NEO4J_USER, password or settings.NEO4J_PASSWORD),
            **_security_config(uri, encrypted, trust or settings.NEO4J_TRUST),
        )

    async def close(self) -> None:
        if self._driver:
            await self._driver.close()

    def _open_session(self):
        if self._database:
            return self._driver.session(database=self._database)
        return self._driver.session()

    def _query(self, cql: str) -> Query:
        # driver timeout is in seconds; 0 disables it
        if self._timeout_ms > 0:
            return Query(cql, timeout=self._timeout_ms / 1000.0)
        return Query(cql)

    async def stream(self, cql: str, params: Optional[Dict[str, Any]] = None) -> AsyncIterator[StreamEvent]:
        count = 0
        try:
            async with self._open_session() as session:
                result = await session.run(self._query(cql), params or {})
                async for record in result:
                    count += 1
                    yield RecordEvent(from_driver_record(list(record.values())))
        except (Neo4jError, DriverError, OSError) as e:
            yield StreamFailed(e)
            return
        yield StreamCompleted(record_count=count)

    async def fetch_values(self, cql: str, params: Optional[Dict[str, Any]] = None) -> List[List[Any]]:
        async with self._open_session() as session:
            result = await session.run(self._query(cql), params or {})
            return [list(record.values()) async for record in result]
