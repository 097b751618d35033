"""Territory store collaborators and the cached catalog used for collision checks.

The engine only depends on the :class:`TerritoryStore` protocol. Two
implementations ship with the package: an in-memory store (tests, embedding)
and a PostgREST-compatible HTTP store. Neither physically deletes rows;
deletion flips ``is_active``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import logging
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence
import uuid

import requests
from cachetools import TTLCache
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import (
    HTTP_POOL_CONNECTIONS,
    HTTP_POOL_MAXSIZE,
    REQUEST_TIMEOUT,
    TERRITORY_CATALOG_TTL_S,
    TERRITORY_STORE_API_KEY,
    TERRITORY_STORE_TABLE,
    TERRITORY_STORE_URL,
)
from .errors import TerritoryStoreError
from .models import GeoPoint, Territory
from .records import build_record, territory_from_record

LOGGER = logging.getLogger(__name__)


class TerritoryStore(Protocol):
    def load_active_territories(self) -> List[Territory]: ...

    def upload(
        self,
        path: Sequence[GeoPoint],
        area_m2: float,
        started_at: datetime,
        owner_id: str,
    ) -> Territory: ...

    def soft_delete(self, territory_id: str) -> None: ...


class InMemoryTerritoryStore:
    """Thread-safe store keeping records in a dict keyed by territory id."""

    def __init__(self, territories: Sequence[Territory] = ()) -> None:
        self._lock = RLock()
        self._records: Dict[str, Territory] = {t.id: t for t in territories}

    def load_active_territories(self) -> List[Territory]:
        with self._lock:
            return [t for t in self._records.values() if t.is_active]

    def all_territories(self) -> List[Territory]:
        with self._lock:
            return list(self._records.values())

    def upload(
        self,
        path: Sequence[GeoPoint],
        area_m2: float,
        started_at: datetime,
        owner_id: str,
    ) -> Territory:
        territory = Territory(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            polygon=tuple(path),
            area_m2=float(area_m2),
            point_count=len(path),
            is_active=True,
            created_at=datetime.now(timezone.utc),
            started_at=started_at,
        )
        with self._lock:
            self._records[territory.id] = territory
        return territory

    def soft_delete(self, territory_id: str) -> None:
        with self._lock:
            territory = self._records.get(territory_id)
            if territory is None:
                raise TerritoryStoreError(f"Territory {territory_id} does not exist")
            self._records[territory_id] = replace(territory, is_active=False)


def _build_retry() -> Retry:
    # Only reads are retried at the transport level; writes fail straight
    # through so the caller decides whether to resubmit.
    return Retry(
        total=3,
        backoff_factor=1.0,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
    )


def create_default_session(api_key: str = TERRITORY_STORE_API_KEY) -> Session:
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=_build_retry(),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
    )
    if api_key:
        session.headers.update(
            {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
        )
    return session


class RestTerritoryStore:
    """Territory store backed by a PostgREST-style ``/territories`` endpoint."""

    def __init__(
        self,
        base_url: str = TERRITORY_STORE_URL,
        *,
        table: str = TERRITORY_STORE_TABLE,
        session: Optional[Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required (set TERRITORY_STORE_URL)")
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._url = f"{base_url.rstrip('/')}/{table}"
        self._session = session or create_default_session()
        self._timeout = timeout

    def load_active_territories(self) -> List[Territory]:
        rows = self._request(
            "GET", params={"select": "*", "is_active": "eq.true"}
        )
        if not isinstance(rows, list):
            raise TerritoryStoreError("Unexpected territory list payload")
        territories = [territory_from_record(row) for row in rows]
        self._log.info("Loaded %d active territories", len(territories))
        return territories

    def upload(
        self,
        path: Sequence[GeoPoint],
        area_m2: float,
        started_at: datetime,
        owner_id: str,
    ) -> Territory:
        record = build_record(owner_id, path, area_m2, started_at)
        rows = self._request(
            "POST",
            json=record,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(rows, list) and rows:
            territory = territory_from_record(rows[0])
        else:
            territory = territory_from_record(record)
        self._log.info(
            "Territory uploaded: area %.0fm2, %d points", area_m2, len(path)
        )
        return territory

    def soft_delete(self, territory_id: str) -> None:
        self._request(
            "PATCH",
            params={"id": f"eq.{territory_id}"},
            json={"is_active": False},
        )
        self._log.info("Territory %s deactivated", territory_id)

    def _request(self, method: str, **kwargs: Any) -> Any:
        try:
            response = self._session.request(
                method, self._url, timeout=self._timeout, **kwargs
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            self._log.error("Territory store %s failed: %s", method, exc)
            raise TerritoryStoreError(f"Territory store {method} failed: {exc}") from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TerritoryStoreError("Territory store returned invalid JSON") from exc


class TerritoryCatalog:
    """TTL-cached view of the store's active territories.

    Collision checks run every few seconds; the catalog keeps them off the
    network until the TTL expires or :meth:`refresh` is called.
    """

    _KEY = "active"

    def __init__(
        self,
        store: TerritoryStore,
        *,
        ttl_s: float = TERRITORY_CATALOG_TTL_S,
        timer: Callable[[], float] | None = None,
    ) -> None:
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._store = store
        if timer is None:
            self._cache: TTLCache[str, List[Territory]] = TTLCache(maxsize=1, ttl=ttl_s)
        else:
            self._cache = TTLCache(maxsize=1, ttl=ttl_s, timer=timer)
        self._lock = RLock()

    def territories(self) -> List[Territory]:
        with self._lock:
            cached = self._cache.get(self._KEY)
        if cached is not None:
            return cached
        return self.refresh()

    def refresh(self) -> List[Territory]:
        territories = self._store.load_active_territories()
        with self._lock:
            self._cache[self._KEY] = territories
        self._log.debug("Catalog refreshed with %d territories", len(territories))
        return territories

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()


__all__ = [
    "TerritoryStore",
    "InMemoryTerritoryStore",
    "RestTerritoryStore",
    "TerritoryCatalog",
    "create_default_session",
]
