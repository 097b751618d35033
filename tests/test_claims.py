from datetime import datetime, timezone

import pytest

from territory_engine.claims import ClaimService
from territory_engine.errors import ClaimRejectedError, TerritoryStoreError
from territory_engine.models import ClaimDraft, ValidationFailure, ValidationResult
from territory_engine.store import InMemoryTerritoryStore, TerritoryCatalog

from conftest import SQUARE_LOOP, grid_path

STARTED = datetime(2025, 6, 1, 8, 30, tzinfo=timezone.utc)


def draft(passed=True):
    if passed:
        validation = ValidationResult(passed=True, area_m2=2304.0, point_count=16)
    else:
        validation = ValidationResult(
            passed=False,
            failure=ValidationFailure.INSUFFICIENT_AREA,
            reason="Insufficient area: 36m2 (need >= 100m2)",
        )
    return ClaimDraft(
        owner_id="me",
        path=tuple(grid_path(SQUARE_LOOP)),
        validation=validation,
        started_at=STARTED,
    )


class ExplodingStore(InMemoryTerritoryStore):
    def upload(self, path, area_m2, started_at, owner_id):
        raise ConnectionResetError("socket closed")


class FlakyLoadStore(InMemoryTerritoryStore):
    def load_active_territories(self):
        raise TerritoryStoreError("read timed out")


def test_submit_uploads_validated_claim_and_refreshes_catalog():
    store = InMemoryTerritoryStore()
    catalog = TerritoryCatalog(store, ttl_s=600, timer=lambda: 0.0)
    assert catalog.territories() == []

    territory = ClaimService(store, catalog).submit(draft())
    assert territory.area_m2 == 2304.0
    assert territory.started_at == STARTED
    assert [t.id for t in catalog.territories()] == [territory.id]


@pytest.mark.parametrize("candidate", [None, draft(passed=False)])
def test_unvalidated_claims_are_rejected(candidate):
    store = InMemoryTerritoryStore()
    with pytest.raises(ClaimRejectedError):
        ClaimService(store).submit(candidate)
    assert store.all_territories() == []


def test_store_failures_are_wrapped_not_retried():
    with pytest.raises(TerritoryStoreError, match="socket closed"):
        ClaimService(ExplodingStore()).submit(draft())


def test_catalog_refresh_failure_does_not_fail_the_claim(caplog):
    store = FlakyLoadStore()
    catalog = TerritoryCatalog(store, ttl_s=600, timer=lambda: 0.0)
    territory = ClaimService(store, catalog).submit(draft())
    assert store.all_territories() == [territory]
    assert any("Catalog refresh" in r.getMessage() for r in caplog.records)


def test_delete_soft_deletes_and_refreshes():
    store = InMemoryTerritoryStore()
    catalog = TerritoryCatalog(store, ttl_s=600, timer=lambda: 0.0)
    service = ClaimService(store, catalog)
    territory = service.submit(draft())
    service.delete(territory.id)
    assert catalog.territories() == []
    assert not store.all_territories()[0].is_active


def test_delete_unknown_territory_raises():
    with pytest.raises(TerritoryStoreError):
        ClaimService(InMemoryTerritoryStore()).delete("missing")
