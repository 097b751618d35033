"""Boundary between finished claims and the territory store."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import ClaimRejectedError, TerritoryStoreError
from .models import ClaimDraft, Territory
from .store import TerritoryCatalog, TerritoryStore

LOGGER = logging.getLogger(__name__)


class ClaimService:
    """Upload validated claims and soft-delete territories.

    Store failures are surfaced as :class:`TerritoryStoreError` and never
    retried here; the host decides whether to let the user try again.
    """

    def __init__(
        self,
        store: TerritoryStore,
        catalog: Optional[TerritoryCatalog] = None,
    ) -> None:
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._store = store
        self._catalog = catalog

    def submit(self, draft: Optional[ClaimDraft]) -> Territory:
        if draft is None or not draft.validation.passed:
            reason = draft.validation.reason if draft is not None else None
            raise ClaimRejectedError(
                f"Only validated paths can be claimed ({reason or 'no validation result'})"
            )
        try:
            territory = self._store.upload(
                draft.path,
                draft.validation.area_m2,
                draft.started_at,
                draft.owner_id,
            )
        except TerritoryStoreError:
            raise
        except Exception as exc:
            self._log.error("Territory upload failed: %s", exc, exc_info=True)
            raise TerritoryStoreError(f"Territory upload failed: {exc}") from exc
        self._log.info(
            "Claim uploaded: %.0fm2, %d points", draft.validation.area_m2, len(draft.path)
        )
        self._refresh_catalog()
        return territory

    def delete(self, territory_id: str) -> None:
        try:
            self._store.soft_delete(territory_id)
        except TerritoryStoreError:
            raise
        except Exception as exc:
            raise TerritoryStoreError(f"Territory delete failed: {exc}") from exc
        self._log.info("Territory %s deleted", territory_id)
        self._refresh_catalog()

    def _refresh_catalog(self) -> None:
        if self._catalog is None:
            return
        try:
            self._catalog.refresh()
        except TerritoryStoreError as exc:
            # The write already succeeded; the next collision tick reloads.
            self._catalog.invalidate()
            self._log.warning("Catalog refresh after write failed: %s", exc)


__all__ = ["ClaimService"]
