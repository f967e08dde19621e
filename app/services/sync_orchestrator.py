"""
app/services/sync_orchestrator.py

Full and single-object sync for one provider.

Resource types are walked strictly in catalog order so that a type's
references are already mirrored when it is written. A failure in one type is
recorded on the run and never stops the types after it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Protocol

from app.connectors.base import ConnectorError, ResourceNotFoundError
from app.domain.resources import ResourceCatalog, ResourceType
from app.domain.sync import ExternalRecord, SyncAlreadyRunningError, SyncRun, SyncStatus
from app.storage.base import RecordStore

logger = logging.getLogger(__name__)


class FetchCapability(Protocol):
    def iter_pages(self, resource: str, parent_id: str | None = None) -> Iterator[list[ExternalRecord]]:
        ...

    def get_one(self, resource: str, record_id: str, parent_id: str | None = None) -> ExternalRecord | None:
        ...


class SyncOrchestrator:
    """
    Coordinates connector paging and record upserts for one provider.

    At most one full sync runs per instance at a time; a concurrent request
    fails fast with ``SyncAlreadyRunningError``. Single-object syncs are not
    guarded and may run alongside a full sync.
    """

    def __init__(
        self,
        *,
        catalog: ResourceCatalog,
        connector: FetchCapability,
        records: RecordStore,
        upsert_batch_size: int = 500,
        upsert_concurrency: int = 1,
    ) -> None:
        self._catalog = catalog
        self._connector = connector
        self._records = records
        self._batch_size = max(1, upsert_batch_size)
        self._concurrency = max(1, upsert_concurrency)
        self._in_flight = threading.Lock()

    @property
    def provider(self) -> str:
        return self._catalog.provider

    @property
    def catalog(self) -> ResourceCatalog:
        return self._catalog

    @property
    def is_syncing(self) -> bool:
        return self._in_flight.locked()

    def sync(self, resources: Iterable[str] | None = None) -> SyncRun:
        """
        Sync the requested resource types (the catalog's core set when ``None``).

        Raises
        ------
        UnknownResourceError
            A requested name is not part of the catalog. Nothing is synced.
        SyncAlreadyRunningError
            Another sync is in flight on this orchestrator.
        """

        selected = self._catalog.ordered(resources)

        with self._single_flight():
            run = SyncRun(
                provider=self.provider,
                requested=[resource.name for resource in selected],
                stats={resource.name: 0 for resource in selected},
            )
            logger.info(
                "Sync starting provider=%s resources=%s",
                self.provider,
                ",".join(run.requested),
            )

            for resource in selected:
                try:
                    self._sync_resource(resource, run)
                except Exception as exc:
                    message = f"{resource.label} sync failed: {exc}"
                    run.errors.append(message)
                    logger.error(
                        "Sync resource failed provider=%s resource=%s synced=%s error=%s",
                        self.provider,
                        resource.name,
                        run.stats[resource.name],
                        exc,
                    )
                    continue

                logger.info(
                    "Sync resource complete provider=%s resource=%s synced=%s",
                    self.provider,
                    resource.name,
                    run.stats[resource.name],
                )

            run.finish()
            logger.info(
                "Sync complete provider=%s success=%s errors=%s duration_ms=%s",
                self.provider,
                run.success,
                len(run.errors),
                run.duration_ms,
            )
            return run

    def sync_single_resource(
        self,
        resource: str,
        record_id: str,
        parent_id: str | None = None,
    ) -> bool:
        """
        Re-fetch one object and upsert it.

        Returns ``False`` when the object no longer exists remotely. Transport
        and storage failures propagate to the caller.
        """

        resource_type = self._catalog.get(resource)
        try:
            record = self._connector.get_one(resource_type.name, str(record_id), parent_id)
        except ResourceNotFoundError:
            record = None

        if record is None:
            logger.info(
                "Single sync found no remote object provider=%s resource=%s id=%s",
                self.provider,
                resource_type.name,
                record_id,
            )
            return False

        self._records.upsert_many(self.provider, [record])
        logger.debug(
            "Single sync upserted provider=%s resource=%s id=%s",
            self.provider,
            resource_type.name,
            record.id,
        )
        return True

    def refresh_children(self, resource: str, parent_id: str) -> int:
        """
        Re-list a dependent resource type for one parent and upsert every page.
        """

        resource_type = self._catalog.get(resource)
        if not resource_type.is_dependent:
            raise ValueError(f"{self.provider}: {resource_type.name} is not a dependent resource type.")

        written = 0
        for page in self._connector.iter_pages(resource_type.name, str(parent_id)):
            written += self._upsert_page(page)
        return written

    def status(self) -> SyncStatus:
        counts = self._records.count_by_type(self.provider)
        return SyncStatus(
            provider=self.provider,
            counts={name: counts.get(name, 0) for name in self._catalog.names},
            last_synced_at=self._records.last_synced_at(self.provider),
            syncing=self.is_syncing,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _single_flight(self) -> Iterator[None]:
        if not self._in_flight.acquire(blocking=False):
            logger.warning("Sync rejected provider=%s reason=already_running", self.provider)
            raise SyncAlreadyRunningError(self.provider)
        try:
            yield
        finally:
            self._in_flight.release()

    def _sync_resource(self, resource: ResourceType, run: SyncRun) -> None:
        if not resource.is_dependent:
            for page in self._connector.iter_pages(resource.name):
                run.stats[resource.name] += self._upsert_page(page)
            return

        parent_ids = self._records.list_parent_ids(
            self.provider,
            resource.parent,
            dict(resource.parent_filter) or None,
        )
        logger.debug(
            "Dependent sync provider=%s resource=%s parent=%s parents=%s",
            self.provider,
            resource.name,
            resource.parent,
            len(parent_ids),
        )
        for parent_id in parent_ids:
            try:
                for page in self._connector.iter_pages(resource.name, parent_id):
                    run.stats[resource.name] += self._upsert_page(page)
            except ConnectorError as exc:
                logger.debug(
                    "Dependent fetch skipped provider=%s resource=%s parent_id=%s error=%s",
                    self.provider,
                    resource.name,
                    parent_id,
                    exc,
                )

    def _upsert_page(self, page: Sequence[ExternalRecord]) -> int:
        if not page:
            return 0

        chunks = [page[start : start + self._batch_size] for start in range(0, len(page), self._batch_size)]
        if self._concurrency == 1 or len(chunks) == 1:
            return sum(self._records.upsert_many(self.provider, chunk) for chunk in chunks)

        with ThreadPoolExecutor(
            max_workers=min(self._concurrency, len(chunks)),
            thread_name_prefix=f"{self.provider}-upsert",
        ) as executor:
            return sum(executor.map(lambda chunk: self._records.upsert_many(self.provider, chunk), chunks))
