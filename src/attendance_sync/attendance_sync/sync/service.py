from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import now_iso
from ..connectivity.monitor import ConnectivityMonitor
from ..core.constants import SYNC_ORDER
from ..core.enums import EntityType, SyncState
from ..core.exceptions import DomainError, NotInitialized, RequestCancelled
from ..remote.api import AttendanceApi
from ..remote.serializers import TO_WIRE, from_wire_list
from ..storage.base import Snapshot, Storage

logger = logging.getLogger(__name__)

_SYNC_FIELDS = ("synced", "lastSync")


@dataclass(frozen=True)
class SyncFailure:
    entity: EntityType
    phase: str
    message: str

    def describe(self) -> str:
        return f"{self.phase} {self.entity.value}: {self.message}"


@dataclass(frozen=True)
class SyncResult:
    """Non-fatal outcome of one sync attempt, shown to the user as a status."""

    success: bool
    message: str
    busy: bool = False
    failures: tuple[SyncFailure, ...] = field(default_factory=tuple)
    snapshot: Optional[Snapshot] = None
    finished_at: Optional[str] = None


class SyncService:
    """Push-then-pull reconciliation between the local store and the server.

    One attempt runs IDLE -> SYNCING -> IDLE. An attempt that overlaps a
    running one returns a busy result right away and sends nothing.

    Conflict policy is last-pull-wins: every record the server returns
    overwrites the local copy with the same id, including local edits made
    after the push. A local record the server has never confirmed is moved to a
    fresh id when a pulled record claims its id, never overwritten.
    """

    def __init__(
        self,
        storage: Optional[Storage],
        api: AttendanceApi,
        monitor: Optional[ConnectivityMonitor] = None,
    ):
        self._storage = storage
        self._api = api
        self._monitor = monitor
        self._guard = threading.Lock()
        self._syncing = False
        self._state = SyncState.IDLE
        self.last_result: Optional[SyncResult] = None
        self.last_sync: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    async def sync_all(self) -> SyncResult:
        if self._storage is None:
            raise NotInitialized("Sync service has no local store")

        if self._monitor is not None and not self._monitor.is_online:
            return SyncResult(success=False, message="Offline: sync skipped")

        with self._guard:
            if self._syncing:
                logger.info("Sync already in progress; skipping overlapping request")
                return SyncResult(success=False, busy=True, message="Sync already in progress")
            self._syncing = True
            self._state = SyncState.SYNCING

        try:
            result = await self._run()
        finally:
            self._syncing = False
            self._state = SyncState.IDLE

        self.last_result = result
        if result.success:
            self.last_sync = result.finished_at
            self.last_error = None
        else:
            self.last_error = result.message
        return result

    async def _run(self) -> SyncResult:
        failures: list[SyncFailure] = []

        for entity in SYNC_ORDER:
            failure = await self._push(entity)
            if failure:
                failures.append(failure)

        for entity in SYNC_ORDER:
            failure = await self._pull(entity)
            if failure:
                failures.append(failure)

        snapshot = self._storage.snapshot()
        finished_at = now_iso()

        if failures:
            message = "Sync finished with errors: " + "; ".join(f.describe() for f in failures)
            return SyncResult(
                success=False,
                message=message,
                failures=tuple(failures),
                snapshot=snapshot,
                finished_at=finished_at,
            )
        return SyncResult(success=True, message="Sync completed", snapshot=snapshot, finished_at=finished_at)

    # -- push ------------------------------------------------------------

    def _repo(self, entity: EntityType):
        return {
            EntityType.SCHOOL: self._storage.schools,
            EntityType.CLASS: self._storage.classes,
            EntityType.STUDENT: self._storage.students,
            EntityType.ATTENDANCE: self._storage.attendance,
        }[entity]

    def _outgoing(self, entity: EntityType) -> Sequence[Any]:
        if entity == EntityType.ATTENDANCE:
            return self._storage.attendance.get_pending()
        return self._repo(entity).get_all()

    async def _push(self, entity: EntityType) -> Optional[SyncFailure]:
        try:
            records = list(self._outgoing(entity))
            if not records:
                return None

            response = await self._api.push_bulk(entity, records)
            self._mark_pushed(entity, records, response)
            logger.info("Pushed %d %s", len(records), entity.value)
            return None
        except RequestCancelled as exc:
            logger.warning("Push of %s cancelled: %s", entity.value, exc)
            return SyncFailure(entity, "push", str(exc))
        except DomainError as exc:
            logger.error("Push of %s failed: %s", entity.value, exc)
            return SyncFailure(entity, "push", str(exc))

    def _mark_pushed(self, entity: EntityType, records: Sequence[Any], response: Any) -> None:
        repo = self._repo(entity)
        stamp = now_iso()
        server_ids = _echoed_ids(entity, records, response)

        confirmed: dict[int, int] = {}
        for sent in records:
            current = repo.get_by_id(sent.id)
            # Edited while the push was in flight: keep it pending for the next sync.
            if current is None or _content(entity, current) != _content(entity, sent):
                continue

            server_id = server_ids.get(sent.id)
            if server_id is not None:
                confirmed[sent.id] = server_id
            elif not sent.synced:
                # Sent but not echoed: stays pending, and the pull may confirm it in place.
                repo.update_sync_status(sent.id, False, last_sync=stamp)

        ordered, stuck = _rekey_order(confirmed)
        for local_id, server_id in ordered:
            repo.assign_server_id(local_id, server_id, last_sync=stamp)
        if stuck:
            logger.warning("Server ids for %d %s collide with each other; left pending", len(stuck), entity.value)

    # -- pull ------------------------------------------------------------

    async def _pull(self, entity: EntityType) -> Optional[SyncFailure]:
        try:
            pulled = await self._api.list_all(entity)
        except DomainError as exc:
            logger.warning("Pull of %s failed, keeping local data: %s", entity.value, exc)
            return SyncFailure(entity, "pull", str(exc))

        stamp = now_iso()
        stamped = [_as_pulled(r, stamp) for r in pulled if r.id is not None]
        try:
            self._repo(entity).save_bulk(stamped)
        except DomainError as exc:
            logger.error("Storing pulled %s failed: %s", entity.value, exc)
            return SyncFailure(entity, "pull", str(exc))

        logger.info("Pulled %d %s", len(stamped), entity.value)
        return None


def _content(entity: EntityType, record: Any) -> dict:
    wire = TO_WIRE[entity](record)
    for name in _SYNC_FIELDS:
        wire.pop(name, None)
    return wire


def _echoed_ids(entity: EntityType, records: Sequence[Any], response: Any) -> dict[int, int]:
    """Map local id -> server id from a bulk push response."""

    if not isinstance(response, (list, Mapping)):
        return {}
    try:
        echoed = [r for r in from_wire_list(entity, response) if r.id is not None]
    except DomainError:
        return {}

    if entity == EntityType.ATTENDANCE:
        by_key = {r.key: int(r.id) for r in echoed}
        return {sent.id: by_key[sent.key] for sent in records if sent.key in by_key}

    # No natural key: the server answers in request order.
    if len(echoed) != len(records):
        return {}
    return {sent.id: int(r.id) for sent, r in zip(records, echoed)}


def _rekey_order(confirmed: dict[int, int]) -> tuple[list[tuple[int, int]], dict[int, int]]:
    """Order re-keys so no record lands on an id another pushed record still holds."""

    waiting = dict(confirmed)
    ordered: list[tuple[int, int]] = []
    while waiting:
        ready = [local for local, server in waiting.items() if server == local or server not in waiting]
        if not ready:
            break
        for local in ready:
            ordered.append((local, waiting.pop(local)))
    return ordered, waiting


def _as_pulled(record: Any, stamp: str) -> Any:
    changes: dict[str, Any] = {"synced": True, "last_sync": stamp}
    if hasattr(record, "attendance"):
        changes["attendance"] = ()
    return replace(record, **changes)
