from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional

from ..common.datetime_utils import now_iso, today_iso
from ..common.validators import require_iso_date, require_positive_id
from ..connectivity.monitor import ConnectivityMonitor
from ..core.exceptions import NetworkError, RequestCancelled, StorageError, ValidationError
from ..remote.api import AttendanceApi
from ..remote.client import CancelToken
from .model import AttendanceRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceRecorder:
    """Local-first attendance marking with a best-effort immediate upload."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        api: AttendanceApi,
        monitor: Optional[ConnectivityMonitor] = None,
    ):
        self._attendance = attendance
        self._api = api
        self._monitor = monitor

    def _online(self) -> bool:
        return self._monitor is not None and self._monitor.is_online

    async def record_attendance(
        self,
        student_id: int,
        present: bool,
        observation: Optional[str] = None,
        *,
        date: Optional[str] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> bool:
        """Persist the mark locally, then try to push it.

        Returns False only when the local write failed. Network trouble leaves
        the record pending for the next sync.
        """

        student_id = require_positive_id(student_id, "student_id")
        date = require_iso_date(date or today_iso())
        if not isinstance(present, bool):
            raise ValidationError("present must be true or false")

        stamp = now_iso()
        record = AttendanceRecord(
            student_id=student_id,
            date=date,
            present=present,
            observation=(observation or "").strip() or None,
            synced=False,
            created_at=stamp,
            updated_at=stamp,
        )

        try:
            local_id = self._attendance.save(record)
            saved = self._attendance.get_by_id(local_id)
        except StorageError as exc:
            logger.error("Could not store attendance for student %s on %s: %s", student_id, date, exc)
            return False

        if saved is None or not self._online():
            return True

        try:
            response = await self._api.post_attendance(saved, cancel_token=cancel_token)
        except RequestCancelled:
            logger.info("Attendance upload for student %s cancelled; kept as pending", student_id)
            return True
        except NetworkError as exc:
            logger.warning("Attendance upload for student %s failed, kept as pending: %s", student_id, exc)
            return True

        try:
            self._confirm(saved, response)
        except StorageError as exc:
            # The mark itself is stored; the next sync pushes it again.
            logger.error("Could not mark attendance %s as synced: %s", saved.id, exc)
        return True

    def _confirm(self, sent: AttendanceRecord, response) -> None:
        current = self._attendance.get_by_id(sent.id)
        if current is None or (current.present, current.observation, current.updated_at) != (
            sent.present,
            sent.observation,
            sent.updated_at,
        ):
            return

        echoed = response.get("id") if isinstance(response, Mapping) else None
        try:
            server_id = int(echoed) if echoed is not None else None
        except (TypeError, ValueError):
            logger.warning("Server echoed an unusable id %r for attendance %s", echoed, sent.id)
            return
        stamp = now_iso()
        if server_id is None:
            return
        if server_id != sent.id:
            self._attendance.assign_server_id(sent.id, server_id, last_sync=stamp)
        else:
            self._attendance.update_sync_status(sent.id, True, last_sync=stamp)

    def pending_count(self) -> int:
        return self._attendance.count_pending()
