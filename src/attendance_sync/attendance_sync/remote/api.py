from __future__ import annotations

from typing import Any, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..core.enums import EntityType
from .client import CancelToken, RemoteClient
from .serializers import TO_WIRE, attendance_to_wire, from_wire_list


class AttendanceApi:
    """Typed access to the server endpoints used by the app."""

    def __init__(self, client: RemoteClient):
        self._client = client

    @property
    def client(self) -> RemoteClient:
        return self._client

    async def list_all(self, entity: EntityType, *, cancel_token: Optional[CancelToken] = None) -> list:
        payload = await self._client.get(f"/api/{entity.value}", cancel_token=cancel_token)
        return from_wire_list(entity, payload)

    async def list_classes_for_school(self, school_id: int, *, cancel_token: Optional[CancelToken] = None) -> list:
        payload = await self._client.get(f"/api/escolas/{int(school_id)}/turmas", cancel_token=cancel_token)
        return from_wire_list(EntityType.CLASS, payload)

    async def list_students_for_class(self, class_id: int, *, cancel_token: Optional[CancelToken] = None) -> list:
        payload = await self._client.get(f"/api/turmas/{int(class_id)}/alunos", cancel_token=cancel_token)
        return from_wire_list(EntityType.STUDENT, payload)

    async def list_attendance_for_student(
        self,
        student_id: int,
        *,
        date: Optional[str] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> list:
        params = {"date": date} if date else None
        payload = await self._client.get(
            f"/api/alunos/{int(student_id)}/presencas",
            params=params,
            cancel_token=cancel_token,
        )
        return from_wire_list(EntityType.ATTENDANCE, payload)

    async def post_attendance(self, record: AttendanceRecord, *, cancel_token: Optional[CancelToken] = None) -> Any:
        """Create/update one record; the response echoes the server id."""

        return await self._client.post("/api/presencas", attendance_to_wire(record), cancel_token=cancel_token)

    async def push_bulk(
        self,
        entity: EntityType,
        records: Sequence[Any],
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> Any:
        encode = TO_WIRE[entity]
        body = {entity.value: [encode(r) for r in records]}
        return await self._client.post(f"/api/{entity.value}/sync", body, cancel_token=cancel_token)
