"""Mapping between local models and the server's JSON representation."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from ..attendance.model import AttendanceRecord
from ..classes.model import SchoolClass
from ..core.enums import EntityType
from ..core.exceptions import ValidationError
from ..schools.model import School
from ..students.model import Student


def _opt_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _pick(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return None


def _normalize_date(value: Any) -> str:
    # Servers may send full timestamps for DATE columns.
    if not value:
        raise ValidationError("Attendance date is missing")
    return str(value)[:10]


def school_to_wire(s: School) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "address": s.address,
        "synced": s.synced,
        "createdAt": s.created_at,
        "updatedAt": s.updated_at,
        "lastSync": s.last_sync,
    }


def school_from_wire(data: Mapping[str, Any]) -> School:
    return School(
        id=_opt_int(data.get("id")),
        name=str(data.get("name") or ""),
        address=str(data.get("address") or ""),
        synced=_as_bool(data.get("synced", True)),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        last_sync=data.get("lastSync"),
    )


def class_to_wire(c: SchoolClass) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "EscolaId": c.school_id,
        "synced": c.synced,
        "createdAt": c.created_at,
        "updatedAt": c.updated_at,
        "lastSync": c.last_sync,
    }


def class_from_wire(data: Mapping[str, Any]) -> SchoolClass:
    return SchoolClass(
        id=_opt_int(data.get("id")),
        name=str(data.get("name") or ""),
        school_id=_opt_int(_pick(data, "EscolaId", "escolaId", "school_id")),
        synced=_as_bool(data.get("synced", True)),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        last_sync=data.get("lastSync"),
    )


def attendance_to_wire(a: AttendanceRecord) -> dict:
    return {
        "id": a.id,
        "AlunoId": a.student_id,
        "date": a.date,
        "present": a.present,
        "observacao": a.observation or "",
        "synced": a.synced,
        "createdAt": a.created_at,
        "updatedAt": a.updated_at,
        "lastSync": a.last_sync,
    }


def attendance_from_wire(data: Mapping[str, Any]) -> AttendanceRecord:
    student_id = _opt_int(_pick(data, "AlunoId", "alunoId", "student_id"))
    if student_id is None:
        raise ValidationError("Attendance record without a student id")
    return AttendanceRecord(
        id=_opt_int(data.get("id")),
        student_id=student_id,
        date=_normalize_date(data.get("date")),
        present=_as_bool(_pick(data, "present", "presente")),
        observation=_pick(data, "observacao", "observation") or None,
        synced=_as_bool(data.get("synced", True)),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        last_sync=data.get("lastSync"),
    )


def student_to_wire(s: Student) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "TurmaId": s.class_id,
        "synced": s.synced,
        "createdAt": s.created_at,
        "updatedAt": s.updated_at,
        "lastSync": s.last_sync,
    }


def student_from_wire(data: Mapping[str, Any]) -> Student:
    nested = data.get("Presencas") or []
    return Student(
        id=_opt_int(data.get("id")),
        name=str(data.get("name") or ""),
        class_id=_opt_int(_pick(data, "TurmaId", "turmaId", "class_id")),
        synced=_as_bool(data.get("synced", True)),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        last_sync=data.get("lastSync"),
        attendance=tuple(attendance_from_wire(p) for p in nested if isinstance(p, Mapping)),
    )


TO_WIRE: dict[EntityType, Callable[[Any], dict]] = {
    EntityType.SCHOOL: school_to_wire,
    EntityType.CLASS: class_to_wire,
    EntityType.STUDENT: student_to_wire,
    EntityType.ATTENDANCE: attendance_to_wire,
}

FROM_WIRE: dict[EntityType, Callable[[Mapping[str, Any]], Any]] = {
    EntityType.SCHOOL: school_from_wire,
    EntityType.CLASS: class_from_wire,
    EntityType.STUDENT: student_from_wire,
    EntityType.ATTENDANCE: attendance_from_wire,
}


def from_wire_list(entity: EntityType, payload: Any) -> list:
    """Decode a list response, also accepting `{<type>: [...]}` envelopes."""

    if isinstance(payload, Mapping):
        payload = payload.get(entity.value)
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ValidationError(f"Expected a list of {entity.value}, got {type(payload).__name__}")
    decode = FROM_WIRE[entity]
    try:
        return [decode(item) for item in payload if isinstance(item, Mapping)]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed {entity.value} from server: {exc}") from exc
