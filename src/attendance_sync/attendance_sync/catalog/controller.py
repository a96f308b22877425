from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import Container
from ..core.enums import EntityType
from ..remote.serializers import TO_WIRE
from .service import CatalogResult


def _payload(entity: EntityType, result: CatalogResult):
    encode = TO_WIRE[entity]
    return jsonify(
        {
            "success": True,
            "source": result.source,
            "message": result.message,
            entity.value: [encode(item) for item in result.items],
        }
    )


def register(app: Flask, container: Container) -> None:
    @app.route("/local/schools", methods=["GET"], endpoint="local_schools")
    async def local_schools():
        result = await container.catalog.list_schools()
        return _payload(EntityType.SCHOOL, result)

    @app.route("/local/schools/<int:school_id>/classes", methods=["GET"], endpoint="local_school_classes")
    async def local_school_classes(school_id: int):
        result = await container.catalog.list_classes(school_id)
        return _payload(EntityType.CLASS, result)

    @app.route("/local/classes/<int:class_id>/students", methods=["GET"], endpoint="local_class_students")
    async def local_class_students(class_id: int):
        result = await container.catalog.list_students(class_id)
        return _payload(EntityType.STUDENT, result)

    @app.route("/local/students/<int:student_id>/attendance", methods=["GET"], endpoint="local_student_attendance")
    async def local_student_attendance(student_id: int):
        date = request.args.get("date") or None
        result = await container.catalog.list_attendance(student_id, date)
        return _payload(EntityType.ATTENDANCE, result)
