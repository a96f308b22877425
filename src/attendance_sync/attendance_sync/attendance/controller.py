from __future__ import annotations

from flask import Flask, jsonify, request

from ..container import Container
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    @app.route("/local/attendance", methods=["POST"], endpoint="local_record_attendance")
    async def local_record_attendance():
        data = request.get_json(silent=True) or {}

        student_id = data.get("AlunoId", data.get("student_id"))
        present = data.get("present")
        if student_id is None or present is None:
            raise ValidationError("AlunoId and present are required")

        ok = await container.recorder.record_attendance(
            student_id,
            present,
            data.get("observacao") or data.get("observation"),
            date=data.get("date") or None,
        )
        if not ok:
            return jsonify({"success": False, "message": "Could not save attendance locally", "retry": True}), 503

        return jsonify(
            {
                "success": True,
                "message": "Attendance saved",
                "pending": container.recorder.pending_count(),
            }
        ), 201
