"""Example: use the service layer directly (no Flask).

Records one attendance mark offline, then syncs once the server answers.
"""

import asyncio
import importlib

from config import get_settings_module

from src.attendance_sync.attendance_sync.container import build_container, settings_from_module
from src.attendance_sync.attendance_sync.schools.model import School
from src.attendance_sync.attendance_sync.classes.model import SchoolClass
from src.attendance_sync.attendance_sync.students.model import Student


async def main():
    settings = settings_from_module(importlib.import_module(get_settings_module()))
    container = build_container(settings=settings)
    storage = container.storage

    school_id = storage.schools.save(School(name="Escola Central", address="Rua A, 10"))
    class_id = storage.classes.save(SchoolClass(name="5A", school_id=school_id))
    student_id = storage.students.save(Student(name="Ana", class_id=class_id))

    await container.recorder.record_attendance(student_id, True, "chegou cedo")
    print("pending:", container.recorder.pending_count())

    if await container.monitor.refresh():
        result = await container.sync_service.sync_all()
        print(result.message)


if __name__ == "__main__":
    asyncio.run(main())
