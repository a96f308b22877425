"""Attendance Sync package.

Offline-first attendance tracking core organized by feature modules
(schools, classes, students, attendance, ...) around one owned local store,
with a sync layer that reconciles with the remote server when online.
"""
