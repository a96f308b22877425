from __future__ import annotations

from flask import Flask, jsonify

from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/local/sync", methods=["POST"], endpoint="local_sync")
    async def local_sync():
        # A reconnection detected here already synced through the monitor listener.
        before = container.sync_service.last_result
        await container.monitor.refresh()
        result = container.sync_service.last_result
        if result is None or result is before:
            result = await container.session.sync()

        body = {
            "success": result.success,
            "busy": result.busy,
            "message": result.message,
            "finished_at": result.finished_at,
            "failures": [
                {"type": f.entity.value, "phase": f.phase, "message": f.message} for f in result.failures
            ],
        }
        status = 409 if result.busy else 200
        return jsonify(body), status

    @app.route("/local/status", methods=["GET"], endpoint="local_status")
    async def local_status():
        online = await container.monitor.refresh()
        status = container.session.sync_status
        return jsonify(
            {
                "online": online,
                "storage": container.storage.name,
                "syncing": status.loading,
                "last_sync": status.last_sync,
                "error": status.error,
                "pending": container.session.pending_count(),
            }
        )
