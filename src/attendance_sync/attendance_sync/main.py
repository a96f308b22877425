from __future__ import annotations

import asyncio
import importlib
import logging
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .catalog.controller import register as register_catalog
from .container import Container, build_container, settings_from_module
from .core.exceptions import NotInitialized, StorageError, ValidationError
from .logging_config import configure_logging
from .sync.controller import register as register_sync

logger = logging.getLogger(__name__)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify({"success": False, "message": str(e)}), 400

    @app.errorhandler(StorageError)
    def handle_storage_error(e: StorageError):
        logger.error("Local storage failure: %s", e)
        return jsonify({"success": False, "message": str(e), "retry": True}), 503

    @app.errorhandler(NotInitialized)
    def handle_not_initialized(e: NotInitialized):
        return jsonify({"success": False, "message": str(e), "retry": True}), 503


def load_settings() -> tuple[str, dict]:
    load_dotenv(override=False)
    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    return settings_module, settings_from_module(settings) | {"SECRET_KEY": getattr(settings, "SECRET_KEY", None)}


def create_app(
    *,
    settings: Optional[Mapping[str, Any]] = None,
    container: Optional[Container] = None,
) -> Flask:
    if settings is None:
        settings_module, settings = load_settings()
    else:
        settings_module = "<override>"

    configure_logging(settings.get("LOG_LEVEL", "INFO"), settings.get("LOG_FILE"))

    app = Flask(__name__)
    app.secret_key = settings.get("SECRET_KEY") or "attendance-sync-local"
    app.config["DEBUG"] = bool(settings.get("DEBUG", False))

    if container is None:
        container = build_container(settings=settings)
        # First reading only; transitions after this trigger the reconnection sync.
        asyncio.run(container.monitor.refresh())

    logger.info(
        "attendance-sync settings=%s storage=%s api=%s online=%s",
        settings_module,
        container.storage.name,
        container.client.base_url,
        container.monitor.is_online,
    )

    app.extensions["attendance_sync"] = container

    _register_error_handlers(app)
    register_catalog(app, container)
    register_attendance(app, container)
    register_sync(app, container)

    return app
