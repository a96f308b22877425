from __future__ import annotations

import importlib
import logging

from config import get_settings_module
from scripts import run_agent

from src.attendance_sync.attendance_sync.container import settings_from_module
from src.attendance_sync.attendance_sync.logging_config import LOG_FORMAT, PACKAGE_LOGGER, configure_logging


def test_settings_module_follows_app_env(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    assert get_settings_module() == "config.production"
    monkeypatch.setenv("APP_ENV", "test")
    assert get_settings_module() == "config.testing"
    monkeypatch.setenv("APP_ENV", "whatever")
    assert get_settings_module() == "config.development"


def test_testing_settings_are_offline_and_in_memory():
    settings = settings_from_module(importlib.import_module("config.testing"))

    assert settings["STORAGE_BACKEND"] == "memory"
    assert settings["FORCE_OFFLINE"] is True
    assert settings["AUTO_SYNC_ON_RECONNECT"] is False


def test_configure_logging_installs_handlers_once(tmp_path):
    log_file = tmp_path / "logs" / "sync.log"

    configure_logging("debug", str(log_file))
    logger = configure_logging("DEBUG", str(log_file))

    ours = [h for h in logger.handlers if getattr(h, "_attendance_sync_handler", False)]
    assert len(ours) == 2
    assert logger.level == logging.DEBUG
    assert ours[0].formatter._fmt == LOG_FORMAT
    assert log_file.parent.is_dir()

    configure_logging("INFO")
    for handler in [h for h in logger.handlers if getattr(h, "_attendance_sync_handler", False)]:
        logger.removeHandler(handler)
        handler.close()


def test_agent_logger_reaches_package_handlers():
    logger = configure_logging("DEBUG")

    assert run_agent.logger.name.startswith(PACKAGE_LOGGER + ".")
    assert run_agent.logger.parent is logger
    assert run_agent.logger.getEffectiveLevel() == logging.DEBUG

    configure_logging("INFO")
    for handler in [h for h in logger.handlers if getattr(h, "_attendance_sync_handler", False)]:
        logger.removeHandler(handler)
        handler.close()
