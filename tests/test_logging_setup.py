"""
Tests for the logging bootstrap.
"""

from __future__ import annotations

import logging

import pytest

from role_reconciler.logging_setup import (
    LEVEL_ENV_VAR,
    NAMESPACE,
    configure_logging,
    get_logger,
)


def _owned_handlers() -> list[logging.Handler]:
    return [
        h for h in logging.getLogger(NAMESPACE).handlers
        if getattr(h, "_role_reconciler_handler", False)
    ]


class TestConfigureLogging:
    def test_handlers_not_stacked(self) -> None:
        configure_logging(logging.INFO)
        configure_logging(logging.INFO)
        assert len(_owned_handlers()) >= 1
        assert len(_owned_handlers()) == len({type(h) for h in _owned_handlers()})

    def test_level_by_name(self, monkeypatch) -> None:
        monkeypatch.delenv(LEVEL_ENV_VAR, raising=False)
        root = configure_logging("warning")
        assert root.level == logging.WARNING
        assert all(h.level == logging.WARNING for h in _owned_handlers())

    def test_environment_override(self, monkeypatch) -> None:
        monkeypatch.setenv(LEVEL_ENV_VAR, "DEBUG")
        assert configure_logging(logging.ERROR).level == logging.DEBUG

    def test_unknown_level(self, monkeypatch) -> None:
        monkeypatch.delenv(LEVEL_ENV_VAR, raising=False)
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("chatty")

    def test_child_logger_name(self) -> None:
        assert get_logger("engine").name == "role_reconciler.engine"
