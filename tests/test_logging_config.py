from __future__ import annotations

import logging

import pytest

from pgsetup.logging_config import ContextLogger, configure_logging, increase_verbosity


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_increase_verbosity_steps_one_level_per_flag() -> None:
    assert increase_verbosity(logging.INFO, 0) == logging.INFO
    assert increase_verbosity(logging.INFO, 1) == logging.DEBUG
    assert increase_verbosity(logging.INFO, 5) == 1


def test_configure_logging_uses_env_level(monkeypatch) -> None:
    monkeypatch.setenv("PGSETUP_LOG_LEVEL", "warning")
    assert configure_logging(force=True) == logging.WARNING
    assert configure_logging(verbosity=1) == logging.INFO


def test_context_logger_appends_bound_fields(caplog) -> None:
    log = ContextLogger(logging.getLogger("pgsetup.test"), {"primary": "10.0.0.5:5432"})
    step_log = log.bind(step="create-table")

    with caplog.at_level(logging.INFO, logger="pgsetup.test"):
        step_log.info("Running %s", "thing")

    assert caplog.messages == ["Running thing [primary=10.0.0.5:5432 step=create-table]"]
    assert log.extra == {"primary": "10.0.0.5:5432"}
