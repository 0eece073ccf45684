from __future__ import annotations

import logging

import pytest

from bulkota.utils import logging as log_setup


@pytest.fixture(autouse=True)
def _restore_root(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(log_setup.LEVEL_ENV, raising=False)
    monkeypatch.delenv(log_setup.DEBUG_ENV, raising=False)
    root = logging.getLogger()
    before = root.level
    yield
    root.setLevel(before)


def test_verbose_flag_selects_debug() -> None:
    assert log_setup.apply_verbosity(True) == logging.DEBUG
    assert log_setup.apply_verbosity(False) == logging.INFO
    assert logging.getLogger().level == logging.INFO


def test_level_env_wins_over_debug_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(log_setup.LEVEL_ENV, "warning")
    monkeypatch.setenv(log_setup.DEBUG_ENV, "1")

    assert log_setup.configure_root() == logging.WARNING
    assert log_setup.apply_verbosity(True) == logging.WARNING


def test_debug_env_and_unknown_level_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(log_setup.LEVEL_ENV, "chatty")
    monkeypatch.setenv(log_setup.DEBUG_ENV, "yes")

    assert log_setup.apply_verbosity(False) == logging.DEBUG
    assert log_setup.level_name(logging.DEBUG) == "DEBUG"
