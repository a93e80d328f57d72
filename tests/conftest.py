from __future__ import annotations

import logging
import signal

import pytest
import structlog

from todolist_service import logs


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    level = root.level
    yield
    if logs._handler is not None:
        root.removeHandler(logs._handler)
        logs._handler = None
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def restore_signals():
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


@pytest.fixture
def migration_dir(tmp_path):
    folder = tmp_path / "migration"
    folder.mkdir()
    (folder / "001_init.sql").write_text(
        "CREATE TABLE todo (id INTEGER PRIMARY KEY, title TEXT NOT NULL);\n"
        "INSERT INTO todo (title) VALUES ('write the launcher');\n",
        encoding="utf-8",
    )
    (folder / "002_done.sql").write_text(
        "ALTER TABLE todo ADD COLUMN done INTEGER NOT NULL DEFAULT 0;\n",
        encoding="utf-8",
    )
    return folder
