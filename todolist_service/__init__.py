from __future__ import annotations

APP_NAME = "todolist"

__version__ = "1.0.0"
