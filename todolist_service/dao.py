from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
import sqlparse

from .errors import BackendKindError, StoreError
from .logs import get_logger

logger = get_logger(__name__)

MONGO_TIMEOUT_MS = 5000


class BackendKind(str, Enum):
    MOCK = "mock"
    DOCUMENT_STORE = "mongodb"
    RELATIONAL_STORE = "postgresql"


def parse_backend_kind(identifier: str) -> BackendKind:
    try:
        return BackendKind(identifier)
    except ValueError:
        raise BackendKindError(identifier, [kind.value for kind in BackendKind]) from None


class Store(ABC):
    kind: BackendKind

    @abstractmethod
    def ping(self) -> bool:
        ...

    def close(self) -> None:
        return


class MockStore(Store):
    kind = BackendKind.MOCK

    def ping(self) -> bool:
        return True


class DocumentStore(Store):
    kind = BackendKind.DOCUMENT_STORE

    def __init__(self, uri: str, timeout_ms: int = MONGO_TIMEOUT_MS) -> None:
        if not uri:
            raise StoreError("a connection string is required for the mongodb backend")
        try:
            self._client: MongoClient = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        except PyMongoError as exc:
            raise StoreError(f"invalid mongodb connection string: {exc}") from exc
        try:
            self._client.admin.command("ping")
        except PyMongoError as exc:
            self._client.close()
            raise StoreError(f"cannot reach mongodb: {exc}") from exc

    def ping(self) -> bool:
        try:
            self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.warning("store_ping_failed", backend=self.kind.value, error=str(exc))
            return False
        return True

    def close(self) -> None:
        self._client.close()


def _migration_files(migration_path: str) -> List[Path]:
    folder = Path(migration_path)
    if not folder.is_dir():
        raise StoreError(f"migration path {migration_path!r} is not a directory")
    return sorted(p for p in folder.glob("*.sql") if p.is_file())


def _split_statements(script: str) -> List[str]:
    statements = [sqlparse.format(part, strip_comments=True).strip() for part in sqlparse.split(script)]
    return [statement.rstrip(";").rstrip() for statement in statements if statement]


def _apply_migrations(conn: Connection, files: List[Path]) -> int:
    conn.execute(text(
        "CREATE TABLE IF NOT EXISTS schema_migrations "
        "(name VARCHAR(255) PRIMARY KEY, applied_at VARCHAR(64) NOT NULL)"
    ))
    applied = {row[0] for row in conn.execute(text("SELECT name FROM schema_migrations"))}
    count = 0
    for path in files:
        if path.name in applied:
            continue
        for statement in _split_statements(path.read_text(encoding="utf-8")):
            conn.exec_driver_sql(statement)
        conn.execute(
            text("INSERT INTO schema_migrations (name, applied_at) VALUES (:name, :applied_at)"),
            {"name": path.name, "applied_at": datetime.now(timezone.utc).isoformat()},
        )
        logger.info("migration_applied", name=path.name)
        count += 1
    return count


class RelationalStore(Store):
    kind = BackendKind.RELATIONAL_STORE

    def __init__(self, url: str, migration_path: str) -> None:
        if not url:
            raise StoreError("a connection string is required for the postgresql backend")
        files = _migration_files(migration_path)
        try:
            self._engine = create_engine(url, pool_pre_ping=True)
        except (SQLAlchemyError, ImportError) as exc:
            raise StoreError(f"invalid database url: {exc}") from exc
        try:
            with self._engine.begin() as conn:
                applied = _apply_migrations(conn, files)
        except (SQLAlchemyError, OSError, UnicodeDecodeError) as exc:
            self._engine.dispose()
            raise StoreError(f"database migration failed: {exc}") from exc
        logger.debug("migrations_done", applied=applied, available=len(files))

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("store_ping_failed", backend=self.kind.value, error=str(exc))
            return False
        return True

    def close(self) -> None:
        self._engine.dispose()


def create_store(kind: BackendKind, db: str, migration_path: str) -> Store:
    if kind is BackendKind.MOCK:
        return MockStore()
    if kind is BackendKind.DOCUMENT_STORE:
        return DocumentStore(db)
    return RelationalStore(db, migration_path)
