from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import psycopg
from psycopg import Connection, errors

from .config import DbConfig
from .errors import PersistenceError, ValidationError
from .logging_setup import get_logger

logger = get_logger(__name__)


class DbError(PersistenceError):
    pass


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map driver exceptions onto the maintdesk error taxonomy."""
    try:
        yield
    except errors.ForeignKeyViolation as e:
        raise ValidationError("Referenced entity does not exist", details=_detail(e)) from e
    except errors.CheckViolation as e:
        raise ValidationError("Invalid maintenance order data", details=_detail(e)) from e
    except psycopg.Error as e:
        logger.error("Database error while trying to %s: %s", action, e)
        raise DbError(f"Failed to {action}") from e


def _detail(e: psycopg.Error) -> str:
    diag = getattr(e, "diag", None)
    return (diag.message_detail if diag is not None else None) or str(e)


@dataclass(frozen=True)
class Db:
    cfg: DbConfig

    def connect(self) -> Connection:
        try:
            return psycopg.connect(
                host=self.cfg.host,
                port=self.cfg.port,
                dbname=self.cfg.name,
                user=self.cfg.user,
                password=self.cfg.password,
                sslmode=self.cfg.sslmode,
                options=f"-c search_path={self.cfg.schema},public",
            )
        except psycopg.Error as e:
            raise DbError(
                "Cannot connect to database. Check config.toml [db] and that PostgreSQL is running."
            ) from e

    @contextmanager
    def session(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            with conn.transaction():
                yield conn
        finally:
            conn.close()
