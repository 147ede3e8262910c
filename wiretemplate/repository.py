"""Data access for users."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import literal_column, select, table, text
from sqlalchemy.engine import Engine

from wiretemplate.db import DB
from wiretemplate.model import TBA_USER, User

_MAX_LIMIT = 9223372036854775807


@dataclass
class Repository:
    """Shared stores and logger for repositories."""

    db: Engine
    rdb: Any = None
    logger: Any = None


class UserRepository:
    """Reads users from the user table."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def get_list(self, ctx: Mapping[Any, Any] | None, page: int, page_size: int) -> list[User]:
        """Return one page of users, newest id first."""
        offset = max((page - 1) * page_size, 0)
        query = select(literal_column("*")).select_from(table(TBA_USER)).order_by(text("id DESC"))
        if page_size >= 0:
            query = query.limit(page_size)
        elif offset > 0:
            query = query.limit(_MAX_LIMIT)
        if offset > 0:
            query = query.offset(offset)
        with DB(self.repository.db).with_context(ctx) as conn:
            rows = conn.execute(query).all()
        return [User.from_row(row._mapping) for row in rows]