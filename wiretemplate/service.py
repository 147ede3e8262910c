"""Business logic for users."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from wiretemplate.model import User
from wiretemplate.repository import UserRepository


@dataclass
class Service:
    """Shared dependencies for services."""

    logger: Any = None
    sid: Any = None
    jwt: Any = None


class UserService:
    """User operations on top of a user repository."""

    def __init__(self, service: Service, user_repo: UserRepository) -> None:
        self.service = service
        self.user_repo = user_repo

    def get_list(self, ctx: Mapping[Any, Any] | None, page: int, page_size: int) -> list[User]:
        """Return and print one page of users."""
        users = self.user_repo.get_list(ctx, page, page_size)
        print(users)
        return users