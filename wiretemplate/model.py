"""Table names and the user record."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

TBA_USER = "tb_auth_user"
TBA_GROUP = "tba_group"
TBA_RULE = "tba_rule"
TBA_USER_GROUP = "tba_user_group"
TBA_GROUP_ACCESS = "tba_group_access"
TBA_ACCESS_LOG = "tb_auth_access_log"


def _coerce(kind: type, value: Any) -> Any:
    if kind is str:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8")
        return str(value)
    return int(value)


@dataclass
class User:
    """A row of the user table."""

    id: int = 0
    user_id: str = ""
    username: str = ""
    nickname: str = ""
    password: str = ""
    skill: str = ""
    sex: int = 0
    status: int = 0
    address: str = ""
    mobile: str = ""
    qq: str = ""
    email: str = ""
    created_at: int = 0
    updated_at: int = 0
    deleted_at: int = 0

    def table_name(self) -> str:
        return TBA_USER

    def to_dict(self) -> dict[str, Any]:
        """Return the non-empty fields, in declaration order."""
        return {item.name: value for item in fields(self) if (value := getattr(self, item.name))}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> User:
        """Build a user from a column mapping; unknown columns and NULLs are ignored."""
        known = {item.name: type(item.default) for item in fields(cls)}
        values = {}
        for key, value in row.items():
            name = str(key).lower()
            if name in known and value is not None:
                values[name] = _coerce(known[name], value)
        return cls(**values)