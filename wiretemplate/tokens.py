"""HS256 JSON Web Tokens carrying a user id."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import jwt as pyjwt

from wiretemplate.config import Config

_ACCEPTED_ALGORITHMS = ["HS256", "HS384", "HS512"]
_DECODE_OPTIONS = {"verify_aud": False, "verify_iat": False, "verify_iss": False}


class TokenError(Exception):
    """Raised when a token cannot be signed, parsed or validated."""


@dataclass
class Claims:
    """Claims held by a token issued by :class:`JWT`."""

    user_id: str = ""
    expires_at: datetime | None = None
    issued_at: datetime | None = None
    not_before: datetime | None = None
    issuer: str = ""
    subject: str = ""
    id: str = ""
    audience: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Claims:
        audience = payload.get("aud") or []
        if isinstance(audience, str):
            audience = [audience]
        return cls(
            user_id=str(payload.get("UserId") or ""),
            expires_at=_from_numeric_date(payload.get("exp")),
            issued_at=_from_numeric_date(payload.get("iat")),
            not_before=_from_numeric_date(payload.get("nbf")),
            issuer=str(payload.get("iss") or ""),
            subject=str(payload.get("sub") or ""),
            id=str(payload.get("jti") or ""),
            audience=[str(item) for item in audience],
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the claims as a token payload, leaving out empty values."""
        payload: dict[str, Any] = {"UserId": self.user_id}
        optional = (
            ("iss", self.issuer or None),
            ("sub", self.subject or None),
            ("aud", list(self.audience) or None),
            ("exp", _to_numeric_date(self.expires_at)),
            ("nbf", _to_numeric_date(self.not_before)),
            ("iat", _to_numeric_date(self.issued_at)),
            ("jti", self.id or None),
        )
        payload.update((key, value) for key, value in optional if value is not None)
        return payload


def _to_numeric_date(moment: datetime | None) -> int | None:
    if moment is None:
        return None
    return int(moment.timestamp())


def _from_numeric_date(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(float(value), timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class JWT:
    """Signs and verifies tokens with a shared HMAC key."""

    def __init__(self, key: str | bytes) -> None:
        self.key = key.encode("utf-8") if isinstance(key, str) else bytes(key)

    def generate_token(self, user_id: str, expire_time: datetime) -> str:
        """Return a signed token for ``user_id`` that expires at ``expire_time``."""
        now = datetime.now(timezone.utc)
        claims = Claims(user_id=user_id, expires_at=expire_time, issued_at=now, not_before=now)
        try:
            return pyjwt.encode(claims.to_payload(), self.key, algorithm="HS256")
        except pyjwt.PyJWTError as exc:
            raise TokenError(str(exc)) from exc

    def parse_token(self, token: str) -> Claims:
        """Verify ``token`` and return its claims."""
        try:
            payload = pyjwt.decode(
                token, self.key, algorithms=_ACCEPTED_ALGORITHMS, options=_DECODE_OPTIONS
            )
        except pyjwt.PyJWTError as exc:
            raise TokenError(str(exc)) from exc
        return Claims.from_payload(payload)


def new_jwt(conf: Config) -> JWT:
    """Return a token signer keyed with the configured JWT secret."""
    return JWT(conf.app.jwt_secret)