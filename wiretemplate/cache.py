"""JSON values stored in Redis with an expiry."""

from __future__ import annotations

import json
from typing import Any

import redis

from wiretemplate.config import Config

DEFAULT_PORT = 6379


class UnsafePatternError(ValueError):
    """Raised when a bulk delete pattern would match every key."""


def _marshal(data: Any) -> str:
    text = json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    for raw, escaped in (("<", "\\u003c"), (">", "\\u003e"), ("&", "\\u0026"),
                         ("\u2028", "\\u2028"), ("\u2029", "\\u2029")):
        text = text.replace(raw, escaped)
    return text


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_PORT
    try:
        return host, int(port)
    except ValueError as exc:
        raise ValueError(f"invalid redis address {address!r}") from exc


class Redis:
    """Cache operations over a Redis client."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def set(self, key: str, data: Any, ttl: int) -> None:
        """Store ``data`` as JSON under ``key`` for ``ttl`` seconds."""
        self.client.set(key, _marshal(data))
        self.client.expire(key, ttl)

    def exists(self, key: str) -> bool:
        """Return whether ``key`` exists; lookup failures count as absent."""
        try:
            return bool(self.client.exists(key))
        except redis.RedisError:
            return False

    def get(self, key: str) -> bytes:
        """Return the raw value of ``key``; raise KeyError when it is not set."""
        reply = self.client.get(key)
        if reply is None:
            raise KeyError(key)
        return reply if isinstance(reply, bytes) else str(reply).encode("utf-8")

    def delete(self, key: str | bytes) -> bool:
        """Delete ``key`` and return whether anything was removed."""
        return bool(self.client.delete(key))

    def like_deletes(self, pattern: str) -> None:
        """Delete every key containing ``pattern``."""
        if pattern in ("", "*"):
            raise UnsafePatternError(
                f"redis: unsafe LikeDeletes pattern '{pattern}'. Aborting KEYS command"
            )
        for key in self.client.keys("*" + pattern + "*"):
            try:
                self.delete(key)
            except redis.RedisError as exc:
                name = key.decode("utf-8", "replace") if isinstance(key, bytes) else key
                raise redis.RedisError(f"redis: error deleting key '{name}': {exc}") from exc


def new_redis(conf: Config) -> Redis:
    """Return a cache backed by a connection pool to the configured server."""
    settings = conf.redis
    host, port = _split_address(settings.host)
    pool = redis.ConnectionPool(
        host=host,
        port=port,
        password=settings.password or None,
        max_connections=settings.max_active if settings.max_active > 0 else None,
    )
    return Redis(redis.Redis(connection_pool=pool))