"""Application settings loaded from a YAML file and overridden by environment variables."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_DIR = "./config"
_EXTENSIONS = ("yaml", "yml")
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False", ""}
_DURATION_UNITS_NS = {
    "ns": Decimal(1),
    "us": Decimal(1_000),
    "µs": Decimal(1_000),
    "μs": Decimal(1_000),
    "ms": Decimal(1_000_000),
    "s": Decimal(1_000_000_000),
    "m": Decimal(60_000_000_000),
    "h": Decimal(3_600_000_000_000),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigError(Exception):
    """Raised when configuration cannot be read, decoded or validated."""


@dataclass
class AppSettings:
    debug: bool = False
    jwt_secret: str = ""
    jwt_expire: timedelta = timedelta(0)
    app_key: str = ""
    app_secret: str = ""


@dataclass
class ServerSettings:
    port: int = 0
    run_mode: str = ""
    read_timeout: timedelta = timedelta(0)
    write_timeout: timedelta = timedelta(0)


@dataclass
class LogSettings:
    log_encoding: str = ""
    log_save_path: str = ""
    log_file_name: str = ""
    max_size: int = 0
    max_age: int = 0
    max_backups: int = 0
    compress: bool = False
    log_level: str = ""


@dataclass
class DatabaseSettings:
    type: str = ""
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    db_name: str = ""
    charset: str = ""
    table_prefix: str = ""


@dataclass
class RedisSettings:
    host: str = ""
    password: str = ""
    db: int = 0
    max_idle: int = 0
    max_active: int = 0
    idle_timeout: timedelta = timedelta(0)


@dataclass
class Config:
    app: AppSettings = field(default_factory=AppSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    log: LogSettings = field(default_factory=LogSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)


def _parse_duration(text: str) -> timedelta:
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ConfigError(f"invalid duration {text!r}")
    total = Decimal(0)
    position = 0
    while position < len(rest):
        match = _DURATION_PART.match(rest, position)
        if match is None:
            raise ConfigError(f"invalid duration {text!r}")
        try:
            total += Decimal(match.group(1)) * _DURATION_UNITS_NS[match.group(2)]
        except InvalidOperation as exc:
            raise ConfigError(f"invalid duration {text!r}") from exc
        position = match.end()
    return timedelta(microseconds=float(sign * int(total)) / 1_000)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value in _TRUE_WORDS:
            return True
        if value in _FALSE_WORDS:
            return False
    raise ConfigError(f"cannot decode {value!r} as a boolean")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        if value == "":
            return 0
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"cannot decode {value!r} as an integer") from exc
    raise ConfigError(f"cannot decode {value!r} as an integer")


def _to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    raise ConfigError(f"cannot decode {value!r} as a string")


def _to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigError(f"cannot decode {value!r} as a duration")
    if isinstance(value, (int, float)):
        return timedelta(microseconds=int(value) / 1_000)
    if isinstance(value, str):
        return _parse_duration(value)
    raise ConfigError(f"cannot decode {value!r} as a duration")


_DECODERS = {bool: _to_bool, int: _to_int, str: _to_str, timedelta: _to_duration}


def _decode_section(settings_type: type, raw: Any) -> Any:
    if raw is None:
        return settings_type()
    if not isinstance(raw, Mapping):
        raise ConfigError(f"cannot decode {raw!r} into {settings_type.__name__}")
    lowered = {str(key).lower(): value for key, value in raw.items()}
    values = {}
    for item in fields(settings_type):
        key = item.name.replace("_", "")
        value = lowered.get(key)
        if value is None:
            continue
        decoder = _DECODERS[type(item.default)]
        try:
            values[item.name] = decoder(value)
        except ConfigError as exc:
            raise ConfigError(f"{settings_type.__name__}.{item.name}: {exc}") from exc
    return settings_type(**values)


def _lower_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key).lower(): _lower_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def _read_yaml(config_name: str, config_dir: Path) -> dict[str, Any]:
    for extension in _EXTENSIONS:
        path = config_dir / f"{config_name}.{extension}"
        if path.is_file():
            break
    else:
        raise ConfigError(f'Config File "{config_name}" Not Found in "[{config_dir}]"')
    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{path} does not hold a mapping")
    return _lower_keys(data)


def load_config_file(config_name: str, config_dir: str | os.PathLike = DEFAULT_CONFIG_DIR) -> dict[str, Any]:
    """Read ``<config_name>.yaml`` from ``config_dir``, falling back to ``local.yaml``.

    Keys are lower-cased at every level.
    """
    directory = Path(config_dir)
    try:
        return _read_yaml(config_name, directory)
    except ConfigError as exc:
        print(f"Warning: Could not read config file {config_name}: {exc}. Trying default 'local'.")
        try:
            return _read_yaml("local", directory)
        except ConfigError as fallback_exc:
            raise ConfigError(
                f"fatal error config file {config_name} or default local.yaml not found: {fallback_exc}"
            ) from fallback_exc


def _override_with_env(config: Config, environ: Mapping[str, str]) -> None:
    overrides = (
        ("APP_JWT_SECRET", config.app, "jwt_secret"),
        ("APP_APP_SECRET", config.app, "app_secret"),
        ("APP_APP_KEY", config.app, "app_key"),
        ("DB_HOST", config.database, "host"),
        ("DB_NAME", config.database, "db_name"),
        ("DB_USER", config.database, "user"),
        ("DB_PASSWORD", config.database, "password"),
        ("DB_CHARSET", config.database, "charset"),
        ("REDIS_HOST", config.redis, "host"),
        ("REDIS_PASSWORD", config.redis, "password"),
    )
    for variable, section, attribute in overrides:
        value = environ.get(variable, "")
        if value:
            setattr(section, attribute, value)


def _file_database_password(environ: Mapping[str, str], config_dir: str | os.PathLike) -> str:
    from_env = environ.get("DATABASE_PASSWORD", "")
    if from_env:
        return from_env
    raw = load_config_file(environ.get("APP_CONF", ""), config_dir)
    database = raw.get("database")
    if not isinstance(database, Mapping):
        return ""
    value = database.get("password")
    if value is None:
        return ""
    try:
        return _to_str(value)
    except ConfigError:
        return ""


def _validate_secrets(config: Config, environ: Mapping[str, str], config_dir: str | os.PathLike) -> None:
    missing = []
    if not config.app.jwt_secret:
        missing.append("APP_JWT_SECRET")
    if not config.app.app_secret:
        missing.append("APP_APP_SECRET")
    if not config.app.app_key:
        missing.append("APP_APP_KEY")
    if not config.database.password and config.server.run_mode == "release":
        if not _file_database_password(environ, config_dir):
            missing.append("DB_PASSWORD")
    if missing:
        raise ConfigError(
            "FATAL ERROR: Required secret(s) not set in environment for production: " + ", ".join(missing)
        )


def new_config(
    config_name: str = "",
    config_dir: str | os.PathLike = DEFAULT_CONFIG_DIR,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load settings, apply environment overrides and check production secrets.

    The ``APP_CONF`` variable, when set, names the config file instead of ``config_name``.
    """
    env = os.environ if environ is None else environ
    name = env.get("APP_CONF", "") or config_name
    print("envCnf:", name)
    raw = load_config_file(name, config_dir)

    server = _decode_section(ServerSettings, raw.get("server"))
    app = _decode_section(AppSettings, raw.get("app"))
    log = _decode_section(LogSettings, raw.get("log"))
    database = _decode_section(DatabaseSettings, raw.get("database"))
    redis = _decode_section(RedisSettings, raw.get("redis"))
    config = Config(app=app, server=server, log=log, database=database, redis=redis)

    _override_with_env(config, env)
    if config.server.run_mode == "release":
        _validate_secrets(config, env, config_dir)
    return config