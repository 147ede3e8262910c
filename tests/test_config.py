from datetime import timedelta

import pytest

from wiretemplate.config import ConfigError, load_config_file, new_config

LOCAL_YAML = """\
app:
  DEBUG: true
  JWTSecret: secret
  jwtexpire: 2h
  appkey: placeholder
  appsecret: secret
server:
  port: 8000
  runmode: debug
  readtimeout: 30s
  writetimeout: 1000000000
log:
  logencoding: console
  logsavepath: storage/logs
  logfilename: app.log
  maxsize: 10
  maxage: 7
  maxbackups: 3
  compress: true
  loglevel: debug
database:
  type: mysql
  host: localhost
  port: 3306
  user: user
  password: password
  dbname: demo
  charset: utf8mb4
  tableprefix: tb_
redis:
  host: localhost:6379
  password: ""
  db: 0
  maxidle: 5
  maxactive: 20
  idletimeout: 200s
"""


@pytest.fixture
def config_dir(tmp_path):
    directory = tmp_path / "config"
    directory.mkdir()
    (directory / "local.yaml").write_text(LOCAL_YAML, encoding="utf-8")
    return directory


def test_loads_all_sections(config_dir):
    conf = new_config("local", config_dir, environ={})
    assert conf.app.debug is True
    assert conf.app.jwt_secret == "secret"
    assert conf.app.app_key == "placeholder"
    assert conf.server.port == 8000
    assert conf.server.run_mode == "debug"
    assert conf.log.log_file_name == "app.log"
    assert conf.log.max_backups == 3
    assert conf.log.compress is True
    assert conf.database.db_name == "demo"
    assert conf.database.table_prefix == "tb_"
    assert conf.redis.host == "localhost:6379"
    assert conf.redis.max_active == 20


def test_durations_parse_strings_and_nanoseconds(config_dir):
    conf = new_config("local", config_dir, environ={})
    assert conf.app.jwt_expire == timedelta(hours=2)
    assert conf.server.read_timeout == timedelta(seconds=30)
    assert conf.server.write_timeout == timedelta(seconds=1)
    assert conf.redis.idle_timeout == timedelta(seconds=200)


def test_prints_chosen_name(config_dir, capsys):
    new_config("local", config_dir, environ={})
    assert "envCnf: local" in capsys.readouterr().out


def test_app_conf_variable_takes_precedence(config_dir):
    (config_dir / "prod.yml").write_text("server:\n  port: 9100\n", encoding="utf-8")
    conf = new_config("local", config_dir, environ={"APP_CONF": "prod"})
    assert conf.server.port == 9100
    assert conf.database.host == ""


def test_missing_file_falls_back_to_local(config_dir, capsys):
    conf = new_config("absent", config_dir, environ={})
    assert conf.server.port == 8000
    assert "Trying default 'local'" in capsys.readouterr().out


def test_no_file_at_all_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config_file("absent", tmp_path)


def test_load_config_file_lowercases_keys(config_dir):
    raw = load_config_file("local", config_dir)
    assert raw["app"]["jwtsecret"] == "secret"
    assert raw["app"]["debug"] is True


def test_environment_overrides(config_dir):
    environ = {
        "APP_JWT_SECRET": "token",
        "DB_HOST": "db.example.com",
        "DB_NAME": "other",
        "DB_PORT": "1234",
        "REDIS_HOST": "cache.example.com:6379",
        "REDIS_DB": "4",
    }
    conf = new_config("local", config_dir, environ=environ)
    assert conf.app.jwt_secret == "token"
    assert conf.database.host == "db.example.com"
    assert conf.database.db_name == "other"
    assert conf.database.port == 3306
    assert conf.redis.host == "cache.example.com:6379"
    assert conf.redis.db == 0


def test_empty_env_value_does_not_override(config_dir):
    conf = new_config("local", config_dir, environ={"DB_USER": ""})
    assert conf.database.user == "user"


def test_weakly_typed_values(tmp_path):
    (tmp_path / "local.yaml").write_text(
        'server:\n  port: "8080"\napp:\n  debug: "true"\nlog:\n  compress: 1\n', encoding="utf-8"
    )
    conf = new_config("local", tmp_path, environ={})
    assert conf.server.port == 8080
    assert conf.app.debug is True
    assert conf.log.compress is True


def test_bad_value_raises(tmp_path):
    (tmp_path / "local.yaml").write_text("server:\n  port: abc\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        new_config("local", tmp_path, environ={})


def test_bad_duration_raises(tmp_path):
    (tmp_path / "local.yaml").write_text("server:\n  readtimeout: 5 parsecs\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        new_config("local", tmp_path, environ={})


def test_release_without_secrets_raises(tmp_path):
    (tmp_path / "local.yaml").write_text("server:\n  runmode: release\n", encoding="utf-8")
    with pytest.raises(ConfigError) as info:
        new_config("local", tmp_path, environ={})
    message = str(info.value)
    assert message.startswith("FATAL ERROR: Required secret(s) not set in environment for production")
    assert "APP_JWT_SECRET, APP_APP_SECRET, APP_APP_KEY, DB_PASSWORD" in message


def test_release_with_secrets_from_environment(tmp_path):
    (tmp_path / "local.yaml").write_text("server:\n  runmode: release\n", encoding="utf-8")
    environ = {
        "APP_JWT_SECRET": "secret",
        "APP_APP_SECRET": "secret",
        "APP_APP_KEY": "placeholder",
        "DB_PASSWORD": "password",
    }
    conf = new_config("local", tmp_path, environ=environ)
    assert conf.database.password == "password"
    assert conf.app.app_key == "placeholder"


def test_release_accepts_database_password_variable(tmp_path):
    (tmp_path / "local.yaml").write_text("server:\n  runmode: release\n", encoding="utf-8")
    environ = {
        "APP_JWT_SECRET": "secret",
        "APP_APP_SECRET": "secret",
        "APP_APP_KEY": "placeholder",
        "DATABASE_PASSWORD": "password",
    }
    conf = new_config("local", tmp_path, environ=environ)
    assert conf.database.password == ""
    assert conf.server.run_mode == "release"


def test_release_with_file_secrets_passes(config_dir):
    text = (config_dir / "local.yaml").read_text(encoding="utf-8").replace("runmode: debug", "runmode: release")
    (config_dir / "local.yaml").write_text(text, encoding="utf-8")
    conf = new_config("local", config_dir, environ={})
    assert conf.server.run_mode == "release"
    assert conf.database.password == "password"