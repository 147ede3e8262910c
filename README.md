# wiretemplate

A layered web application skeleton: HTTP handlers call services, services
call repositories, and repositories read from MySQL. A Redis cache wrapper
and a runner for periodic background jobs come with it.

## Modules

- `wiretemplate.config` – `new_config` loads a YAML file with `server`, `app`,
  `log`, `database` and `redis` sections into a `Config` of dataclasses, and
  lets environment variables override secrets and connection settings.
  `load_config_file` reads the raw file. Problems raise `ConfigError`.
- `wiretemplate.tokens` – `JWT.generate_token` issues HS256 tokens carrying a
  user id; `JWT.parse_token` verifies them and returns `Claims`, raising
  `TokenError` on failure. `new_jwt` keys a `JWT` with the configured secret.
- `wiretemplate.applog` – `new_log` builds a `Logger` writing JSON or console
  lines to stdout and to a size-rotated log file. `Logger.with_context` adds
  fields and the request/correlation ids from a context made by
  `with_request`.
- `wiretemplate.cache` – `Redis` stores JSON values with an expiry
  (`set`, `get`, `exists`, `delete`, `like_deletes`); `like_deletes` refuses
  an empty or `*` pattern with `UnsafePatternError`. `new_redis` connects to
  the configured server.
- `wiretemplate.db` – `new_db` creates a SQLAlchemy engine for the
  configured database (URL built by `build_dsn`) and logs every statement;
  `DB.with_context` and `DB.transactional` run work inside or outside a
  transaction carried in a context mapping; `close_db` releases the engine.
- `wiretemplate.model` – the `User` record and the table name constants.
- `wiretemplate.repository` / `wiretemplate.service` – `UserRepository.get_list`
  and `UserService.get_list` return one page of users, newest first.
- `wiretemplate.web` – the Flask application (`setup_routes`, `build_app`,
  `Server`), the `UserHandler` and the token-checking `api_middleware`
  decorator.
- `wiretemplate.command` – `Command` runs the scheduled jobs; `DemoTask`
  prints the user table.
- `wiretemplate.util` and `wiretemplate.sid` – base62 encoding, random
  passwords, MD5 digests, UUIDs, and `Sid`, a generator of time-ordered
  unique ids.

## Installation

```
pip install .
```

The database URL uses the `mysql+pymysql` dialect, so the PyMySQL driver
must be installed alongside the package to reach a database.

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

Configuration files live in `./config` and are chosen by name with the
`APP_CONF` environment variable (for example `APP_CONF=local` reads
`config/local.yaml`). If the named file cannot be read, `local.yaml` is
tried instead. The commands load a `.env` file from the working directory
first.

Environment variables that override the file:

| Variable          | Setting                |
|-------------------|------------------------|
| `APP_JWT_SECRET`  | JWT signing secret     |
| `APP_APP_SECRET`  | application secret     |
| `APP_APP_KEY`     | application key        |
| `DB_HOST`         | database host          |
| `DB_NAME`         | database name          |
| `DB_USER`         | database user          |
| `DB_PASSWORD`     | database credential    |
| `DB_CHARSET`      | database charset       |
| `REDIS_HOST`      | Redis address          |
| `REDIS_PASSWORD`  | Redis credential       |

When the server run mode is `release`, the JWT secret, application secret
and application key must be set, and so must a database credential; loading
the configuration fails with `ConfigError` otherwise.

## Running

Start the HTTP server on the port from the `server` section:

```
wiretemplate-server
```

Routes:

- `GET /ping` – answers `pong`
- `GET /user` – a greeting from the user handler
- `GET /users` – one page of users as JSON; `page` and `page_size` query
  parameters default to 1 and 10
- `GET /` and other paths – files from the `resources/` directory

Every response carries an `X-Request-ID` header and allows any origin.

Start the scheduled jobs (stop with Ctrl-C):

```
wiretemplate-command
```

## Using the pieces directly

```python
from datetime import datetime, timedelta, timezone

from wiretemplate.config import new_config
from wiretemplate.tokens import new_jwt
from wiretemplate.util import int_to_base62, encode_md5

conf = new_config("local", "./config", {})
signer = new_jwt(conf)
signed = signer.generate_token("user-1", datetime.now(timezone.utc) + timedelta(hours=1))
claims = signer.parse_token(signed)

print(int_to_base62(125))   # "21"
print(encode_md5("hello"))  # 5d41402abc4b2a76b9719d911017c592
```

## What it does not do

- Users can only be listed and greeted: there are no routes or repository
  methods to create, update or delete users.
- `api_middleware` is provided as a decorator but no route uses it.
- There is no database migration command.