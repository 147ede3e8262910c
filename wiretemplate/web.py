"""HTTP API: user handlers, token middleware, routes and the server entry point."""

from __future__ import annotations

import argparse
import functools
import os
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, g, jsonify, make_response, request, send_from_directory
from sqlalchemy.exc import SQLAlchemyError

from wiretemplate.applog import REQUEST_ID_LOCAL, new_log, with_request
from wiretemplate.cache import new_redis
from wiretemplate.config import Config, new_config
from wiretemplate.db import new_db
from wiretemplate.repository import Repository, UserRepository
from wiretemplate.service import Service, UserService
from wiretemplate.sid import Sid
from wiretemplate.tokens import JWT, TokenError, new_jwt

BODY_LIMIT = 10 * 1024 * 1024
SERVER_HEADER = "Fiber"
REQUEST_ID_HEADER = "X-Request-ID"
DEFAULT_STATIC_FOLDER = "resources/"
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10

_CORS_DEFAULT_METHODS = "GET,POST,HEAD,PUT,DELETE,PATCH"
_API_ALLOW_HEADERS = (
    "Content-Type, Content-Length, Accept-Encoding, X-CSRF-Token, Authorization, "
    "accept, origin, Cache-Control, X-Requested-With"
)
_API_ALLOW_METHODS = "POST, OPTIONS, GET, PUT"


class UserHandler:
    """Request handlers for user endpoints."""

    def __init__(self, logger: Any, user_service: UserService) -> None:
        self.logger = logger
        self.user_service = user_service

    def create_user(self) -> str:
        return "CreateUser"

    def get_user(self) -> str:
        return "Hello, World! GetUser"

    def get_user_list(self) -> Response:
        """Return one page of users as JSON, or a 500 response with the error message."""
        page = request.args.get("page", DEFAULT_PAGE, type=int)
        page_size = request.args.get("page_size", DEFAULT_PAGE_SIZE, type=int)
        ctx = with_request(None, request.headers, {REQUEST_ID_LOCAL: g.get("requestid")})
        try:
            users = self.user_service.get_list(ctx, page, page_size)
        except SQLAlchemyError as exc:
            self.logger.with_context(ctx).error("user list failed", error=str(exc))
            return make_response(jsonify({"message": str(exc)}), 500)
        return make_response(jsonify({"users": [user.to_dict() for user in users]}), 200)


def api_middleware(jwt: JWT) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Return a view decorator that requires a valid token and stores its claims in ``g.user``."""

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            token = request.headers.get("Authorization") or request.headers.get("access_token") or ""
            response: Response
            if not token:
                response = Response("Unauthorized", status=401)
            else:
                try:
                    g.user = jwt.parse_token(token)
                except TokenError:
                    response = Response("Unauthorized", status=401)
                else:
                    response = make_response(view(*args, **kwargs))
                    if request.method == "OPTIONS" and response.status_code == 200:
                        response.status_code = 204
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Access-Control-Allow-Headers"] = _API_ALLOW_HEADERS
            response.headers["Access-Control-Allow-Methods"] = _API_ALLOW_METHODS
            return response

        return wrapper

    return decorator


@dataclass
class Server:
    """An HTTP server around a Flask application."""

    app: Flask

    def start(self, port: int) -> None:
        """Serve on every interface at ``port`` until stopped."""
        print(f"Starting server on port {port}")
        self.app.run(host="0.0.0.0", port=port)


def setup_routes(user_handler: UserHandler, static_folder: str = DEFAULT_STATIC_FOLDER) -> Server:
    """Build the application with request ids, CORS, static files and the user routes."""
    folder = os.path.abspath(static_folder)
    app = Flask(__name__, static_folder=folder, static_url_path="")
    app.config["MAX_CONTENT_LENGTH"] = BODY_LIMIT

    @app.before_request
    def _assign_request_id() -> None:
        g.requestid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

    @app.before_request
    def _cors_preflight() -> Response | None:
        if request.method == "OPTIONS" and request.headers.get("Access-Control-Request-Method"):
            response = Response(status=204)
            response.headers["Access-Control-Allow-Methods"] = _CORS_DEFAULT_METHODS
            requested = request.headers.get("Access-Control-Request-Headers")
            if requested:
                response.headers["Access-Control-Allow-Headers"] = requested
            return response
        return None

    @app.after_request
    def _decorate(response: Response) -> Response:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Server"] = SERVER_HEADER
        request_id = g.get("requestid")
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.route("/")
    def _index() -> Response:
        return send_from_directory(folder, "index.html")

    @app.route("/ping")
    def _ping() -> str:
        return "pong"

    app.add_url_rule("/user", "get_user", user_handler.get_user)
    app.add_url_rule("/users", "get_user_list", user_handler.get_user_list)
    return Server(app)


def build_app(conf: Config, logger: Any) -> Server:
    """Wire the database, cache, services and handlers into a server."""
    engine = new_db(conf, logger)
    rdb = new_redis(conf)
    repository = Repository(engine, rdb, logger)
    user_repository = UserRepository(repository)
    service = Service(logger, Sid(), new_jwt(conf))
    user_service = UserService(service, user_repository)
    handler = UserHandler(logger, user_service)
    return setup_routes(handler, DEFAULT_STATIC_FOLDER)


def main(argv: list[str] | None = None) -> int:
    """Load configuration and serve the HTTP API."""
    parser = argparse.ArgumentParser(prog="wiretemplate-app", description="Run the HTTP API server.")
    parser.parse_args(argv)
    load_dotenv()
    conf = new_config(os.environ.get("APP_CONF", ""))
    logger = new_log(conf)
    try:
        server = build_app(conf, logger)
    except Exception as exc:  # noqa: BLE001 - any wiring failure is fatal
        logger.fatal(str(exc))
        return 1
    try:
        server.start(conf.server.port)
    except Exception as exc:  # noqa: BLE001 - any serving failure is fatal
        logger.fatal(str(exc))
        return 1
    return 0