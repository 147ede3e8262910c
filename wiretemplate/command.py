"""Background jobs: a scheduler of periodic tasks and its command entry point."""

from __future__ import annotations

import argparse
import json
import math
import os
import threading
import time
from collections.abc import Callable
from typing import Any

from dotenv import load_dotenv
from sqlalchemy import literal_column, select, table, text
from sqlalchemy.exc import SQLAlchemyError

from wiretemplate.applog import new_log
from wiretemplate.cache import new_redis
from wiretemplate.config import Config, new_config
from wiretemplate.db import DB, new_db
from wiretemplate.model import TBA_USER, User
from wiretemplate.repository import Repository

DEMO_TASK_EVERY_SECONDS = 3
TASK2_EVERY_SECONDS = 1
PRINT_JOB_INTERVAL = 0.01
PRINT_JOB_LIMIT = 200
_POLL_INTERVAL = 0.05


class DemoTask:
    """Prints every user of the user table."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def run(self) -> None:
        query = select(literal_column("*")).select_from(table(TBA_USER)).order_by(text("id"))
        users: list[User] | None = None
        try:
            with DB(self.repository.db).with_context(None) as conn:
                users = [User.from_row(row._mapping) for row in conn.execute(query).all()]
        except SQLAlchemyError as exc:
            self.repository.logger.error("", error=str(exc))
        for user in users or []:
            print(user)
        payload = json.dumps(
            None if users is None else [user.to_dict() for user in users],
            ensure_ascii=False,
            separators=(",", ":"),
        )
        print(f"{payload}\\n", end="", flush=True)


def _every_seconds(step: int) -> Callable[[], float]:
    """Return a delay function firing on wall-clock seconds divisible by ``step``."""

    def delay() -> float:
        now = time.time()
        moment = math.floor(now) + 1
        while moment % 60 % step:
            moment += 1
        return moment - now

    return delay


class _Job:
    def __init__(self, task: Callable[[], None], delay: Callable[[], float], limit: int | None = None):
        self.task = task
        self.delay = delay
        self.limit = limit

    def loop(self, halt: threading.Event, logger: Any) -> None:
        runs = 0
        while self.limit is None or runs < self.limit:
            if halt.wait(self.delay()):
                return
            try:
                self.task()
            except Exception as exc:  # noqa: BLE001 - a failing task must not stop its schedule
                logger.error("task failed", error=str(exc))
            runs += 1


class Command:
    """Runs the scheduled jobs until stopped."""

    def __init__(self, logger: Any, demo_task: DemoTask) -> None:
        self.log = logger
        self.demo_task = demo_task
        self._halt: threading.Event | None = None

    def _jobs(self) -> list[_Job]:
        def task2() -> None:
            self.log.info("I'm a Task2.")

        def print_job(one: str = "one", two: int = 2) -> None:
            print(f"{one}, {two}\n {time.time_ns()}", end="", flush=True)

        return [
            _Job(self.demo_task.run, _every_seconds(DEMO_TASK_EVERY_SECONDS)),
            _Job(task2, _every_seconds(TASK2_EVERY_SECONDS)),
            _Job(print_job, lambda: PRINT_JOB_INTERVAL, PRINT_JOB_LIMIT),
        ]

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Start the jobs and block until ``stop_event`` is set or :meth:`stop` is called."""
        halt = threading.Event()
        self._halt = halt
        threads = [
            threading.Thread(target=job.loop, args=(halt, self.log), daemon=True) for job in self._jobs()
        ]
        for thread in threads:
            thread.start()
        try:
            while not halt.is_set():
                if stop_event is not None and stop_event.is_set():
                    break
                halt.wait(_POLL_INTERVAL)
        finally:
            halt.set()
            for thread in threads:
                thread.join(timeout=1.0)

    def stop(self) -> None:
        """Stop the running jobs; raise RuntimeError if the jobs were never started."""
        if self._halt is None:
            self.log.error("command stop err", error="command is not running")
            raise RuntimeError("command is not running")
        self._halt.set()


def new_app(logger: Any, conf: Config) -> Command:
    """Wire the database, cache and tasks into a command."""
    engine = new_db(conf, logger)
    rdb = new_redis(conf)
    repository = Repository(engine, rdb, logger)
    return Command(logger, DemoTask(repository))


def main(argv: list[str] | None = None) -> int:
    """Load configuration and run the scheduled jobs."""
    parser = argparse.ArgumentParser(prog="wiretemplate-command", description="Run the scheduled jobs.")
    parser.parse_args(argv)
    load_dotenv()
    conf = new_config(os.environ.get("APP_CONF", ""))
    logger = new_log(conf)
    try:
        app = new_app(logger, conf)
    except Exception as exc:  # noqa: BLE001 - any wiring failure ends the command
        logger.error(str(exc))
        return 1
    try:
        app.run()
    except KeyboardInterrupt:
        pass
    finally:
        try:
            app.stop()
        except RuntimeError as exc:
            logger.error("app command stop err", error=str(exc), app="command")
    return 0