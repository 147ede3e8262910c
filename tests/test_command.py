import json
import threading
import time

import pytest
from sqlalchemy import create_engine, text

from wiretemplate.command import Command, DemoTask
from wiretemplate.repository import Repository


class FakeLogger:
    def __init__(self):
        self.infos = []
        self.errors = []

    def with_context(self, ctx, **kwargs):
        return self

    def info(self, msg, **kwargs):
        self.infos.append(msg)

    def error(self, msg, **kwargs):
        self.errors.append((msg, kwargs))


class CountingTask:
    def __init__(self):
        self.count = 0

    def run(self):
        self.count += 1


def _json_tail(out):
    tail = out.rsplit("\n", 1)[-1]
    assert tail.endswith("\\n")
    return json.loads(tail[:-2])


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'users.db'}")
    yield eng
    eng.dispose()


def test_demo_task_prints_users_in_id_order(engine, capsys):
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE tb_auth_user (id INTEGER PRIMARY KEY, username TEXT, email TEXT)"))
        conn.execute(text("INSERT INTO tb_auth_user VALUES (2, 'bob', 'bob@example.com')"))
        conn.execute(text("INSERT INTO tb_auth_user VALUES (1, 'alice', '')"))
    logger = FakeLogger()
    DemoTask(Repository(engine, None, logger)).run()
    out = capsys.readouterr().out
    assert _json_tail(out) == [
        {"id": 1, "username": "alice"},
        {"id": 2, "username": "bob", "email": "bob@example.com"},
    ]
    assert out.index("alice") < out.index("bob")
    assert logger.errors == []


def test_demo_task_logs_error_and_prints_null(engine, capsys):
    logger = FakeLogger()
    DemoTask(Repository(engine, None, logger)).run()
    out = capsys.readouterr().out
    assert _json_tail(out) is None
    assert len(logger.errors) == 1
    assert logger.errors[0][0] == ""


def test_stop_before_run_raises():
    logger = FakeLogger()
    command = Command(logger, CountingTask())
    with pytest.raises(RuntimeError):
        command.stop()
    assert len(logger.errors) == 1


def test_run_stops_on_event_and_runs_interval_job(capsys):
    command = Command(FakeLogger(), CountingTask())
    stop = threading.Event()
    runner = threading.Thread(target=command.run, args=(stop,))
    runner.start()
    time.sleep(0.3)
    stop.set()
    runner.join(timeout=3)
    assert not runner.is_alive()
    out = capsys.readouterr().out
    assert out.count("one, 2\n ") >= 2


def test_stop_ends_run_and_task2_logs():
    logger = FakeLogger()
    command = Command(logger, CountingTask())
    runner = threading.Thread(target=command.run)
    runner.start()
    time.sleep(1.5)
    command.stop()
    runner.join(timeout=3)
    assert not runner.is_alive()
    assert "I'm a Task2." in logger.infos


def test_stop_after_run_is_accepted():
    logger = FakeLogger()
    command = Command(logger, CountingTask())
    stop = threading.Event()
    stop.set()
    command.run(stop)
    command.stop()
    assert logger.errors == []