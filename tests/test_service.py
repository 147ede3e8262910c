import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from wiretemplate.repository import Repository, UserRepository
from wiretemplate.service import Service, UserService


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'svc.db'}")
    with eng.begin() as conn:
        conn.execute(text("CREATE TABLE tb_auth_user (id INTEGER PRIMARY KEY, username TEXT)"))
        conn.execute(text("INSERT INTO tb_auth_user (id, username) VALUES (1, 'ann'), (2, 'ben')"))
    yield eng
    eng.dispose()


def test_get_list_returns_repository_page(engine, capsys):
    repo = UserRepository(Repository(db=engine))
    service = UserService(Service(), repo)
    users = service.get_list(None, 1, 10)
    assert users == repo.get_list(None, 1, 10)
    assert [u.username for u in users] == ["ben", "ann"]
    assert "ben" in capsys.readouterr().out


def test_get_list_propagates_errors(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'none.db'}")
    service = UserService(Service(), UserRepository(Repository(db=eng)))
    with pytest.raises(OperationalError):
        service.get_list(None, 1, 10)
    eng.dispose()