from wiretemplate.model import TBA_USER, User


def test_table_name():
    assert User().table_name() == "tb_auth_user"
    assert User().table_name() == TBA_USER


def test_to_dict_omits_empty_fields():
    user = User(id=5, username="alice", sex=0, email="")
    assert user.to_dict() == {"id": 5, "username": "alice"}


def test_empty_user_has_empty_dict():
    assert User().to_dict() == {}


def test_from_row_ignores_unknown_and_null():
    user = User.from_row({"ID": 7, "Username": "bob", "extra": 1, "email": None})
    assert user.id == 7
    assert user.username == "bob"
    assert user.email == ""


def test_from_row_coerces_types():
    user = User.from_row({"id": "9", "mobile": b"555", "status": True})
    assert user.id == 9
    assert user.mobile == "555"
    assert user.status == 1


def test_round_trip_through_dict():
    user = User(id=3, user_id="u3", username="carol", nickname="C", sex=2, qq="123", created_at=100)
    assert User.from_row(user.to_dict()) == user