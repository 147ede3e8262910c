from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from wiretemplate.config import AppSettings, Config
from wiretemplate.tokens import JWT, Claims, TokenError, new_jwt

HS256 = "HS256"


@pytest.fixture
def signer():
    return JWT("secret")


def _in(minutes):
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def test_round_trip_keeps_user_id(signer):
    user_id = "user-42"
    expire = _in(60)
    encoded = signer.generate_token(user_id, expire)
    claims = signer.parse_token(encoded)
    assert claims.user_id == "user-42"
    assert int(claims.expires_at.timestamp()) == int(expire.timestamp())
    assert claims.issued_at <= claims.expires_at


def test_token_uses_hs256(signer):
    user_id = "u"
    encoded = signer.generate_token(user_id, _in(5))
    assert pyjwt.get_unverified_header(encoded)["alg"] == "HS256"


def test_payload_leaves_out_empty_claims(signer):
    user_id = "u"
    encoded = signer.generate_token(user_id, _in(5))
    payload = pyjwt.decode(encoded, options={"verify_signature": False})
    assert set(payload) == {"UserId", "exp", "nbf", "iat"}


def test_expired_token_is_rejected(signer):
    user_id = "u"
    encoded = signer.generate_token(user_id, _in(-5))
    with pytest.raises(TokenError):
        signer.parse_token(encoded)


def test_wrong_key_is_rejected(signer):
    user_id = "u"
    encoded = JWT("token").generate_token(user_id, _in(5))
    with pytest.raises(TokenError):
        signer.parse_token(encoded)


def test_malformed_token_is_rejected(signer):
    with pytest.raises(TokenError):
        signer.parse_token("placeholder")


def test_not_yet_valid_token_is_rejected(signer):
    future = _in(60)
    claims = Claims(user_id="u", not_before=future, expires_at=future + timedelta(hours=1))
    encoded = pyjwt.encode(claims.to_payload(), signer.key, algorithm=HS256)
    with pytest.raises(TokenError):
        signer.parse_token(encoded)


def test_audience_is_accepted_and_returned(signer):
    claims = Claims(user_id="u", audience=["web"])
    encoded = pyjwt.encode(claims.to_payload(), signer.key, algorithm=HS256)
    parsed = signer.parse_token(encoded)
    assert parsed.audience == ["web"]
    assert parsed.expires_at is None


def test_missing_user_id_gives_empty_string(signer):
    payload = {"sub": "someone"}
    encoded = pyjwt.encode(payload, signer.key, algorithm=HS256)
    parsed = signer.parse_token(encoded)
    assert parsed.user_id == ""
    assert parsed.subject == "someone"


def test_new_jwt_uses_configured_secret():
    conf = Config(app=AppSettings(jwt_secret="secret"))
    signer = new_jwt(conf)
    user_id = "u"
    encoded = signer.generate_token(user_id, _in(1))
    assert JWT("secret").parse_token(encoded).user_id == "u"