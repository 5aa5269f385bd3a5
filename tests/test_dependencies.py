from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from studydeck.api.v2.dependencies import _normalize_token_value, get_current_user, get_db
from studydeck.core.security import create_access_token, decode_access_token
from tests.utils import create_user


def _request(headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw_headers, "query_string": b""})


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer%20abc.def", "abc.def"),
        ('"abc.def"', "abc.def"),
        ("  ", None),
        (None, None),
    ],
)
def test_normalize_token_value(raw, expected):
    assert _normalize_token_value(raw) == expected


def test_token_round_trip_uses_subject():
    token = create_access_token(42)

    assert decode_access_token(token)["sub"] == "42"


def test_current_user_from_bearer_header(db_session):
    user = create_user(db_session)
    token = create_access_token(user.id)

    resolved = get_current_user(_request({"Authorization": f"Bearer {token}"}), db=db_session)

    assert resolved.id == user.id


def test_missing_token_is_401(db_session):
    with pytest.raises(HTTPException) as exc:
        get_current_user(_request(), db=db_session)
    assert exc.value.status_code == 401


def test_expired_token_is_reported(db_session):
    user = create_user(db_session)
    token = create_access_token(user.id, expires_delta=timedelta(minutes=-5))

    with pytest.raises(HTTPException) as exc:
        get_current_user(_request({"Authorization": f"Bearer {token}"}), db=db_session)
    assert exc.value.status_code == 401
    assert exc.value.detail == "token_expired"


def test_unknown_user_is_401(db_session):
    token = create_access_token(9999)

    with pytest.raises(HTTPException) as exc:
        get_current_user(_request({"Authorization": f"Bearer {token}"}), db=db_session)
    assert exc.value.status_code == 401


def test_inactive_user_is_403(db_session):
    user = create_user(db_session, is_active=False)
    token = create_access_token(user.id)

    with pytest.raises(HTTPException) as exc:
        get_current_user(_request({"Authorization": f"Bearer {token}"}), db=db_session)
    assert exc.value.status_code == 403


def test_get_db_shares_one_session_per_request():
    request = _request()

    outer = get_db(request)
    inner = get_db(request)
    first = next(outer)
    second = next(inner)
    assert first is second

    inner.close()
    assert request.state._db_refcount == 1
    outer.close()
    assert not hasattr(request.state, "_db_session")
