import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from northpole.models.database import build_engine, build_sessionmaker, init_db
from northpole.models.entities import User
from northpole.services.auth_service import create_user


def test_register_sets_session_cookie(client, settings):
    resp = client.post("/api/auth/register", json={"username": "holly", "password": "snowflake"})
    assert resp.status_code == 201
    assert resp.json()["is_parent"] is False
    assert settings.SESSION_COOKIE_NAME in resp.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["username"] == "holly"
    assert me.json()["parent_id"] is None


def test_login_and_logout_with_cookie(client, signup):
    signup("ivy", password="mistletoe")

    assert client.get("/api/chats").status_code == 401

    resp = client.post("/api/auth/login", json={"username": "ivy", "password": "mistletoe"})
    assert resp.status_code == 200
    assert client.get("/api/chats").status_code == 200

    out = client.post("/api/auth/logout")
    assert out.status_code == 200
    assert "max-age=0" in out.headers["set-cookie"].lower()
    client.cookies.clear()
    assert client.get("/api/chats").status_code == 401


def test_bad_login_is_unauthorized(client, signup):
    signup("noel", password="mistletoe")

    assert client.post("/api/auth/login", json={"username": "noel", "password": "nope-nope"}).status_code == 401
    assert client.post("/api/auth/login", json={"username": "nobody", "password": "mistletoe"}).status_code == 401


def test_duplicate_username_conflicts(client, signup):
    signup("tinsel")
    resp = client.post("/api/auth/register", json={"username": "tinsel", "password": "another1"})
    assert resp.status_code == 409


def test_registration_validation(client, signup):
    assert client.post("/api/auth/register", json={"username": "ab", "password": "snowflake"}).status_code == 400
    assert client.post("/api/auth/register", json={"username": "blitzen", "password": "123"}).status_code == 400

    signup("kid")
    resp = client.post(
        "/api/auth/register",
        json={"username": "sprout", "password": "snowflake", "parent_username": "kid"},
    )
    assert resp.status_code == 400

    signup("mama", is_parent=True)
    resp = client.post(
        "/api/auth/register",
        json={"username": "papa", "password": "snowflake", "is_parent": True, "parent_username": "mama"},
    )
    assert resp.status_code == 400


async def test_username_race_is_a_conflict():
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    sessionmaker = build_sessionmaker(engine)

    # two registrations that both passed the existence check
    async with sessionmaker() as first, sessionmaker() as second:
        await create_user(first, "holly", "snowflake")
        with pytest.raises(HTTPException) as exc_info:
            await create_user(second, "holly", "mistletoe")
        assert exc_info.value.status_code == 409

        count = await second.scalar(select(func.count()).select_from(User))
        assert count == 1

    await engine.dispose()
