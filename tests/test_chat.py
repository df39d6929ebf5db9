import base64

from fastapi.testclient import TestClient

from northpole.main import create_app
from northpole.models.schemas import Tone
from northpole.services.santa_service import FALLBACK_REPLIES, NO_PROMISE_REPLY, SantaReply


def test_chat_turn_stores_both_messages(client, signup):
    headers = signup("holly")

    resp = client.post("/api/chat", json={"message": "  Hi Santa!  "}, headers=headers)
    assert resp.status_code == 200
    reply = resp.json()
    assert reply["is_from_santa"] is True
    assert reply["message"] == "Ho ho ho! Hello from the North Pole!"
    assert reply["tone"] == "merry"
    assert reply["suggestions"] == ["Ask about the reindeer"]

    history = client.get("/api/chats", headers=headers).json()
    assert len(history) == 2
    assert history[0]["is_from_santa"] is False
    assert history[0]["message"] == "  Hi Santa!  "
    assert history[0]["tone"] is None
    assert history[1]["id"] == reply["id"]


def test_chat_passes_transcript_and_wishlist_to_generator(client, signup, generator):
    headers = signup("ivy")
    client.post("/api/wishlist", json={"item": "Lego set", "category": "Toys"}, headers=headers)

    client.post("/api/chat", json={"message": "Hello"}, headers=headers)
    client.post("/api/chat", json={"message": "Do you like cookies?"}, headers=headers)

    message, context = generator.calls[-1]
    assert message == "Do you like cookies?"
    assert context.wishlist_items == ["Lego set"]
    assert context.prior_messages == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Ho ho ho! Hello from the North Pole!"},
    ]


def test_generator_failure_still_returns_fallback(client, signup, generator):
    generator.error = RuntimeError("upstream exploded")
    headers = signup("noel")

    resp = client.post("/api/chat", json={"message": "Are you there?"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["message"] in FALLBACK_REPLIES
    assert resp.json()["tone"] == "jolly"
    assert len(client.get("/api/chats", headers=headers).json()) == 2


def test_generator_reply_is_kept_in_character(client, signup, generator):
    generator.reply = SantaReply(message="Ho ho ho! I will bring you a pony!", tone="grumpy")
    headers = signup("rudy")

    resp = client.post("/api/chat", json={"message": "Can I have a pony?"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == NO_PROMISE_REPLY
    assert resp.json()["tone"] == Tone.JOLLY.value


def test_empty_or_missing_message_is_rejected(client, signup, generator):
    headers = signup("tinsel")

    for body in ({"message": ""}, {"message": "   "}, {}):
        resp = client.post("/api/chat", json=body, headers=headers)
        assert resp.status_code == 400

    assert client.get("/api/chats", headers=headers).json() == []
    assert generator.calls == []


def test_chat_history_is_scoped_and_stable(client, signup):
    alice = signup("alice")
    bob = signup("bobby")

    client.post("/api/chat", json={"message": "one"}, headers=alice)
    client.post("/api/chat", json={"message": "two"}, headers=alice)

    first = client.get("/api/chats", headers=alice).json()
    second = client.get("/api/chats", headers=alice).json()
    assert first == second
    assert [m["message"] for m in first if not m["is_from_santa"]] == ["one", "two"]
    assert [m["id"] for m in first] == sorted(m["id"] for m in first)
    assert client.get("/api/chats", headers=bob).json() == []


def test_endpoints_require_authentication(client):
    assert client.post("/api/chat", json={"message": "hi"}).status_code == 401
    assert client.post("/api/chat", json={}).status_code == 401
    assert client.post("/api/chat/voice", content=b"audio").status_code == 401
    assert client.get("/api/chats").status_code == 401
    assert client.get("/api/wishlist").status_code == 401
    assert client.post("/api/wishlist", json={"item": "Sled", "category": "Toys"}).status_code == 401
    assert client.get("/api/children").status_code == 401


def test_malformed_body_without_session_is_unauthorized(client, signup):
    malformed = {"content": b"{not json", "headers": {"Content-Type": "application/json"}}

    resp = client.post("/api/chat", **malformed)
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert client.post("/api/wishlist", **malformed).status_code == 401
    assert client.post("/api/children/link", **malformed).status_code == 401

    # public endpoints still report the bad body
    assert client.post("/api/auth/register", **malformed).status_code == 400

    headers = {**malformed["headers"], **signup("noel")}
    assert client.post("/api/chat", content=b"{not json", headers=headers).status_code == 400

    forged = {**malformed["headers"], "Authorization": "Bearer not-a-token"}
    assert client.post("/api/chat", content=b"{not json", headers=forged).status_code == 401


def test_invalid_token_is_rejected(client):
    resp = client.get("/api/chats", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_voice_chat_round_trip(client, signup, voice_input, voice_output):
    headers = signup("jingle")

    resp = client.post("/api/chat/voice", content=b"\x00\x01audio", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["transcript"] == "Hello Santa"
    assert body["reply"]["is_from_santa"] is True
    assert base64.b64decode(body["audio_base64"]) == b"mp3-bytes"
    assert voice_input.received == [b"\x00\x01audio"]
    assert voice_output.spoken == [body["reply"]["message"]]

    history = client.get("/api/chats", headers=headers).json()
    assert history[0]["message"] == "Hello Santa"


def test_voice_chat_without_transcript_is_rejected(client, signup, voice_input):
    voice_input.transcript = "  "
    headers = signup("garland")

    resp = client.post("/api/chat/voice", content=b"mumble", headers=headers)
    assert resp.status_code == 400
    assert client.get("/api/chats", headers=headers).json() == []


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert "X-Request-ID" in resp.headers


def test_chat_rate_limit_follows_app_settings(settings, generator):
    limited = create_app(
        settings.model_copy(update={"RATE_LIMIT_ENABLED": True, "RATE_LIMIT_PER_MINUTE": 2}),
        generator=generator,
    )
    # a second app with limiting off must not switch off the first one
    create_app(settings, generator=generator)

    with TestClient(limited) as c:
        resp = c.post("/api/auth/register", json={"username": "comet", "password": "snowflake"})
        headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        codes = [c.post("/api/chat", json={"message": "Hi"}, headers=headers).status_code for _ in range(3)]
        assert codes == [200, 200, 429]
        assert c.post("/api/chat/voice", content=b"audio", headers=headers).status_code == 429
        assert c.get("/api/chats", headers=headers).status_code == 200
