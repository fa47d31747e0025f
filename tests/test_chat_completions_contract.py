import json

import pytest
from fastapi.testclient import TestClient

from chandler_api.config import ServiceSettings, get_settings
from chandler_api.main import app
from chandler_api.services.http_client import get_client
from fixtures.upstream_stub import UPSTREAM_DOMAIN, FakeUpstream, body, frame

TWO_FRAMES = body(frame("Hi"), frame(" there"))


@pytest.fixture
def serve():
    """Point the app at a FakeUpstream and return a TestClient for it."""
    def _serve(fake: FakeUpstream, **client_options) -> TestClient:
        settings = ServiceSettings(upstream_domain=UPSTREAM_DOMAIN, conversation_selection="first")
        shared = fake.client()
        app.dependency_overrides[get_client] = lambda: shared
        app.dependency_overrides[get_settings] = lambda: settings
        return TestClient(app, **client_options)

    yield _serve
    app.dependency_overrides.clear()


def _post(client: TestClient, stream: bool = False):
    return client.post(
        "/v1/chat/completions",
        headers={"Authorization": "Bearer tok-123"},
        json={
            "model": "gpt-3.5",
            "messages": [{"role": "user", "content": "Hello"}],
            "stream": stream,
            "temperature": 0.2,
        },
    )


def test_buffered_completion_from_new_conversation(serve):
    fake = FakeUpstream(chat_body=TWO_FRAMES, email="alice@example.com")
    response = _post(serve(fake))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    data = response.json()
    assert data["object"] == "chat.completion"
    assert data["model"] == "gpt-3.5"
    message = data["choices"][0]["message"]
    assert (message["role"], message["content"]) == ("assistant", "Hi there")
    assert data["choices"][0]["finish_reason"] == "stop"
    assert data["usage"] == {"prompt_tokens": 0, "completion_tokens": 2, "total_tokens": 2}

    turn = fake.payload("chat/Chat")
    assert turn["conversation_id"] == ""
    assert turn["app_name"] == ""
    assert turn["parent_message_id"] == ""
    assert turn["uid"] == "alice@example.com"
    assert turn["model_name"] == "gpt-3.5"
    assert turn["web_url"] == UPSTREAM_DOMAIN
    assert turn["prompt"] == (
        "Forget previous messages and focus on the current message!\nuser: Hello\nassistant: "
    )
    assert {call["authorization"] for call in fake.calls} == {"Bearer tok-123"}


def test_existing_conversation_is_continued(serve):
    fake = FakeUpstream(
        conversations=[{"conversation_id": "c9", "app_name": "chandler"}],
        messages={"c9": ["m1", "m2"]},
        chat_body=TWO_FRAMES,
    )
    assert _post(serve(fake)).status_code == 200

    turn = fake.payload("chat/Chat")
    assert turn["conversation_id"] == "c9"
    assert turn["app_name"] == "chandler"
    assert turn["parent_message_id"] == "m2"
    assert fake.paths().count("chat/Chat") == 1


def test_streaming_completion_frames(serve):
    fake = FakeUpstream(chat_body=TWO_FRAMES)
    response = _post(serve(fake), stream=True)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    text = response.text
    assert text.endswith("}\n\ndata: [DONE]\n\n")
    lines = [line for line in text.split("\n") if line]
    assert len(lines) == 4
    chunks = [json.loads(line[len("data: "):]) for line in lines[:3]]
    assert [c["choices"][0]["delta"].get("content") for c in chunks] == ["Hi", " there", None]
    assert chunks[2]["choices"][0]["finish_reason"] == "stop"
    assert lines[3] == "data: [DONE]"


@pytest.mark.parametrize("identity_status", [200, 500])
def test_list_failure_is_generic_error_and_no_chat_turn(serve, identity_status):
    fake = FakeUpstream(statuses={"chat/chatHistory": 500, "user/info": identity_status}, chat_body=TWO_FRAMES)
    response = _post(serve(fake))

    assert response.status_code == 500
    assert response.json()["error"] == {
        "message": "An internal server error occurred",
        "type": "api_error",
        "param": None,
        "code": "internal_error",
    }
    assert "chat/Chat" not in fake.paths()


def test_chat_status_error_is_generic_error(serve):
    fake = FakeUpstream(statuses={"chat/Chat": 502})
    response = _post(serve(fake), stream=True)

    assert response.status_code == 500
    assert "upstream exploded" not in response.text


def test_error_frame_in_buffered_mode_is_generic_error(serve):
    fake = FakeUpstream(chat_body=body(frame("Hi"), frame("secret failure detail", delta_type="error")))
    response = _post(serve(fake))

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "internal_error"
    assert "secret" not in response.text


def test_missing_model_is_validation_error(serve):
    client = serve(FakeUpstream())
    response = client.post("/v1/chat/completions", json={"messages": []})

    assert response.status_code == 400
    assert response.json()["error"]["param"] == "model"


def test_models_catalogue(serve):
    client = serve(FakeUpstream())

    listing = client.get("/v1/models").json()
    assert listing["object"] == "list"
    assert [m["id"] for m in listing["data"]] == ["gpt-3.5", "llama3-70b", "llama3-8b", "grok"]
    assert {m["owned_by"] for m in listing["data"]} == {"ChandlerAi"}

    assert client.get("/v1/models/grok").json()["created"] == 1692901427
    missing = client.get("/v1/models/gpt-9")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "model_not_found"


def test_health(serve):
    client = serve(FakeUpstream())
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/health/live").json() == {"status": "alive"}


def test_mid_stream_failure_cuts_sse_without_done(serve):
    fake = FakeUpstream(chat_body=body(frame("Hi"), frame("secret failure detail", delta_type="error")))
    response = _post(serve(fake, raise_server_exceptions=False), stream=True)

    assert response.status_code == 200
    assert "data: [DONE]" not in response.text
    assert "secret" not in response.text
    lines = [line for line in response.text.split("\n") if line]
    assert len(lines) == 1
    assert json.loads(lines[0][len("data: "):])["choices"][0]["delta"]["content"] == "Hi"


def test_unknown_route_uses_openai_error_shape(serve):
    response = serve(FakeUpstream()).get("/nope")

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "not_found_error"
    assert response.json()["error"]["message"] == "Not Found"


def test_wrong_method_uses_openai_error_shape(serve):
    response = serve(FakeUpstream()).get("/v1/chat/completions")

    assert response.status_code == 405
    assert response.json()["error"]["type"] == "api_error"
