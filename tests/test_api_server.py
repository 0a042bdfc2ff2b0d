from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.api_server import create_app
from porcelain_assistant.errors import GENERIC_FAILURE_MESSAGE

from conftest import FakeProvider


@pytest.fixture
def client_for(make_assistant):
    def _client(provider=None, **overrides):
        assistant = make_assistant(provider, **overrides)
        return TestClient(create_app(assistant)), assistant

    return _client


def test_health_reports_stats(client_for):
    client, _assistant = client_for()

    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["stats"]["vector_stores"]["content"] == 5


def test_chat_answers_last_user_message(client_for, fake_provider):
    client, _assistant = client_for()

    response = client.post(
        "/api/chat",
        json={
            "messages": [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello!"},
                {"role": "user", "content": "Is your porcelain dishwasher safe?"},
            ]
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Our porcelain is dishwasher safe."
    assert body["cached"] is False
    assert body["sources"]
    assert fake_provider.embed_calls == ["Is your porcelain dishwasher safe?"]
    assert fake_provider.complete_calls[0]["history"] == [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
    ]


def test_chat_rejects_requests_without_user_message(client_for):
    client, _assistant = client_for()

    assert client.post("/api/chat", json={"messages": []}).status_code == 422
    assert client.post("/api/chat", json={"messages": [{"role": "robot", "content": "x"}]}).status_code == 422

    response = client.post("/api/chat", json={"messages": [{"role": "assistant", "content": "Hello"}]})
    assert response.status_code == 400

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "   "}]})
    assert response.status_code == 400


def test_provider_failure_maps_to_bad_gateway(client_for):
    client, _assistant = client_for(FakeProvider(fail_embed=True))

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Is it oven safe?"}]})

    assert response.status_code == 502
    assert response.json()["detail"] == {"message": GENERIC_FAILURE_MESSAGE, "error_code": "provider_error"}


def test_timeout_maps_to_gateway_timeout(client_for):
    client, _assistant = client_for(FakeProvider(complete_delay=1.0), request_timeout_seconds=0.2)

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Is it oven safe?"}]})

    assert response.status_code == 504
    assert response.json()["detail"]["error_code"] == "timeout"


def test_cache_endpoints(client_for):
    client, assistant = client_for()
    payload = {"messages": [{"role": "user", "content": "How long does shipping take?"}]}

    client.post("/api/chat", json=payload)
    assert client.post("/api/chat", json=payload).json()["cached"] is True

    stats = client.get("/api/cache").json()
    assert stats["size"] == 1
    assert stats["entries"][0]["hits"] == 1

    assert client.delete("/api/cache").json() == {"cleared": 1}
    assert len(assistant.cache) == 0


def test_analyze_image_returns_matches(client_for, fake_provider):
    client, _assistant = client_for()

    response = client.post("/api/analyze-image", files={"image": ("plate.jpg", b"\xff\xd8\xff", "image/jpeg")})

    assert response.status_code == 200
    body = response.json()
    assert body["analysis"]["aestheticStyle"] == ["elegant", "minimalist"]
    assert body["products"] == []
    assert fake_provider.analyze_calls == [b"\xff\xd8\xff"]


def test_analyze_image_rejects_empty_upload(client_for, fake_provider):
    client, _assistant = client_for()

    response = client.post("/api/analyze-image", files={"image": ("plate.jpg", b"", "image/jpeg")})

    assert response.status_code == 400
    assert fake_provider.analyze_calls == []
    assert client.post("/api/analyze-image").status_code == 422


def test_analyze_image_vision_failure_maps_to_bad_gateway(client_for):
    client, _assistant = client_for(FakeProvider(fail_analyze=True))

    response = client.post("/api/analyze-image", files={"image": ("plate.jpg", b"photo", "image/jpeg")})

    assert response.status_code == 502
    assert response.json()["detail"] == {"message": GENERIC_FAILURE_MESSAGE, "error_code": "provider_error"}
