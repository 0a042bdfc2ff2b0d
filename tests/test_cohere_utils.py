from __future__ import annotations

import io
import json
import urllib.error

import pytest

import porcelain_assistant.cohere_utils as cohere_utils
from porcelain_assistant.cohere_utils import (
    CohereClient,
    CohereProvider,
    _extract_json_block,
    analyze_product_image,
    make_client,
)
from porcelain_assistant.config import CohereConfig
from porcelain_assistant.errors import ConfigurationError, ProviderError


def _config(**overrides) -> CohereConfig:
    values = {
        "api_key": "test-key",
        "base_url": "https://cohere.test/v2",
        "chat_model": "chat-model",
        "embed_model": "embed-model",
        "vision_model": "vision-model",
        "timeout_seconds": 5.0,
        "max_retries": 1,
    }
    values.update(overrides)
    return CohereConfig(**values)


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _json_response(payload) -> _Response:
    return _Response(json.dumps(payload).encode("utf-8"))


def test_make_client_without_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        make_client(_config(api_key=""))


def test_post_json_retries_retryable_status(monkeypatch):
    attempts: list[str] = []

    def fake_urlopen(request, timeout):
        attempts.append(request.full_url)
        if len(attempts) == 1:
            raise urllib.error.HTTPError(request.full_url, 429, "Too Many Requests", {}, io.BytesIO(b"slow down"))
        return _json_response({"embeddings": {"float": [[0.1, 0.2]]}})

    monkeypatch.setattr(cohere_utils.urllib.request, "urlopen", fake_urlopen)
    monkeypatch.setattr(cohere_utils.time, "sleep", lambda seconds: None)

    client = make_client(_config())
    vectors = client.embed_texts(texts=["plate"], model="embed-model", input_type="search_query")

    assert vectors == [[0.1, 0.2]]
    assert attempts == ["https://cohere.test/v2/embed"] * 2


def test_post_json_raises_provider_error_on_client_error(monkeypatch):
    def fake_urlopen(request, timeout):
        raise urllib.error.HTTPError(request.full_url, 401, "Unauthorized", {}, io.BytesIO(b"bad key"))

    monkeypatch.setattr(cohere_utils.urllib.request, "urlopen", fake_urlopen)

    client = make_client(_config())
    with pytest.raises(ProviderError, match="401"):
        client.embed_texts(texts=["plate"], model="embed-model", input_type="search_query")


def test_embedding_shape_mismatch_is_provider_error(monkeypatch):
    monkeypatch.setattr(
        cohere_utils.urllib.request,
        "urlopen",
        lambda request, timeout: _json_response({"embeddings": {"float": [[0.1]]}}),
    )
    client = make_client(_config())

    with pytest.raises(ProviderError):
        client.embed_texts(texts=["a", "b"], model="embed-model", input_type="search_document")


class _RecordingClient:
    def __init__(self, reply: str = "Hello from Cohere", usage=None) -> None:
        self.reply = reply
        self.usage = usage or {"input_tokens": 10, "output_tokens": 3}
        self.chat_calls: list[dict] = []
        self.embed_calls: list[dict] = []

    def chat(self, *, messages, model, temperature=0.3, max_tokens=None):
        self.chat_calls.append(
            {"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens}
        )
        return self.reply, self.usage

    def chat_image_text(self, *, prompt, image_bytes, model, temperature=0.2):
        self.chat_calls.append({"prompt": prompt, "model": model})
        return self.reply

    def embed_texts(self, *, texts, model, input_type):
        self.embed_calls.append({"texts": texts, "model": model, "input_type": input_type})
        return [[float(len(text)), 1.0] for text in texts]


def test_provider_complete_assembles_messages():
    client = _RecordingClient()
    provider = CohereProvider(client, _config())

    completion = provider.complete(
        "system text",
        [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}],
        "grounded prompt",
        temperature=0.3,
        max_tokens=1000,
    )

    assert completion.text == "Hello from Cohere"
    assert completion.usage == {"input_tokens": 10, "output_tokens": 3}
    call = client.chat_calls[0]
    assert call["model"] == "chat-model"
    assert call["max_tokens"] == 1000
    assert call["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello"},
        {"role": "user", "content": "grounded prompt"},
    ]


def test_provider_embed_uses_query_and_document_input_types():
    client = _RecordingClient()
    provider = CohereProvider(client, _config())

    assert provider.embed("bowl") == [4.0, 1.0]
    assert provider.embed_batch(["a", "bb"]) == [[1.0, 1.0], [2.0, 1.0]]
    assert [call["input_type"] for call in client.embed_calls] == ["search_query", "search_document"]


def test_chat_payload_parsing():
    payload = {
        "message": {"content": [{"type": "text", "text": "Part one."}, {"type": "text", "text": "Part two."}]},
        "usage": {"tokens": {"input_tokens": 12, "output_tokens": 5}},
    }

    assert CohereClient._extract_chat_text(payload) == "Part one.\nPart two."
    assert CohereClient._extract_usage(payload) == {"input_tokens": 12, "output_tokens": 5}
    assert CohereClient._extract_usage({}) == {}
    assert CohereClient._extract_embeddings({"embeddings": [[1, 2], "bad", [3, 4]]}) == [[1.0, 2.0], [3.0, 4.0]]


def test_extract_json_block_handles_fences_and_prose():
    assert _extract_json_block('```json\n{"a": 1}\n```') == {"a": 1}
    assert _extract_json_block('Here you go: {"b": [1, 2]} thanks') == {"b": [1, 2]}
    with pytest.raises(ValueError):
        _extract_json_block("no json here")


def test_analyze_product_image_normalizes_lists():
    reply = json.dumps(
        {
            "richVisualDescription": " Deep bowl with a reactive glaze. ",
            "aestheticStyle": ["rustic", " ", 3],
            "colorPalette": "sand",
            "moodEmotionElicited": None,
        }
    )
    client = _RecordingClient(reply=reply)

    analysis = analyze_product_image(client, image_bytes=b"\xff\xd8", model="vision-model", product_name="Stone Bowl")

    assert analysis["richVisualDescription"] == "Deep bowl with a reactive glaze."
    assert analysis["aestheticStyle"] == ["rustic"]
    assert analysis["colorPalette"] == ["sand"]
    assert analysis["moodEmotionElicited"] == []
    assert analysis["intendedUse"] == []
    assert "Stone Bowl" in client.chat_calls[0]["prompt"]


def test_provider_analyze_image_uses_vision_model():
    client = _RecordingClient(reply='{"richVisualDescription": "Round plate.", "aestheticStyle": ["classic"]}')
    provider = CohereProvider(client, _config())

    analysis = provider.analyze_image(b"\xff\xd8")

    assert analysis["aestheticStyle"] == ["classic"]
    assert client.chat_calls[0]["model"] == "vision-model"


def test_provider_analyze_image_unparseable_reply_is_provider_error():
    provider = CohereProvider(_RecordingClient(reply="I cannot see an image."), _config())

    with pytest.raises(ProviderError):
        provider.analyze_image(b"\xff\xd8")
