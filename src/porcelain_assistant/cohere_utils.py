"""Cohere API helpers for embeddings, grounded chat and product image analysis."""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Sequence
import urllib.error
import urllib.request

from porcelain_assistant.config import CohereConfig
from porcelain_assistant.errors import ProviderError


class CohereClient:
    def __init__(self, *, api_key: str, base_url: str, timeout_seconds: float, max_retries: int) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = max(1.0, float(timeout_seconds))
        self.max_retries = max(0, int(max_retries))

    def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = json.dumps(payload).encode("utf-8")
        endpoint = f"{self.base_url}{path}"
        request = urllib.request.Request(
            endpoint,
            data=body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            method="POST",
        )

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                    parsed = json.loads(response.read().decode("utf-8"))
            except urllib.error.HTTPError as exc:
                response_body = exc.read().decode("utf-8", errors="ignore")
                retryable = exc.code in {408, 409, 429, 500, 502, 503, 504}
                if retryable and attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise ProviderError(
                    f"Cohere request failed ({exc.code}) at {path}: {response_body or exc.reason}"
                ) from exc
            except urllib.error.URLError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise ProviderError(f"Cohere request failed at {path}: {exc.reason}") from exc
            except (TimeoutError, ValueError) as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(0.4 * (2**attempt))
                    continue
                raise ProviderError(f"Cohere request failed at {path}: {exc}") from exc

            if not isinstance(parsed, dict):
                raise ProviderError(f"Cohere returned a non-object payload at {path}.")
            return parsed

        raise ProviderError(f"Cohere request failed at {path}: {last_error}")

    @staticmethod
    def _extract_chat_text(payload: dict[str, Any]) -> str:
        message = payload.get("message")
        if not isinstance(message, dict):
            return ""

        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            parts: list[str] = []
            for chunk in content:
                if isinstance(chunk, dict):
                    text = chunk.get("text")
                    if isinstance(text, str):
                        parts.append(text)
            return "\n".join(parts).strip()
        return ""

    @staticmethod
    def _extract_usage(payload: dict[str, Any]) -> dict[str, int]:
        usage = payload.get("usage")
        if not isinstance(usage, dict):
            return {}
        tokens = usage.get("tokens") or usage.get("billed_units")
        if not isinstance(tokens, dict):
            return {}
        out: dict[str, int] = {}
        for key in ("input_tokens", "output_tokens"):
            value = tokens.get(key)
            if isinstance(value, (int, float)):
                out[key] = int(value)
        return out

    @staticmethod
    def _float_rows(rows: Any) -> list[list[float]]:
        out: list[list[float]] = []
        if not isinstance(rows, list):
            return out
        for row in rows:
            if isinstance(row, list):
                try:
                    out.append([float(value) for value in row])
                except (TypeError, ValueError):
                    continue
        return out

    @classmethod
    def _extract_embeddings(cls, payload: dict[str, Any]) -> list[list[float]]:
        embeddings = payload.get("embeddings")
        if isinstance(embeddings, list):
            return cls._float_rows(embeddings)
        if isinstance(embeddings, dict):
            return cls._float_rows(embeddings.get("float"))
        return []

    def chat(
        self,
        *,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> tuple[str, dict[str, int]]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = int(max_tokens)
        response = self._post_json("/chat", payload)
        text = self._extract_chat_text(response)
        if not text:
            raise ProviderError("Cohere chat returned an empty message.")
        return text, self._extract_usage(response)

    def chat_image_text(
        self,
        *,
        prompt: str,
        image_bytes: bytes,
        model: str,
        temperature: float = 0.2,
    ) -> str:
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{b64}"}},
                ],
            }
        ]
        text, _ = self.chat(messages=messages, model=model, temperature=temperature)
        return text

    def embed_texts(
        self,
        *,
        texts: list[str],
        model: str,
        input_type: str,
    ) -> list[list[float]]:
        if not texts:
            return []
        payload = {
            "model": model,
            "texts": [str(text) for text in texts],
            "input_type": input_type,
            "embedding_types": ["float"],
        }
        response = self._post_json("/embed", payload)
        vectors = self._extract_embeddings(response)
        if len(vectors) != len(texts):
            raise ProviderError("Cohere embedding response shape mismatch.")
        return vectors


def make_client(config: CohereConfig | None = None) -> CohereClient:
    config = config or CohereConfig.from_env()
    return CohereClient(
        api_key=config.require_api_key(),
        base_url=config.base_url,
        timeout_seconds=config.timeout_seconds,
        max_retries=config.max_retries,
    )


@dataclass(frozen=True)
class ChatCompletion:
    text: str
    usage: dict[str, int] = field(default_factory=dict)


class CohereProvider:
    """Embedding and completion calls used by the assistant.

    Any other object with the same three methods can stand in for it, which
    is how the tests run without network access.
    """

    def __init__(self, client: CohereClient, config: CohereConfig) -> None:
        self.client = client
        self.config = config

    @classmethod
    def from_env(cls) -> "CohereProvider":
        config = CohereConfig.from_env()
        return cls(make_client(config), config)

    def embed(self, text: str) -> list[float]:
        vectors = self.client.embed_texts(texts=[text], model=self.config.embed_model, input_type="search_query")
        return vectors[0]

    def embed_batch(self, texts: Sequence[str], input_type: str = "search_document") -> list[list[float]]:
        return self.client.embed_texts(texts=list(texts), model=self.config.embed_model, input_type=input_type)

    def complete(
        self,
        system_prompt: str,
        history: Sequence[dict[str, str]],
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> ChatCompletion:
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": item["role"], "content": item["content"]} for item in history)
        messages.append({"role": "user", "content": user_prompt})
        text, usage = self.client.chat(
            messages=messages,
            model=self.config.chat_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return ChatCompletion(text=text, usage=usage)

    def analyze_image(self, image_bytes: bytes) -> dict[str, Any]:
        try:
            return analyze_product_image(self.client, image_bytes=image_bytes, model=self.config.vision_model)
        except ValueError as exc:
            raise ProviderError(f"Vision analysis returned unusable output: {exc}") from exc


def _extract_json_block(text: str) -> dict[str, Any]:
    raw = (text or "").strip()
    if not raw:
        raise ValueError("Model returned an empty response.")

    if raw.startswith("```"):
        first_newline = raw.find("\n")
        last_fence = raw.rfind("```")
        if first_newline != -1 and last_fence > first_newline:
            raw = raw[first_newline:last_fence].strip()

    candidates = [raw]
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError(f"Could not parse JSON object from model response: {text[:200]}")


_VISUAL_LIST_KEYS = (
    "aestheticStyle",
    "culturalInspiration",
    "colorPalette",
    "finishGlazeType",
    "moodEmotionElicited",
    "culinaryCompatibility",
    "intendedUse",
    "aestheticTagBundle",
)


def analyze_product_image(
    client: CohereClient,
    *,
    image_bytes: bytes,
    model: str,
    product_name: str = "",
) -> dict[str, Any]:
    prompt = (
        "You are a tableware design analyst for RAK Porcelain.\n"
        f"Product: {product_name or 'unknown'}\n"
        "Analyze the product photo and output ONLY valid JSON with keys:\n"
        "- richVisualDescription (2-3 sentences describing shape, surface and decoration)\n"
        "- aestheticStyle (array, e.g. modern, classic, minimalist, rustic, elegant)\n"
        "- culturalInspiration (array, may be empty)\n"
        "- colorPalette (array of 1-5 plain color words)\n"
        "- finishGlazeType (array, e.g. glossy, matte, satin, reactive glaze)\n"
        "- moodEmotionElicited (array, e.g. serene, warm, bold, sophisticated)\n"
        "- culinaryCompatibility (array of cuisines or dishes)\n"
        "- intendedUse (array, e.g. fine dining, casual, hotel, bistro)\n"
        "- aestheticTagBundle (array of 3-8 short tags)\n"
        "No markdown. No explanations."
    )
    raw = client.chat_image_text(prompt=prompt, image_bytes=image_bytes, model=model, temperature=0.2)
    parsed = _extract_json_block(raw)

    analysis: dict[str, Any] = {
        "richVisualDescription": str(parsed.get("richVisualDescription") or "").strip(),
    }
    for key in _VISUAL_LIST_KEYS:
        values = parsed.get(key)
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, list):
            values = []
        analysis[key] = [str(value).strip() for value in values if isinstance(value, str) and value.strip()]
    return analysis
