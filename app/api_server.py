"""FastAPI entrypoint exposing the RAK Porcelain chat assistant."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os
from pathlib import Path
from typing import Literal

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from porcelain_assistant.errors import GENERIC_FAILURE_MESSAGE
from porcelain_assistant.service import ChatAssistant, build_assistant


_LOGGER = logging.getLogger(__name__)

ERROR_STATUS = {
    "configuration_error": 500,
    "internal_error": 500,
    "provider_error": 502,
    "timeout": 504,
}
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
MAX_IMAGE_BYTES = 8 * 1024 * 1024


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)


def _cors_origins() -> list[str]:
    raw = os.getenv("PA_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(assistant: ChatAssistant | None = None) -> FastAPI:
    """Builds the app; without an injected assistant one is wired from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if assistant is not None:
            yield
            return
        app.state.assistant = build_assistant(root_dir=ROOT_DIR)
        try:
            yield
        finally:
            app.state.assistant.close()

    app = FastAPI(title="RAK Porcelain Assistant", version="1.0.0", lifespan=lifespan)
    if assistant is not None:
        app.state.assistant = assistant
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health(request: Request) -> dict:
        return {
            "status": "ok",
            "app": "rak-porcelain-assistant",
            "stats": request.app.state.assistant.stats(),
        }

    @app.post("/api/chat")
    def chat(payload: ChatRequest, request: Request) -> dict:
        messages = [message.model_dump() for message in payload.messages]
        last_user_index = next(
            (idx for idx in range(len(messages) - 1, -1, -1) if messages[idx]["role"] == "user"),
            None,
        )
        if last_user_index is None:
            raise HTTPException(status_code=400, detail="No user message found.")
        query = messages[last_user_index]["content"]
        if not query.strip():
            raise HTTPException(status_code=400, detail="The last user message is empty.")

        result = request.app.state.assistant.answer(messages[:last_user_index], query)
        error_code = result.get("error_code")
        if error_code:
            raise HTTPException(
                status_code=ERROR_STATUS.get(error_code, 500),
                detail={"message": GENERIC_FAILURE_MESSAGE, "error_code": error_code},
            )
        return result

    @app.post("/api/analyze-image")
    async def analyze_image(request: Request, image: UploadFile = File(...)) -> dict:
        payload = await image.read()
        if not payload:
            raise HTTPException(status_code=400, detail="Uploaded image is empty.")
        if len(payload) > MAX_IMAGE_BYTES:
            raise HTTPException(status_code=413, detail="Uploaded image is too large.")

        result = await run_in_threadpool(request.app.state.assistant.search_by_image, payload)
        error_code = result.get("error_code")
        if error_code:
            raise HTTPException(
                status_code=ERROR_STATUS.get(error_code, 500),
                detail={"message": GENERIC_FAILURE_MESSAGE, "error_code": error_code},
            )
        return result

    @app.get("/api/cache")
    def cache_stats(request: Request) -> dict:
        return request.app.state.assistant.cache.stats()

    @app.delete("/api/cache")
    def clear_cache(request: Request) -> dict:
        cache = request.app.state.assistant.cache
        cleared = len(cache)
        cache.clear()
        _LOGGER.info("Response cache cleared (%d entries).", cleared)
        return {"cleared": cleared}

    return app


logging.basicConfig(
    level=os.getenv("PA_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
app = create_app()
