"""
Default generation collaborators — the AI API routes of the hosting app.

Each node kind that needs an external call maps to one POST endpoint:
  textToVideo   → /api/ai/generate
  imageToVideo  → /api/ai/image-to-video
  upscale       → /api/ai/upscale
  music         → /api/ai/music
  lipSync       → /api/ai/lip-sync

The engine only sees ``kind -> async callable(params) -> dict``; swap the
mapping (or stub it in tests) to target another provider.
"""

import os
import random
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

Collaborator = Callable[[dict], Awaitable[dict]]

# ── Config ───────────────────────────────────────────────────────────────────

GENERATION_API_BASE = os.getenv("GENERATION_API_BASE", "http://localhost:3000")
GENERATION_API_KEY = os.getenv("GENERATION_API_KEY", "")
GENERATION_TIMEOUT = float(os.getenv("GENERATION_TIMEOUT", "300"))

# ── Retry configuration ──────────────────────────────────────────────────────
MAX_RETRIES = int(os.getenv("GENERATION_MAX_RETRIES", "3"))
BASE_DELAY = 2.0       # seconds — doubles each retry: 2, 4, 8
JITTER_MAX = 1.0        # random jitter 0–1s added to each delay
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

ENDPOINTS = {
    "textToVideo": "/api/ai/generate",
    "imageToVideo": "/api/ai/image-to-video",
    "upscale": "/api/ai/upscale",
    "music": "/api/ai/music",
    "lipSync": "/api/ai/lip-sync",
}

FAILURE_MESSAGES = {
    "textToVideo": "Failed to generate video",
    "imageToVideo": "Failed to animate image",
    "upscale": "Failed to upscale video",
    "music": "Failed to generate music",
    "lipSync": "Failed to sync lips",
}


class GenerationAPIError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or fallback
    return fallback


class GenerationClient:
    """
    Async client for the generation API routes.

    Retries 429 / 5xx and transport errors with exponential backoff
    (base_delay * 2^attempt + jitter, honouring Retry-After).
    """

    def __init__(
        self,
        base_url: str = GENERATION_API_BASE,
        api_key: str = GENERATION_API_KEY,
        timeout: float = GENERATION_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post_with_backoff(self, path: str, payload: dict, failure: str) -> dict:
        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(self.max_retries + 1):
                last_try = attempt >= self.max_retries
                try:
                    response = await client.post(url, headers=self._headers(), json=payload)
                except httpx.TransportError as e:
                    if last_try:
                        raise GenerationAPIError(f"{failure}: {e}") from e
                    delay = BASE_DELAY * (2 ** attempt) + random.uniform(0, JITTER_MAX)
                    logger.warning(
                        f"Generation API request error on attempt {attempt + 1}/{self.max_retries + 1}: {e} "
                        f"— retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status_code in RETRYABLE_STATUS_CODES and not last_try:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit():
                        delay = int(retry_after)
                    else:
                        delay = BASE_DELAY * (2 ** attempt) + random.uniform(0, JITTER_MAX)
                    logger.warning(
                        f"Generation API {response.status_code} on attempt {attempt + 1}/{self.max_retries + 1} "
                        f"— retrying in {delay:.1f}s (url={url})"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.is_error:
                    raise GenerationAPIError(
                        _error_message(response, failure), status_code=response.status_code
                    )
                return response.json()

        raise GenerationAPIError(f"{failure}: no attempts made")

    async def call(self, kind: str, payload: dict) -> dict:
        path = ENDPOINTS[kind]
        logger.info(f"Generation API {kind} → {path}")
        return await self._post_with_backoff(path, payload, FAILURE_MESSAGES[kind])

    # ── Per-kind collaborators ───────────────────────────────────────────

    async def text_to_video(self, params: dict) -> dict:
        data = await self.call("textToVideo", params)
        return {"videoUrl": data.get("videoUrl"), "thumbnailUrl": data.get("thumbnailUrl")}

    async def image_to_video(self, params: dict) -> dict:
        data = await self.call("imageToVideo", params)
        return {"videoUrl": data.get("videoUrl"), "thumbnailUrl": data.get("thumbnailUrl")}

    async def upscale(self, params: dict) -> dict:
        data = await self.call("upscale", params)
        return {"videoUrl": data.get("videoUrl")}

    async def music(self, params: dict) -> dict:
        data = await self.call("music", params)
        return {"audioUrl": data.get("audioUrl")}

    async def lip_sync(self, params: dict) -> dict:
        data = await self.call("lipSync", params)
        return {"videoUrl": data.get("videoUrl")}

    def collaborators(self) -> dict[str, Collaborator]:
        return {
            "textToVideo": self.text_to_video,
            "imageToVideo": self.image_to_video,
            "upscale": self.upscale,
            "music": self.music,
            "lipSync": self.lip_sync,
        }


def default_collaborators(**kwargs: Any) -> dict[str, Collaborator]:
    """Collaborator mapping backed by a fresh GenerationClient."""
    return GenerationClient(**kwargs).collaborators()
