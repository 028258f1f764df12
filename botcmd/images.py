from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx


class ImageClient:
    def __init__(self, client: httpx.AsyncClient, default_api_key: str, size: str = "512x512") -> None:
        self._client = client
        self._default_api_key = default_api_key
        self._size = size
        self._logger = logging.getLogger("images")

    async def generate(self, prompt: str, api_key: str | None = None, retries: int = 1) -> str:
        key = api_key or self._default_api_key
        if not key:
            raise ValueError("OpenAI API key is not configured")
        payload: dict[str, Any] = {"prompt": prompt, "n": 1, "size": self._size}
        attempt = 0
        last_exc: Exception | None = None
        while attempt <= retries:
            try:
                response = await self._client.post(
                    "/images/generations",
                    json=payload,
                    headers={"Authorization": f"Bearer {key}"},
                )
                response.raise_for_status()
                data = response.json()
                url = (data.get("data") or [{}])[0].get("url")
                if not url:
                    raise ValueError(f"image response without url: {data.get('error') or data}")
                self._logger.info("image generated prompt_chars=%s", len(prompt))
                return str(url)
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                # client errors (bad prompt, bad key) will not succeed on retry
                if exc.response is not None and exc.response.status_code < 500:
                    break
                self._logger.warning("image request failed attempt=%s status=%s", attempt + 1, exc.response.status_code)
            except httpx.TransportError as exc:
                last_exc = exc
                self._logger.warning("image request failed attempt=%s error=%s", attempt + 1, exc)
            if attempt == retries:
                break
            await asyncio.sleep(0.5 * (attempt + 1))
            attempt += 1
        raise last_exc if last_exc else RuntimeError("image generation failed")
