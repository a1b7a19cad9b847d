"""Image generation backend.

The queue only depends on the ``RenderBackend`` protocol. The bundled
implementation talks to a Fooocus-API style text-to-image HTTP server and
stores the first returned image in a local output directory.
"""

from __future__ import annotations

import base64
import binascii
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import anyio
import httpx

from .errors import GenerationFailure
from .logging import get_logger

logger = get_logger(__name__)

TEXT_TO_IMAGE_PATH = "/v1/generation/text-to-image"


class RenderBackend(Protocol):
    async def render(self, prompt: str, timeout_s: float) -> Path | None:
        """Render a prompt to an image file.

        The backend enforces ``timeout_s`` itself. Returns None when the
        generation produced no image.

        Raises:
            GenerationFailure: On transport or backend errors.
        """
        ...


def _slug(prompt: str, max_length: int = 40) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", prompt.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "image"


class HttpRenderBackend:
    """RenderBackend backed by a text-to-image HTTP API."""

    def __init__(
        self,
        base_url: str,
        output_dir: Path,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url)
        self._output_dir = output_dir
        self._clock = clock

    async def render(self, prompt: str, timeout_s: float) -> Path | None:
        payload = {"prompt": prompt, "require_base64": False, "async_process": False}
        logger.debug("render.request", prompt=prompt[:100], timeout_s=timeout_s)
        try:
            with anyio.fail_after(timeout_s):
                response = await self._client.post(
                    TEXT_TO_IMAGE_PATH, json=payload, timeout=timeout_s
                )
                response.raise_for_status()
                results = response.json()
                image = self._first_image(results)
                if image is None:
                    return None
                data = await self._image_bytes(image, timeout_s)
        except TimeoutError as exc:
            raise GenerationFailure(f"generation timed out after {timeout_s:g}s") from exc
        except httpx.HTTPError as exc:
            raise GenerationFailure(f"render request failed: {exc}") from exc
        except ValueError as exc:
            raise GenerationFailure(f"invalid render response: {exc}") from exc

        if not data:
            return None
        return await self._save(prompt, data)

    @staticmethod
    def _first_image(results: Any) -> dict[str, Any] | None:
        if not isinstance(results, list):
            raise ValueError("expected a list of results")
        for item in results:
            if not isinstance(item, dict):
                continue
            if item.get("finish_reason", "SUCCESS") != "SUCCESS":
                continue
            if item.get("base64") or item.get("url"):
                return item
        return None

    async def _image_bytes(self, image: dict[str, Any], timeout_s: float) -> bytes:
        encoded = image.get("base64")
        if encoded:
            try:
                return base64.b64decode(encoded, validate=True)
            except binascii.Error as exc:
                raise ValueError("undecodable base64 image") from exc
        response = await self._client.get(image["url"], timeout=timeout_s)
        response.raise_for_status()
        return response.content

    async def _save(self, prompt: str, data: bytes) -> Path:
        out_dir = anyio.Path(self._output_dir)
        await out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"{_slug(prompt)}-{int(self._clock() * 1000)}.png"
        await path.write_bytes(data)
        logger.info("render.saved", path=str(path), size=len(data))
        return Path(path)

    async def close(self) -> None:
        await self._client.aclose()
