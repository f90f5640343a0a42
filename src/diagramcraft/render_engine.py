"""Mermaid source -> SVG/PNG through the mermaid.ink HTTP service.

The service takes the diagram as URL-safe base64 in the path and answers
with the image on success or a 4xx/5xx with a plain text diagnostic.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from .errors import RasterExportError

logger = logging.getLogger(__name__)

DEFAULT_MERMAID_INK_URL = "https://mermaid.ink"
DEFAULT_TIMEOUT_SECONDS = 30.0
PNG_SIGNATURE = b"\x89PNG"


@dataclass(frozen=True)
class EngineOutcome:
    svg: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.svg is not None and self.error is None


class RenderEngine(Protocol):
    async def render(self, request_id: str, text: str) -> EngineOutcome:
        ...


class MermaidInkEngine:
    def __init__(
        self,
        base_url: str = DEFAULT_MERMAID_INK_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def render(self, request_id: str, text: str) -> EngineOutcome:
        if not (text or "").strip():
            return EngineOutcome(error="No diagram source to render.")

        url = f"{self.base_url}/svg/{encode_diagram(text)}"
        logger.debug("Rendering %s via %s (source len=%d)", request_id, self.base_url, len(text))
        try:
            response = await self._get(url)
        except httpx.RequestError as exc:
            logger.warning("Render request %s failed: %s", request_id, exc)
            return EngineOutcome(error=f"Rendering service unavailable: {exc}")

        body = response.text
        if response.status_code == 200 and "<svg" in body[:500]:
            return EngineOutcome(svg=body)

        message = body.strip()[:300] or f"HTTP {response.status_code}"
        logger.debug("Render %s rejected (%d): %s", request_id, response.status_code, message)
        return EngineOutcome(error=message)

    async def render_png(self, text: str) -> bytes:
        """Return the diagram as PNG bytes; raises ``RasterExportError``.

        The service draws the image from source, HTML labels included.
        """
        if not (text or "").strip():
            raise RasterExportError("No diagram source to export.")

        url = f"{self.base_url}/img/{encode_diagram(text)}?type=png"
        try:
            response = await self._get(url)
        except httpx.RequestError as exc:
            logger.warning("PNG request failed: %s", exc)
            raise RasterExportError(f"Rendering service unavailable: {exc}") from exc

        if response.status_code == 200 and response.content.startswith(PNG_SIGNATURE):
            return response.content

        message = f"HTTP {response.status_code}"
        if not response.content.startswith(PNG_SIGNATURE):
            message = response.text.strip()[:300] or message
        logger.warning("PNG export rejected (%d): %s", response.status_code, message)
        raise RasterExportError(f"PNG export failed: {message}")

    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            return await client.get(url)


def encode_diagram(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")
