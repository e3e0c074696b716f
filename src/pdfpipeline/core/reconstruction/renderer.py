"""
Renderer - turns the HTML preview into PDF bytes.

Tries the generic browser render service, then Cloudflare browser
rendering, then the built-in minimal PDF writer. Provider failures are
logged and never propagate.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import Settings
from ..http import build_service_headers, safe_parse_body
from .simple_pdf import create_simple_pdf

logger = logging.getLogger(__name__)


@dataclass
class RenderedPdf:
    data: bytes
    renderer: str

    @property
    def is_fallback(self) -> bool:
        return self.renderer == "simple"


class PdfRenderer:
    """HTML to PDF with graceful degradation."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    async def render(self, html: str, fallback_text: str) -> RenderedPdf:
        """
        Render HTML to PDF.

        Args:
            html: Layout HTML
            fallback_text: Plain translated text for the minimal PDF

        Returns:
            RenderedPdf with the bytes and the renderer that produced them
        """
        if html:
            data = await self._render_with_service(html)
            if data:
                return RenderedPdf(data=data, renderer="browser-service")

            data = await self._render_with_cloudflare(html)
            if data:
                return RenderedPdf(data=data, renderer="cloudflare")

        logger.info("No browser renderer produced a PDF, using minimal PDF writer")
        return RenderedPdf(data=create_simple_pdf(fallback_text), renderer="simple")

    async def _render_with_service(self, html: str) -> Optional[bytes]:
        url = self.settings.browser_render_service_url
        if not url:
            return None
        try:
            response = await self.http_client.post(
                url,
                headers=build_service_headers(self.settings.browser_render_service_token),
                json={"html": html},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Browser render service request failed: {e}")
            return None

        if not response.is_success:
            logger.warning(f"Browser render service failed ({response.status_code})")
            return None
        return response.content or None

    async def _render_with_cloudflare(self, html: str) -> Optional[bytes]:
        account_id = self.settings.cf_browser_render_account_id
        token = self.settings.cf_browser_render_token
        if not account_id or not token:
            return None

        url = f"{self.settings.cf_api_base_url.rstrip('/')}/accounts/{account_id}/browser_rendering/render/html"
        try:
            response = await self.http_client.post(
                url,
                headers=build_service_headers(token),
                json={
                    "html": html,
                    "wait_until": ["load", "networkidle"],
                    "response_type": "pdf",
                },
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Cloudflare browser rendering request failed: {e}")
            return None

        if not response.is_success:
            logger.warning(f"Cloudflare browser rendering failed ({response.status_code}): {safe_parse_body(response)}")
            return None
        return response.content or None
