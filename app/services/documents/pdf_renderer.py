"""
PDF renderer.

Prints HTML to PDF with headless Chromium through Playwright. Page render
and PDF export are each bounded by a timeout, and the browser is closed
on every path, including timeouts.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from app.config.constants import (
    PDF_BROWSER_LAUNCH_TIMEOUT,
    PDF_EXPORT_TIMEOUT,
    PDF_RENDER_TIMEOUT,
)
from app.utils.exceptions import DocumentRenderError


CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
]

PAGE_MARGIN = {"top": "20mm", "right": "20mm", "bottom": "20mm", "left": "20mm"}


class PdfRenderer:
    """HTML to PDF through a short-lived headless browser."""

    def __init__(
        self,
        playwright_factory: Callable[[], Any] = async_playwright,
        render_timeout: float = PDF_RENDER_TIMEOUT,
        export_timeout: float = PDF_EXPORT_TIMEOUT,
    ) -> None:
        """
        Initialize renderer.

        Args:
            playwright_factory: Returns the Playwright async context manager
            render_timeout: Seconds allowed for loading the HTML
            export_timeout: Seconds allowed for printing the PDF
        """
        self._playwright_factory = playwright_factory
        self.render_timeout = render_timeout
        self.export_timeout = export_timeout

    async def render(self, html: str) -> bytes:
        """
        Render HTML to A4 PDF bytes.

        Args:
            html: Complete HTML document

        Returns:
            PDF file content

        Raises:
            DocumentRenderError: Browser failed or a step timed out
        """
        try:
            async with self._playwright_factory() as playwright:
                browser = await playwright.chromium.launch(
                    headless=True,
                    args=CHROMIUM_ARGS,
                    timeout=PDF_BROWSER_LAUNCH_TIMEOUT * 1000,
                )
                try:
                    page = await browser.new_page()
                    await asyncio.wait_for(
                        page.set_content(html, wait_until="domcontentloaded"),
                        timeout=self.render_timeout,
                    )
                    pdf = await asyncio.wait_for(
                        page.pdf(format="A4", margin=PAGE_MARGIN, print_background=True),
                        timeout=self.export_timeout,
                    )
                finally:
                    await browser.close()
        except TimeoutError as e:
            logger.error("PDF generation timed out")
            raise DocumentRenderError("PDF generation timed out") from e
        except PlaywrightError as e:
            logger.error(f"PDF generation failed: {e}")
            raise DocumentRenderError(f"PDF generation failed: {e}") from e

        logger.debug(f"Rendered PDF ({len(pdf)} bytes)")
        return pdf
