"""
HTML → PDF print pipeline on headless Chromium (playwright).

The document HTML arrives with its stylesheet already inlined, so the
browser prints exactly what the template and ``pdf.css`` describe,
including the ``@page`` size and margins.

Chromium stamps every PDF with the wall-clock creation time and a random
document ID.  Both are rewritten in place, keeping byte lengths so the xref
table stays valid: the dates become a fixed epoch and the ID is derived
from the HTML.  Identical HTML therefore yields identical bytes.
"""

from __future__ import annotations

import hashlib
import logging
import re

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RENDER_TIMEOUT_MS = 30_000

_PDF_DATE_RE = re.compile(rb"(/(?:CreationDate|ModDate)\s*\(D:)\d{14}")
_PDF_ID_RE = re.compile(rb"(/ID\s*\[\s*<)([0-9A-Fa-f]+)(>\s*<)([0-9A-Fa-f]+)(>)")
_EPOCH = b"19700101000000"


def _stable_id(seed: bytes, length: int) -> bytes:
    digest = hashlib.sha256(seed).hexdigest().upper().encode()
    return (digest * (length // len(digest) + 1))[:length]


def _stabilize(pdf: bytes, html: str) -> bytes:
    seed = html.encode("utf-8")
    pdf = _PDF_DATE_RE.sub(lambda m: m.group(1) + _EPOCH, pdf)
    return _PDF_ID_RE.sub(
        lambda m: b"".join((
            m.group(1), _stable_id(seed, len(m.group(2))),
            m.group(3), _stable_id(seed[::-1], len(m.group(4))),
            m.group(5),
        )),
        pdf,
    )


def render_pdf(html: str) -> bytes:
    """Print *html* to A4 PDF bytes; byte-identical for identical input.

    Raises:
        ConfigurationError: Chromium is not installed or cannot start
            (``playwright install chromium``).
    """
    with sync_playwright() as pw:
        try:
            browser = pw.chromium.launch(headless=True)
        except PlaywrightError as exc:
            logger.error("PDF engine failed to start: %s", exc)
            raise ConfigurationError("PDF engine (headless Chromium) is not available") from exc
        try:
            page = browser.new_page()
            page.set_content(html, wait_until="load", timeout=RENDER_TIMEOUT_MS)
            pdf = page.pdf(
                format="A4",
                print_background=True,
                prefer_css_page_size=True,
            )
        finally:
            browser.close()

    logger.debug("Printed PDF (%d bytes)", len(pdf))
    return _stabilize(pdf, html)
