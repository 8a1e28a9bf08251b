"""Cosmetic tinting of widget iframes while they are being worked on."""

import logging
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from browser import scripts

logger = logging.getLogger(__name__)

BUSY_FILTER = "opacity(60%) hue-rotate(400deg)"  # violet
SOLVED_FILTER = "opacity(60%) hue-rotate(230deg)"  # green


async def paint_frame(
    element: Optional[Any], css_filter: str, enabled: bool = True
) -> None:
    """Apply *css_filter* to an iframe element; failures are ignored."""
    if not enabled or element is None:
        return
    try:
        await element.evaluate(scripts.PAINT_FRAME, css_filter)
    except PlaywrightError as exc:
        logger.debug("Could not paint frame: %s", exc)
