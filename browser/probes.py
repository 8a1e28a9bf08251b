"""DOM probes used to classify widgets and to locate their response field.

Every probe answers a yes/no question about one widget id.  Missing
elements and Playwright errors are negative answers, never exceptions.
"""

import logging
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from browser import scripts
from browser.frames import (
    RESPONSE_FIELD_SELECTOR,
    challenge_popup_selector,
    enterprise_selector,
    frame_selector,
    invisible_selector,
    viewport_probe_selector,
)
from browser.waiter import (
    CHALLENGE_FRAME_TIMEOUT,
    FRAME_WAIT_TIMEOUT,
    PROBE_TIMEOUT,
    wait_for_element,
)

logger = logging.getLogger(__name__)


async def element_in_viewport(element: Any) -> bool:
    """Whether the element's bounding box lies inside the viewport."""
    try:
        return bool(await element.evaluate(scripts.IS_IN_VIEWPORT))
    except PlaywrightError as exc:
        logger.debug("Viewport check failed: %s", exc)
        return False


async def _exists(page: Any, selector: str, timeout: int) -> bool:
    try:
        return await wait_for_element(page, selector, timeout) is not None
    except PlaywrightError as exc:
        logger.debug("Probe failed for %s: %s", selector[:80], exc)
        return False


async def is_enterprise(page: Any, widget_id: str) -> bool:
    """Enterprise widgets are only recognisable by their iframe path."""
    if not widget_id:
        return False
    return await _exists(page, enterprise_selector(widget_id), PROBE_TIMEOUT)


async def is_invisible(page: Any, widget_id: str) -> bool:
    if not widget_id:
        return False
    return await _exists(page, invisible_selector(widget_id), PROBE_TIMEOUT)


async def has_challenge_frame(page: Any, widget_id: str) -> bool:
    """Whether a challenge frame exists at all, visible or not."""
    if not widget_id:
        return False
    return await _exists(
        page, frame_selector("bframe", widget_id), CHALLENGE_FRAME_TIMEOUT
    )


async def _in_viewport(page: Any, selector: str) -> bool:
    try:
        element = await wait_for_element(page, selector, PROBE_TIMEOUT)
    except PlaywrightError as exc:
        logger.debug("Probe failed for %s: %s", selector[:80], exc)
        return False
    if element is None:
        return False
    return await element_in_viewport(element)


async def has_active_challenge_popup(page: Any, widget_id: str) -> bool:
    """Whether the widget's challenge popup is open inside the viewport.

    The popup's wrapper is what gets hidden, not the iframe itself, so
    visibility is judged by position.
    """
    if not widget_id:
        return False
    return await _in_viewport(page, challenge_popup_selector(widget_id))


async def is_in_viewport(page: Any, widget_id: str) -> bool:
    if not widget_id:
        return False
    return await _in_viewport(page, viewport_probe_selector(widget_id))


async def find_anchor_frame(
    page: Any, widget_id: str, timeout: int = FRAME_WAIT_TIMEOUT
) -> Optional[Any]:
    if not widget_id:
        return None
    try:
        return await wait_for_element(
            page, frame_selector("anchor", widget_id), timeout
        )
    except PlaywrightError as exc:
        logger.debug("Anchor lookup failed for %s: %s", widget_id, exc)
        return None


async def find_response_field(
    page: Any, widget_id: str, timeout: int = FRAME_WAIT_TIMEOUT
) -> Optional[Any]:
    """Locate the response holder of a widget.

    The nearest enclosing form of the widget's anchor iframe is searched
    first.  Not every widget sits inside a form; without one the first
    response field of the whole page is used.

    Args:
        page: Playwright ``Page`` or ``Frame``.
        widget_id: Widget id.
        timeout: Wait for the anchor iframe, in milliseconds.

    Returns:
        The response field element handle, or ``None``.
    """
    anchor = await find_anchor_frame(page, widget_id, timeout)
    if anchor is None:
        return None
    try:
        if await anchor.evaluate(scripts.HAS_ENCLOSING_FORM):
            handle = await anchor.evaluate_handle(
                scripts.FORM_RESPONSE_FIELD, RESPONSE_FIELD_SELECTOR
            )
            return handle.as_element()
        return await page.query_selector(
            f"body {RESPONSE_FIELD_SELECTOR}"
        )
    except PlaywrightError as exc:
        logger.debug("Response field lookup failed: %s", exc)
        return None
