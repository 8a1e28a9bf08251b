"""Readiness waiter: wait until an element matching a selector exists.

"Not found" is a normal negative signal for every caller, so a timeout
resolves to ``None`` instead of raising.
"""

import logging
from typing import Any, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

logger = logging.getLogger(__name__)

# Milliseconds
FRAME_WAIT_TIMEOUT = 5_000
PROBE_TIMEOUT = 2_000
CHALLENGE_FRAME_TIMEOUT = 1_000


async def wait_for_element(
    page: Any,
    selector: str,
    timeout: int = FRAME_WAIT_TIMEOUT,
) -> Optional[Any]:
    """Return the first element matching *selector*, waiting if needed.

    An existing match is returned straight away without registering any
    wait.  Otherwise Playwright watches the DOM until a match is attached
    or *timeout* elapses; its watcher is released on both paths.

    Args:
        page: Playwright ``Page`` or ``Frame``.
        selector: CSS selector (comma-joined lists are fine).
        timeout: Maximum wait in milliseconds.

    Returns:
        The element handle, or ``None`` on timeout.
    """
    element = await page.query_selector(selector)
    if element:
        return element

    try:
        element = await page.wait_for_selector(
            selector, state="attached", timeout=timeout,
        )
    except PlaywrightTimeoutError:
        logger.debug(
            "Wait for selector timed out after %dms: %s",
            timeout,
            selector[:120],
        )
        return None

    logger.debug("Wait for selector resolved: %s", selector[:120])
    return element
