"""Solution injection.

Writes a solved token into the widget's response field and invokes the
widget callback, reporting which of the two paths succeeded.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from browser import probes, scripts
from browser.feedback import SOLVED_FILTER, paint_frame
from browser.frames import frame_selector
from browser.registry import ClientRegistry
from browser.waiter import FRAME_WAIT_TIMEOUT
from core.models import InjectionResult, Solution

logger = logging.getLogger(__name__)


class SolutionInjector:
    """Apply solutions to the widgets of one page."""

    def __init__(
        self,
        page: Any,
        registry: ClientRegistry,
        visual_feedback: bool = True,
        debug_binding: Optional[str] = None,
        frame_wait_timeout: int = FRAME_WAIT_TIMEOUT,
    ) -> None:
        self.page = page
        self.registry = registry
        self.visual_feedback = visual_feedback
        self.debug_binding = debug_binding
        self.frame_wait_timeout = frame_wait_timeout

    async def hide_challenge_window(self, widget_id: str) -> None:
        """Hide the chrome around an open challenge popup.

        Purely cosmetic: a missing frame or a failing script is ignored.
        """
        try:
            frame = await self.page.query_selector(
                frame_selector("bframe", widget_id)
            )
            logger.debug(
                " - hide challenge window: %s (frame: %s)",
                widget_id, frame is not None,
            )
            if frame is not None:
                await frame.evaluate(scripts.HIDE_CHALLENGE_WINDOW)
        except PlaywrightError as exc:
            logger.debug("Could not hide challenge window: %s", exc)

    async def _invoke_callback(
        self, registry_key: str, path: Any, token: str
    ) -> None:
        await self.page.evaluate(
            scripts.INVOKE_CALLBACK,
            {
                "clientKey": registry_key,
                "callbackPath": list(path),
                "token": token,
                "debugBinding": self.debug_binding,
            },
        )

    async def inject(self, solution: Solution) -> InjectionResult:
        """Write one solution into the page.

        Callback failures are recorded on the result, never raised.

        Args:
            solution: Solution carrying the widget id and token.

        Returns:
            The :class:`InjectionResult` for that widget.
        """
        result = InjectionResult(id=solution.id, vendor=solution.vendor)
        config = self.registry.get_config_by_id(solution.id)
        if config is None:
            result.error = f"No client found for id '{solution.id}'"
            return result
        if not solution.text:
            result.error = (
                solution.error or f"No token for id '{solution.id}'"
            )
            return result

        anchor = await probes.find_anchor_frame(
            self.page, solution.id, self.frame_wait_timeout
        )
        if await probes.has_active_challenge_popup(self.page, solution.id):
            await self.hide_challenge_window(solution.id)

        field = await probes.find_response_field(
            self.page, solution.id, self.frame_wait_timeout
        )
        if field is not None:
            try:
                await field.evaluate(scripts.WRITE_RESPONSE, solution.text)
                result.response_element = True
            except PlaywrightError as exc:
                result.error = str(exc)

        if config.callback and config.callback_path:
            try:
                await self._invoke_callback(
                    config.registry_key,
                    config.callback_path,
                    solution.text,
                )
                result.response_callback = True
            except PlaywrightError as exc:
                logger.debug(
                    " - callback failed for %s: %s", solution.id, exc
                )
                result.error = str(exc)

        result.solved_at = datetime.now(timezone.utc)
        await paint_frame(anchor, SOLVED_FILTER, self.visual_feedback)
        logger.debug(" - solved %s", result)
        return result
