"""Per-page facade over the scanner, classifier and injector.

:class:`RecaptchaContentScript` is created for one page (or frame) and one
call.  Its two entry points return data, never raise: any fault while
scanning or injecting ends up in the result's ``error`` field.

In-page debug events are forwarded to this module's logger through a
page-exposed function, see :func:`expose_debug_binding`.
"""

import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError

from browser.classifier import WidgetClassifier
from browser.injector import SolutionInjector
from browser.registry import ClientRegistry
from browser.waiter import FRAME_WAIT_TIMEOUT
from core.models import (
    VENDOR_RECAPTCHA,
    EnterResult,
    FindResult,
    Solution,
)

logger = logging.getLogger(__name__)

DEFAULT_OPTS: Dict[str, Any] = {
    "visualFeedback": True,
    "debugBinding": None,
}


def _on_debug_event(message: str, data: Optional[str] = None) -> None:
    logger.debug("%s %s", message, data or "")


async def expose_debug_binding(page: Any, name: str) -> bool:
    """Expose the debug sink under *name* on a page.

    Frames cannot expose functions; for them this is a no-op.  A binding
    that already exists from an earlier call is reused.

    Returns:
        ``True`` when the binding is available on the page.
    """
    if not hasattr(page, "expose_function"):
        return False
    try:
        await page.expose_function(name, _on_debug_event)
    except PlaywrightError as exc:
        if "already registered" not in str(exc):
            raise
    return True


class RecaptchaContentScript:
    """Scan a page for reCAPTCHA widgets and write solutions into it.

    Args:
        page: Playwright ``Page`` or ``Frame``.
        opts: ``{"visualFeedback": bool, "debugBinding": name-or-None}``.
        frame_wait_timeout: Wait for widget iframes, in milliseconds.
    """

    def __init__(
        self,
        page: Any,
        opts: Optional[Dict[str, Any]] = None,
        frame_wait_timeout: int = FRAME_WAIT_TIMEOUT,
    ) -> None:
        self.page = page
        self.opts = {**DEFAULT_OPTS, **(opts or {})}
        visual_feedback = bool(self.opts["visualFeedback"])
        debug_binding = self.opts["debugBinding"]
        self.registry = ClientRegistry(
            page,
            debug_binding=debug_binding,
            visual_feedback=visual_feedback,
            frame_wait_timeout=frame_wait_timeout,
        )
        self.classifier = WidgetClassifier(
            page, self.registry, frame_wait_timeout
        )
        self.injector = SolutionInjector(
            page,
            self.registry,
            visual_feedback=visual_feedback,
            debug_binding=debug_binding,
            frame_wait_timeout=frame_wait_timeout,
        )
        logger.debug("Initialized (opts: %s)", self.opts)

    async def _wait_until_document_ready(self) -> None:
        try:
            await self.page.wait_for_load_state("domcontentloaded")
        except PlaywrightError as exc:
            logger.debug("Document readiness wait failed: %s", exc)

    async def find_recaptchas(self) -> FindResult:
        """Discover and classify every widget on the page.

        Returns:
            A :class:`FindResult` with unfiltered ``captchas``; a page
            without a client registry yields an empty, error-free result.
        """
        result = FindResult()
        try:
            await self._wait_until_document_ready()
            clients = await self.registry.load()
            logger.debug(
                "find_recaptchas (url: %s, has clients: %s)",
                self.page.url, bool(clients),
            )
            if not clients:
                return result

            for widget_id in await self.registry.list_widget_ids():
                info = await self.classifier.classify(widget_id)
                if info is not None:
                    result.captchas.append(info)
        except Exception as exc:
            logger.debug("find_recaptchas failed: %s", exc)
            result.error = str(exc)
            return result

        logger.debug(
            "find_recaptchas - result: %d captcha(s)",
            len(result.captchas),
        )
        return result

    async def enter_recaptcha_solutions(
        self, solutions: List[Solution]
    ) -> EnterResult:
        """Inject every reCAPTCHA solution into the page.

        Args:
            solutions: Solutions returned by a provider.

        Returns:
            An :class:`EnterResult` with one entry per injected solution.
        """
        result = EnterResult()
        try:
            await self._wait_until_document_ready()
            clients = await self.registry.load()
            solutions = [
                s for s in solutions or [] if s.vendor == VENDOR_RECAPTCHA
            ]
            logger.debug(
                "enter_recaptcha_solutions (has clients: %s, solutions: %d)",
                bool(clients), len(solutions),
            )
            if not clients:
                result.error = "No recaptchas found"
                return result
            if not solutions:
                result.error = "No solutions provided"
                return result

            for solution in solutions:
                result.solved.append(await self.injector.inject(solution))
        except Exception as exc:
            logger.debug("enter_recaptcha_solutions failed: %s", exc)
            result.error = str(exc)
            return result

        logger.debug("enter_recaptcha_solutions - finished: %s", result)
        return result
