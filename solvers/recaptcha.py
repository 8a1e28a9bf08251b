"""reCAPTCHA resolution orchestrator.

:class:`RecaptchaSolver` drives the scan -> solicit -> inject cycle against a
Playwright page or frame:

    * **find_recaptchas** -- wait for the reCAPTCHA client, scan the page and
      apply the filtering policy.
    * **get_recaptcha_solutions** -- hand widgets to the configured provider.
    * **enter_recaptcha_solutions** -- write tokens back into the page.
    * **solve_recaptchas** -- repeat the three stages on a fixed interval
      until one widget is solved or the attempt budget is spent.

By default every stage reports failures in the ``error`` field of its
result.  With ``throw_on_error`` the terminal error is raised as
:class:`~solvers.errors.RecaptchaSolveError` instead.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame

from browser import scripts
from browser.content import RecaptchaContentScript, expose_debug_binding
from browser.frames import SCRIPT_TAG_SELECTOR
from browser.waiter import wait_for_element
from core.config import SolverSettings
from core.models import (
    EnterResult,
    FilterOutcome,
    FindResult,
    InjectionResult,
    Solution,
    SolutionsResult,
    SolveResult,
    WidgetInfo,
    first_error,
)
from solvers.errors import RecaptchaSolveError
from solvers.filtering import filter_recaptchas
from solvers.providers import SolutionProvider, resolve_provider_fn

logger = logging.getLogger(__name__)

NO_CAPTCHA_FOUND = "no captcha element found on this page"
NO_CAPTCHA_SOLVED = "no captcha could be solved"
QUIET_PASSES_EXHAUSTED = "captcha found but no solution could be injected"

# Polling interval of the client registry wait, in milliseconds
CLIENT_POLLING_INTERVAL = 200


class PassState(Enum):
    """States of the resolution loop."""

    IDLE = "idle"
    SCANNING = "scanning"
    SOLICITING = "soliciting"
    INJECTING = "injecting"
    CONTINUE = "continue"
    DONE = "done"
    FAILED = "failed"


@dataclass
class OrchestrationState:
    """Mutable state shared by the scheduler and the passes of one run.

    Widgets, filtered widgets, solutions and injections are keyed by widget
    id so repeated passes over the same page never duplicate an entry.
    """

    captchas: Dict[str, WidgetInfo] = field(default_factory=dict)
    filtered: Dict[str, FilterOutcome] = field(default_factory=dict)
    solutions: Dict[str, Solution] = field(default_factory=dict)
    solved: Dict[str, InjectionResult] = field(default_factory=dict)
    error: Optional[str] = None
    state: PassState = PassState.IDLE
    passes: int = 0
    failed_attempts: int = 0
    quiet_passes: int = 0
    in_progress: bool = False
    skipped_ticks: int = 0

    @property
    def finished(self) -> bool:
        return self.state in (PassState.DONE, PassState.FAILED)

    def to_result(self) -> SolveResult:
        return SolveResult(
            captchas=list(self.captchas.values()),
            filtered=list(self.filtered.values()),
            solutions=list(self.solutions.values()),
            solved=list(self.solved.values()),
            error=self.error,
        )


class RecaptchaSolver:
    """Find, solve and enter reCAPTCHA widgets on Playwright pages.

    Args:
        settings: Solver settings; loaded from the environment when omitted.
        provider: Solution provider; built from ``settings.provider_id`` and
            ``settings.provider_token`` when omitted.
    """

    def __init__(
        self,
        settings: Optional[SolverSettings] = None,
        provider: Optional[SolutionProvider] = None,
    ) -> None:
        self.settings = settings or SolverSettings()
        self.provider = provider or SolutionProvider(
            id=self.settings.provider_id,
            token=self.settings.provider_token,
        )

    # ------------------------------------------------------------------
    # Stage helpers
    # ------------------------------------------------------------------

    def _raise_if_strict(self, error: Optional[str]) -> None:
        if error and self.settings.throw_on_error:
            raise RecaptchaSolveError(error)

    async def _content_script_options(self, page: Any) -> Dict[str, Any]:
        debug_enabled = logging.getLogger("browser.content").isEnabledFor(
            logging.DEBUG
        )
        opts = self.settings.content_script_options(debug_enabled)
        if opts["debugBinding"]:
            await expose_debug_binding(page, opts["debugBinding"])
        return opts

    async def _wait_for_recaptcha_client(
        self, page: Any, timeout: int
    ) -> None:
        """Wait for the api script tag and, if present, a registered client.

        A page without the script tag is still scanned afterwards since
        some sites inject the widget lazily.
        """
        script = await wait_for_element(page, SCRIPT_TAG_SELECTOR, timeout)
        if script is None:
            logger.debug("No reCAPTCHA script tag within %dms", timeout)
            return
        try:
            await page.wait_for_function(
                scripts.CLIENT_COUNT,
                polling=CLIENT_POLLING_INTERVAL,
                timeout=timeout,
            )
        except PlaywrightError as exc:
            logger.debug("reCAPTCHA client did not register: %s", exc)

    async def _session_snapshot(
        self, page: Any
    ) -> Tuple[Optional[List[Dict[str, Any]]], Optional[str]]:
        """Cookies and user agent of the browser session behind *page*."""
        owner = page.page if isinstance(page, Frame) else page
        cookies: Optional[List[Dict[str, Any]]] = None
        user_agent: Optional[str] = None
        try:
            cookies = await owner.context.cookies()
        except PlaywrightError as exc:
            logger.debug("Could not read cookies: %s", exc)
        try:
            user_agent = await page.evaluate(scripts.USER_AGENT)
        except PlaywrightError as exc:
            logger.debug("Could not read user agent: %s", exc)
        return cookies, user_agent

    async def _find(self, page: Any, timeout: int) -> FindResult:
        await self._wait_for_recaptcha_client(page, timeout)
        opts = await self._content_script_options(page)
        found = await RecaptchaContentScript(page, opts).find_recaptchas()
        kept, excluded = filter_recaptchas(
            found.captchas,
            solve_in_viewport_only=self.settings.solve_in_viewport_only,
            solve_score_based=self.settings.solve_score_based,
            solve_inactive_challenges=self.settings.solve_inactive_challenges,
        )
        return FindResult(captchas=kept, filtered=excluded, error=found.error)

    async def _get_solutions(
        self,
        captchas: List[WidgetInfo],
        provider: Optional[SolutionProvider],
        cookies: Optional[List[Dict[str, Any]]],
        user_agent: Optional[str],
    ) -> SolutionsResult:
        provider = provider or self.provider
        fn = resolve_provider_fn(provider)
        opts: Dict[str, Any] = {}
        if provider.id:
            opts.update(self.settings.provider_options(provider.id))
        opts.update(provider.opts)
        if cookies:
            opts["cookies"] = cookies
        if user_agent:
            opts["user_agent"] = user_agent

        logger.debug(
            "Requesting solutions (provider: %s, captchas: %d)",
            provider.id or "custom", len(captchas),
        )
        result = await fn(captchas, provider.token, opts)
        result.error = first_error(
            result.error, *(s.error for s in result.solutions)
        )
        if result.error:
            logger.warning(
                "Provider reported an error: %s", result.error
            )
        return result

    async def _enter(
        self, page: Any, solutions: List[Solution]
    ) -> EnterResult:
        opts = await self._content_script_options(page)
        return await RecaptchaContentScript(
            page, opts
        ).enter_recaptcha_solutions(solutions)

    # ------------------------------------------------------------------
    # Public stages
    # ------------------------------------------------------------------

    async def find_recaptchas(
        self,
        page: Any,
        captcha_element_wait_timeout: Optional[int] = None,
    ) -> FindResult:
        """Scan *page* for widgets and apply the filtering policy.

        Args:
            page: Playwright ``Page`` or ``Frame``.
            captcha_element_wait_timeout: Wait for the reCAPTCHA client, in
                milliseconds; defaults to the configured value.

        Returns:
            Kept widgets, filtered widgets and the scan error, if any.

        Raises:
            RecaptchaSolveError: Scan error in ``throw_on_error`` mode.
        """
        timeout = (
            captcha_element_wait_timeout
            or self.settings.captcha_element_wait_timeout
        )
        result = await self._find(page, timeout)
        logger.info(
            "Found %d reCAPTCHA(s), %d filtered",
            len(result.captchas), len(result.filtered),
        )
        self._raise_if_strict(result.error)
        return result

    async def get_recaptcha_solutions(
        self,
        captchas: List[WidgetInfo],
        provider: Optional[SolutionProvider] = None,
        cookies: Optional[List[Dict[str, Any]]] = None,
        user_agent: Optional[str] = None,
    ) -> SolutionsResult:
        """Ask the provider for a token per widget.

        Args:
            captchas: Widgets to solve.
            provider: Overrides the solver's provider for this call.
            cookies: Browser cookies handed to providers that accept them.
            user_agent: Browser user agent handed to providers.

        Raises:
            ProviderConfigError: No usable provider is configured.
            RecaptchaSolveError: Provider error in ``throw_on_error`` mode.
        """
        result = await self._get_solutions(
            captchas, provider, cookies, user_agent
        )
        self._raise_if_strict(result.error)
        return result

    async def enter_recaptcha_solutions(
        self, page: Any, solutions: List[Solution]
    ) -> EnterResult:
        """Inject *solutions* into *page*.

        Raises:
            RecaptchaSolveError: Injection error in ``throw_on_error`` mode.
        """
        result = await self._enter(page, solutions)
        self._raise_if_strict(result.error)
        return result

    # ------------------------------------------------------------------
    # Resolution loop
    # ------------------------------------------------------------------

    async def _run_pass(
        self, page: Any, state: OrchestrationState, timeout: int, budget: int
    ) -> PassState:
        state.passes += 1
        state.state = PassState.SCANNING
        logger.info(
            "[LIFECYCLE] recaptcha_pass_start"
            " | pass=%d"
            " | accumulated=%d"
            " | failed_attempts=%d",
            state.passes,
            len(state.captchas),
            state.failed_attempts,
        )

        found = await self._find(page, timeout)
        for outcome in found.filtered:
            state.filtered.setdefault(outcome.id, outcome)
        new = [c for c in found.captchas if c.id not in state.captchas]
        for captcha in new:
            state.captchas[captcha.id] = captcha

        if not new:
            if state.captchas:
                state.quiet_passes += 1
                logger.debug(
                    "Quiet pass %d/%d",
                    state.quiet_passes, self.settings.max_quiet_passes,
                )
                if state.quiet_passes > self.settings.max_quiet_passes:
                    state.error = QUIET_PASSES_EXHAUSTED
                    return PassState.FAILED
                return PassState.CONTINUE
            if found.error:
                logger.warning("Scan failed: %s", found.error)
            state.error = NO_CAPTCHA_FOUND
            return self._count_failure(state, budget)
        state.quiet_passes = 0
        state.failed_attempts = 0

        state.state = PassState.SOLICITING
        cookies, user_agent = await self._session_snapshot(page)
        solutions = await self._get_solutions(
            list(state.captchas.values()), None, cookies, user_agent
        )
        for solution in solutions.solutions:
            state.solutions[solution.id] = solution

        state.state = PassState.INJECTING
        entered = await self._enter(page, list(state.solutions.values()))
        for injection in entered.solved:
            state.solved[injection.id] = injection

        if any(r.is_solved for r in entered.solved):
            state.error = first_error(solutions.error, entered.error)
            return PassState.DONE

        state.error = first_error(
            found.error, solutions.error, entered.error, NO_CAPTCHA_SOLVED
        )
        return self._count_failure(state, budget)

    @staticmethod
    def _count_failure(state: OrchestrationState, budget: int) -> PassState:
        state.failed_attempts += 1
        if state.failed_attempts >= budget:
            return PassState.FAILED
        return PassState.CONTINUE

    async def _tick(
        self,
        page: Any,
        state: OrchestrationState,
        timeout: int,
        budget: int,
        finished: asyncio.Event,
    ) -> None:
        if state.in_progress:
            state.skipped_ticks += 1
            logger.debug("Previous pass still running, skipping tick")
            return
        state.in_progress = True
        try:
            next_state = await self._run_pass(page, state, timeout, budget)
        except Exception as exc:
            logger.error("reCAPTCHA pass %d failed: %s", state.passes, exc)
            state.error = str(exc)
            next_state = self._count_failure(state, budget)
        finally:
            state.in_progress = False

        state.state = next_state
        if state.finished:
            finished.set()

    async def _schedule(
        self,
        page: Any,
        state: OrchestrationState,
        timeout: int,
        budget: int,
        finished: asyncio.Event,
        passes: Set[asyncio.Task],
    ) -> None:
        """Start a pass now and every ``pass_interval`` seconds after."""
        while not finished.is_set():
            task = asyncio.create_task(
                self._tick(page, state, timeout, budget, finished)
            )
            passes.add(task)
            task.add_done_callback(passes.discard)
            try:
                await asyncio.wait_for(
                    finished.wait(), timeout=self.settings.pass_interval
                )
            except asyncio.TimeoutError:
                pass

    async def solve_recaptchas(
        self,
        page: Any,
        retries_limit: Optional[int] = None,
        captcha_element_wait_timeout: Optional[int] = None,
    ) -> SolveResult:
        """Find, solve and enter widgets until one is solved.

        The first pass starts immediately, later passes every
        ``pass_interval`` seconds.  A pass that is still awaiting the page
        or the provider makes the next tick a no-op.

        Args:
            page: Playwright ``Page`` or ``Frame``.
            retries_limit: Failed attempts tolerated; ``0`` allows exactly
                one.  Defaults to the configured value.
            captcha_element_wait_timeout: Per-scan wait for the reCAPTCHA
                client, in milliseconds.

        Returns:
            Everything accumulated over all passes plus the terminal error.

        Raises:
            RecaptchaSolveError: The run failed in ``throw_on_error`` mode.
        """
        if retries_limit is None:
            retries_limit = self.settings.retries_limit
        timeout = (
            captcha_element_wait_timeout
            or self.settings.captcha_element_wait_timeout
        )
        budget = max(retries_limit, 1)
        state = OrchestrationState()
        finished = asyncio.Event()
        passes: Set[asyncio.Task] = set()
        started = time.time()

        logger.info(
            "[LIFECYCLE] recaptcha_solve_start"
            " | url=%s"
            " | retries_limit=%d"
            " | timeout_ms=%d",
            page.url,
            retries_limit,
            timeout,
        )

        scheduler = asyncio.create_task(
            self._schedule(page, state, timeout, budget, finished, passes)
        )
        try:
            await finished.wait()
        finally:
            scheduler.cancel()
            for task in list(passes):
                task.cancel()
            await asyncio.gather(scheduler, *passes, return_exceptions=True)

        result = state.to_result()
        log = logger.info if state.state == PassState.DONE else logger.warning
        log(
            "[LIFECYCLE] recaptcha_solve"
            " | state=%s"
            " | passes=%d"
            " | captchas=%d"
            " | solved=%d"
            " | duration=%.1fs"
            " | error=%s",
            state.state.value,
            state.passes,
            len(result.captchas),
            sum(1 for r in result.solved if r.is_solved),
            time.time() - started,
            state.error,
        )
        if state.state == PassState.FAILED:
            self._raise_if_strict(state.error)
        return result
